# solbtt/Utils/CFG.py
from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx

if TYPE_CHECKING:
    from Domain.Guard import GuardCondition, Outcome


class ControlNode:
    def __init__(self, name,
                 # ───── role flags ────────────────────────────────────────────
                 branch_node: bool = False,               # two-way decision
                 terminal_node: bool = False,             # revert / succeed sink
                 sequence_node: bool = False,             # pass-through (ENTRY)
                 # ───── payload ───────────────────────────────────────────────
                 condition: "GuardCondition | None" = None,
                 outcome: "Outcome | None" = None,
                 src_line: int | None = None):
        self.name = name
        self.branch_node = branch_node
        self.terminal_node = terminal_node
        self.sequence_node = sequence_node
        self.condition = condition
        self.outcome = outcome
        self.src_line = src_line

    def __repr__(self):
        if self.branch_node:
            return f"ControlNode(branch {self.condition.predicate.text!r})"
        if self.terminal_node:
            return f"ControlNode({self.outcome.value})"
        return f"ControlNode({self.name})"


class ControlGraph:
    """
    Decision tree of one function's modifier-inlined body.

    Branch edges carry ``condition=True/False``; sequence edges carry no
    attribute.  Every terminal owns its own node, so the graph is an
    arborescence rooted at ``entry_node``.
    """

    def __init__(self, function_name: str):
        self.function_name = function_name
        self.graph = nx.DiGraph()
        self.entry_node = ControlNode("ENTRY", sequence_node=True)
        self.graph.add_node(self.entry_node)

    # ── construction -----------------------------------------------------
    def add_branch(self, condition: "GuardCondition", src_line=None) -> ControlNode:
        node = ControlNode(f"BRANCH#{self.graph.number_of_nodes()}",
                           branch_node=True, condition=condition, src_line=src_line)
        self.graph.add_node(node)
        return node

    def add_terminal(self, outcome: "Outcome", src_line=None) -> ControlNode:
        node = ControlNode(outcome.name, terminal_node=True, outcome=outcome,
                           src_line=src_line)
        self.graph.add_node(node)
        return node

    def connect(self, src: ControlNode, dst: ControlNode, condition: bool | None = None):
        if condition is None:
            self.graph.add_edge(src, dst)
        else:
            self.graph.add_edge(src, dst, condition=condition)

    def set_root(self, node: ControlNode):
        for succ in list(self.graph.successors(self.entry_node)):
            self.graph.remove_edge(self.entry_node, succ)
        self.connect(self.entry_node, node)

    # ── navigation -------------------------------------------------------
    def get_entry_node(self) -> ControlNode:
        return self.entry_node

    def get_next(self, node: ControlNode) -> ControlNode | None:
        succs = list(self.graph.successors(node))
        return succs[0] if succs else None

    def get_true_block(self, condition_node: ControlNode) -> ControlNode | None:
        for successor in self.graph.successors(condition_node):
            if self.graph.edges[condition_node, successor].get("condition") is True:
                return successor
        return None

    def get_false_block(self, condition_node: ControlNode) -> ControlNode | None:
        for successor in self.graph.successors(condition_node):
            if self.graph.edges[condition_node, successor].get("condition") is False:
                return successor
        return None

    def branch_nodes(self) -> list[ControlNode]:
        return [n for n in self.graph.nodes if n.branch_node]

    def terminal_nodes(self) -> list[ControlNode]:
        return [n for n in self.graph.nodes if n.terminal_node]

    # ── sanity -----------------------------------------------------------
    def validate(self):
        if not nx.is_arborescence(self.graph):
            raise ValueError(f"control graph of {self.function_name} is not a tree")
        for node in self.graph.nodes:
            out = self.graph.out_degree(node)
            if node.branch_node and (out != 2 or self.get_true_block(node) is None
                                     or self.get_false_block(node) is None):
                raise ValueError(f"{node} must have one true and one false successor")
            if node.terminal_node and out:
                raise ValueError(f"{node} has successors")
            if node.sequence_node and out != 1:
                raise ValueError(f"{node} must have exactly one successor")

# solbtt/Interpreter/PathEnumerator.py
from __future__ import annotations

from typing import TYPE_CHECKING

from Domain.Guard import Path, PathStep

if TYPE_CHECKING:
    from Domain.Guard import GuardCondition, Predicate
    from Utils.CFG import ControlGraph, ControlNode


class PathEnumerator:
    """
    Depth-first walk of a ControlGraph, one Path per terminal reached.

    * the side of a branch that reverts immediately is visited first,
      otherwise the true side first;
    * a predicate already decided on the current path is not asked again;
      only the arm consistent with the earlier answer is followed and no
      step is recorded for it.
    """

    def __init__(self, graph: "ControlGraph"):
        self.graph = graph

    def enumerate(self) -> list[Path]:
        paths: list[Path] = []
        self._walk(self.graph.get_entry_node(), (), {}, paths)
        return paths

    def _walk(self, node: "ControlNode", steps: tuple[PathStep, ...],
              assumed: dict["Predicate", bool], out: list[Path]):
        g = self.graph
        while node.sequence_node:
            node = g.get_next(node)

        if node.terminal_node:
            out.append(Path(steps, node.outcome))
            return

        cond: GuardCondition = node.condition
        decided = assumed.get(cond.predicate)
        if decided is not None:
            nxt = g.get_true_block(node) if decided else g.get_false_block(node)
            self._walk(nxt, steps, assumed, out)
            return

        for polarity in self._order(node):
            nxt = g.get_true_block(node) if polarity else g.get_false_block(node)
            self._walk(nxt, steps + (PathStep(cond, polarity),),
                       {**assumed, cond.predicate: polarity}, out)

    @staticmethod
    def _order(node: "ControlNode") -> tuple[bool, bool]:
        reverts_when = node.condition.reverts_when
        if reverts_when is None:
            return True, False
        return reverts_when, not reverts_when

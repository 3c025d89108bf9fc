# solbtt/Tree/Builder.py
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from Tree.Labeler import Labeler
from Tree.Node import TreeBranch, TreeLeaf, TreeRoot

if TYPE_CHECKING:
    from Domain.Guard import GuardCondition, Path
    from Tree.Labeler import LabeledCondition
    from Tree.Node import TreeNode


class TreeBuilder:
    """
    Folds enumerated Paths into a BTT tree.

    Paths are grouped by their step at the current depth; equal
    (condition, polarity) steps share one branch, siblings keep the order in
    which they were first seen.
    """

    def __init__(self, labeler: Labeler | None = None):
        self.labeler = labeler or Labeler()
        self._labels: dict["GuardCondition", "LabeledCondition"] = {}

    def build(self, function_name: str, paths: Iterable["Path"]) -> TreeRoot:
        root = TreeRoot(function_name)
        root.children = self._fold(list(paths), 0)
        return root

    def _fold(self, paths: list["Path"], depth: int) -> list["TreeNode"]:
        groups: dict[object, list["Path"]] = {}
        for path in paths:
            key = path.steps[depth] if len(path.steps) > depth else path.outcome
            groups.setdefault(key, []).append(path)

        children: list["TreeNode"] = []
        for members in groups.values():
            first = members[0]
            if len(first.steps) <= depth:
                children.append(TreeLeaf(first.outcome))
                continue
            step = first.steps[depth]
            labeled = self._labeled(step.condition)
            children.append(TreeBranch(
                label=labeled.label,
                phrase=labeled.true_phrase if step.polarity else labeled.false_phrase,
                any_loop=labeled.any_loop,
                children=self._fold(members, depth + 1),
            ))
        return children

    def _labeled(self, condition: "GuardCondition") -> "LabeledCondition":
        if condition not in self._labels:
            self._labels[condition] = self.labeler.label(condition)
        return self._labels[condition]

# solbtt/Tree/Node.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from Domain.Guard import Label, Outcome


@dataclass
class TreeLeaf:
    outcome: Outcome

    @property
    def line(self) -> str:
        return self.outcome.phrase


@dataclass
class TreeBranch:
    label: Label
    phrase: str
    any_loop: bool = False
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def line(self) -> str:
        qualifier = "any " if self.any_loop else ""
        return f"{self.label.value} {qualifier}{self.phrase}"


@dataclass
class TreeRoot:
    name: str
    children: list["TreeNode"] = field(default_factory=list)

    @property
    def line(self) -> str:
        return self.name

    def leaves(self) -> list[TreeLeaf]:
        out, stack = [], list(reversed(self.children))
        while stack:
            node = stack.pop()
            if isinstance(node, TreeLeaf):
                out.append(node)
            else:
                stack.extend(reversed(node.children))
        return out


TreeNode = Union[TreeBranch, TreeLeaf]

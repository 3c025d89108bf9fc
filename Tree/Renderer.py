# solbtt/Tree/Renderer.py
from __future__ import annotations

import pathlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from Tree.Node import TreeNode, TreeRoot

BRANCH = "├── "
LAST = "└── "
PIPE = "│   "
SPACE = "    "

TREE_SUFFIX = ".tree"


def render_lines(root: "TreeRoot") -> list[str]:
    lines = [root.line]

    def walk(children: list["TreeNode"], indent: str):
        for i, child in enumerate(children):
            last = i == len(children) - 1
            lines.append(f"{indent}{LAST if last else BRANCH}{child.line}")
            grandchildren = getattr(child, "children", None)
            if grandchildren:
                walk(grandchildren, indent + (SPACE if last else PIPE))

    walk(root.children, "")
    return lines


def render_to_string(root: "TreeRoot") -> str:
    return "".join(f"{line}\n" for line in render_lines(root))


def tree_file_name(contract: str, function: str) -> str:
    return f"{contract}.{function}{TREE_SUFFIX}"


def write_tree(out_dir, contract: str, function: str, text: str) -> pathlib.Path:
    out = pathlib.Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / tree_file_name(contract, function)
    # newline="" keeps "\n" on every platform
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    return path

"""Text rendering of a tree's shape, for debugging."""

from typing import List, Tuple

from .link import Link
from .tree import Tree

_RESET = "\x1b[0m"
_DIM = "\x1b[2m"
_ON_BRIGHT_BLACK = "\x1b[100m"
_BLUE = "\x1b[34m"


def _format_key(key: bytes) -> str:
    return "[" + ", ".join(str(byte) for byte in key) + "]"


def _style(text: str, code: str, color: bool) -> str:
    if not color or not text:
        return text
    return f"{code}{text}{_RESET}"


def format_tree(tree: Tree, color: bool = False) -> str:
    """Draw the keys of a tree, one per line, in key order.

    Keys of pruned children are shown too; with color they are drawn blue,
    while keys of nodes in memory get a grey background.
    """
    lines: List[str] = []
    stack: List[Tuple[bytes, bytes]] = []

    def line(key: bytes, left: bool, key_style: str) -> str:
        depth = len(stack)
        parts = []
        for low, high in stack[: max(depth - 1, 0)]:
            segment = " │  " if low < key < high else "    "
            parts.append(_style(segment, _DIM, color))
        if depth == 0:
            prefix = ""
        elif left:
            prefix = " ┌-"
        else:
            prefix = " └-"
        parts.append(_style(prefix, _DIM, color))
        parts.append(_style(_format_key(key), key_style, color))
        return "".join(parts)

    def visit_link(link: Link, bounds: Tuple[bytes, bytes], left: bool) -> None:
        stack.append(bounds)
        child = link.tree()
        if child is None:
            lines.append(line(link.key(), left, _BLUE))
        else:
            traverse(child, left)
        stack.pop()

    def traverse(cursor: Tree, left: bool) -> None:
        left_link = cursor.link(True)
        if left_link is not None:
            visit_link(left_link, (left_link.key(), cursor.key()), True)
        lines.append(line(cursor.key(), left, _ON_BRIGHT_BLACK))
        right_link = cursor.link(False)
        if right_link is not None:
            visit_link(right_link, (cursor.key(), right_link.key()), False)

    traverse(tree, False)
    return "".join(f"{text}\n" for text in lines) + "\n"
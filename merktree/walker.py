"""Owning traversal of a tree that fetches pruned children on demand."""

import copy
from typing import Any, Callable, Optional, Tuple, Union

from .tree import Tree, side_to_str

TreeLike = Union[Tree, "Walker"]


def _into_tree(maybe: Optional[TreeLike]) -> Optional[Tree]:
    if isinstance(maybe, Walker):
        return maybe.into_inner()
    return maybe


class Walker:
    """Wraps a tree and a source, detaching children as they are walked."""

    __slots__ = ("_tree", "_source")

    def __init__(self, tree: Tree, source: Any) -> None:
        self._tree = tree
        self._source = source

    def _wrap(self, tree: Tree) -> "Walker":
        return Walker(tree, self.clone_source())

    def detach(self, left: bool) -> Tuple["Walker", Optional["Walker"]]:
        """Detach the child on the given side, fetching it if pruned."""
        link = self._tree.link(left)
        if link is None:
            return self, None
        _, child = self._tree.detach(left)
        if child is None:
            child = self._source.fetch(link)
        return self, self._wrap(child)

    def detach_expect(self, left: bool) -> Tuple["Walker", "Walker"]:
        """Like detach, but raise ValueError if there is no child."""
        walker, maybe_child = self.detach(left)
        if maybe_child is None:
            raise ValueError(f"Expected {side_to_str(left)} child, got None")
        return walker, maybe_child

    def walk(
        self,
        left: bool,
        f: Callable[[Optional["Walker"]], Optional[TreeLike]],
    ) -> "Walker":
        """Detach the child on the given side and attach what f returns."""
        walker, maybe_child = self.detach(left)
        new_child = _into_tree(f(maybe_child))
        walker._tree.attach(left, new_child)
        return walker

    def walk_expect(
        self, left: bool, f: Callable[["Walker"], Optional[TreeLike]]
    ) -> "Walker":
        """Like walk, but raise ValueError if there is no child."""
        walker, child = self.detach_expect(left)
        new_child = _into_tree(f(child))
        walker._tree.attach(left, new_child)
        return walker

    def tree(self) -> Tree:
        return self._tree

    def into_inner(self) -> Tree:
        return self._tree

    def clone_source(self) -> Any:
        return copy.copy(self._source)

    def attach(self, left: bool, maybe_child: Optional[TreeLike]) -> "Walker":
        """Attach a tree or walker (if any) on the given side."""
        self._tree.attach(left, _into_tree(maybe_child))
        return self

    def with_value(self, value: bytes) -> "Walker":
        self._tree.with_value(value)
        return self

    def __repr__(self) -> str:
        return f"Walker(tree={self._tree!r})"
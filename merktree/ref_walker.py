"""Read-only traversal of a committed tree that loads pruned children."""

import copy
from typing import Any, Optional

from .link import Modified, Reference
from .tree import Tree


class RefWalker:
    """Walks a finalized tree in place, loading pruned children from a source.

    Loaded children stay in memory until a later commit prunes them.
    """

    __slots__ = ("_tree", "_source")

    def __init__(self, tree: Tree, source: Any) -> None:
        self._tree = tree
        self._source = source

    def tree(self) -> Tree:
        return self._tree

    def walk(self, left: bool) -> Optional["RefWalker"]:
        """Step to the child on the given side, fetching it if pruned.

        Raises ValueError if the child link is modified.
        """
        link = self._tree.link(left)
        if link is None:
            return None
        if isinstance(link, Modified):
            raise ValueError("Cannot traverse a modified link")
        if isinstance(link, Reference):
            self._tree.load(left, self._source)
        return RefWalker(self._tree.child(left), copy.copy(self._source))
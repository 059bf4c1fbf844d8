"""A binary AVL tree node with Merkle hashes, and the commit protocol."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

from .hashing import NULL_HASH, node_hash
from .kv import KV
from .link import Link, Loaded, Modified, Reference

_SIDE_NAMES = {True: "left", False: "right"}


def side_to_str(left: bool) -> str:
    """Name of the given side."""
    return _SIDE_NAMES[bool(left)]


class Commit(ABC):
    """Receives nodes when a tree is committed to a backing store."""

    @abstractmethod
    def write(self, tree: "Tree") -> None:
        """Called once per updated node when a finalized tree is written."""

    def prune(self, tree: "Tree") -> Tuple[bool, bool]:
        """Whether to prune the left and right children after writing a node.

        By default every existing child is pruned.
        """
        return (tree.link(True) is not None, tree.link(False) is not None)


@dataclass
class NoopCommit(Commit):
    """Writes to no store; by default keeps the whole tree in memory.

    The keys of the nodes passed to write are recorded in order.
    """

    written: List[bytes] = field(default_factory=list)
    keep_in_memory: bool = True

    def write(self, tree: "Tree") -> None:
        self.written.append(tree.key())

    def prune(self, tree: "Tree") -> Tuple[bool, bool]:
        prune_children = not self.keep_in_memory
        return (prune_children, prune_children)


@dataclass(frozen=True)
class Found:
    """The key was found; holds its value."""

    value: bytes


@dataclass(frozen=True)
class Pruned:
    """The key may exist in a part of the tree that is not in memory."""


@dataclass(frozen=True)
class NotFound:
    """The key does not exist in the tree."""


class Tree:
    """A node of a binary AVL tree, with links to its children."""

    __slots__ = ("_kv", "_left", "_right")

    def __init__(self, key: bytes, value: bytes) -> None:
        self._kv = KV(key, value)
        self._left: Optional[Link] = None
        self._right: Optional[Link] = None

    @classmethod
    def from_fields(
        cls,
        key: bytes,
        value: bytes,
        kv_hash: bytes,
        left: Optional[Link],
        right: Optional[Link],
    ) -> "Tree":
        """Build a tree from raw fields; hashes and links are not checked."""
        tree = cls.__new__(cls)
        tree._kv = KV.from_fields(key, value, kv_hash)
        tree._left = left
        tree._right = right
        return tree

    def key(self) -> bytes:
        return self._kv.key

    def value(self) -> bytes:
        return self._kv.value

    def kv_hash(self) -> bytes:
        return self._kv.hash

    def link(self, left: bool) -> Optional[Link]:
        """The link on the given side, or None if there is no child."""
        return self._left if left else self._right

    def _set_link(self, left: bool, link: Optional[Link]) -> None:
        if left:
            self._left = link
        else:
            self._right = link

    def _take_link(self, left: bool) -> Optional[Link]:
        link = self.link(left)
        self._set_link(left, None)
        return link

    def child(self, left: bool) -> Optional["Tree"]:
        """The child tree on the given side, or None if absent or pruned."""
        link = self.link(left)
        return None if link is None else link.tree()

    def child_hash(self, left: bool) -> bytes:
        """Hash of the child on the given side, or the null hash if none."""
        link = self.link(left)
        return NULL_HASH if link is None else link.hash()

    def hash(self) -> bytes:
        """Compute the hash of this node."""
        return node_hash(self._kv.hash, self.child_hash(True), self.child_hash(False))

    def child_pending_writes(self, left: bool) -> int:
        link = self.link(left)
        return link.pending_writes if isinstance(link, Modified) else 0

    def child_height(self, left: bool) -> int:
        link = self.link(left)
        return 0 if link is None else link.height()

    def child_heights(self) -> Tuple[int, int]:
        return (self.child_height(True), self.child_height(False))

    def height(self) -> int:
        """Number of levels in the tree; a single node has height 1."""
        return 1 + max(self.child_heights())

    def balance_factor(self) -> int:
        """Right child height minus left child height."""
        return self.child_height(False) - self.child_height(True)

    def attach(self, left: bool, maybe_child: Optional["Tree"]) -> "Tree":
        """Attach a child (if any) on the given side as a modified link.

        Raises ValueError if the slot is already occupied.
        """
        if maybe_child is not None and maybe_child.key() == self.key():
            raise ValueError("Tried to attach tree with same key")
        if self.link(left) is not None:
            raise ValueError(
                f"Tried to attach to {side_to_str(left)} tree slot, but it is already Some"
            )
        self._set_link(left, Link.maybe_from_modified_tree(maybe_child))
        return self

    def detach(self, left: bool) -> Tuple["Tree", Optional["Tree"]]:
        """Remove the link on the given side; return (self, child or None)."""
        link = self._take_link(left)
        return self, (None if link is None else link.tree())

    def detach_expect(self, left: bool) -> Tuple["Tree", "Tree"]:
        """Like detach, but raise ValueError if there is no child."""
        tree, maybe_child = self.detach(left)
        if maybe_child is None:
            raise ValueError(
                f"Expected tree to have {side_to_str(left)} child, but got None"
            )
        return tree, maybe_child

    def walk(
        self, left: bool, f: Callable[[Optional["Tree"]], Optional["Tree"]]
    ) -> "Tree":
        """Detach the child on the given side, and attach whatever f returns."""
        tree, maybe_child = self.detach(left)
        return tree.attach(left, f(maybe_child))

    def walk_expect(
        self, left: bool, f: Callable[["Tree"], Optional["Tree"]]
    ) -> "Tree":
        """Like walk, but raise ValueError if there is no child."""
        tree, child = self.detach_expect(left)
        return tree.attach(left, f(child))

    def with_value(self, value: bytes) -> "Tree":
        """Replace this node's value, rehashing the pair."""
        self._kv = self._kv.with_value(value)
        return self

    def commit(self, committer: Commit) -> None:
        """Recompute hashes of modified nodes, write them, and prune as asked."""
        for left in (True, False):
            link = self.link(left)
            if isinstance(link, Modified):
                child = link.tree()
                child.commit(committer)
                self._set_link(left, Loaded(child.hash(), link.child_heights, child))

        committer.write(self)

        prune_left, prune_right = committer.prune(self)
        for left, prune in ((True, prune_left), (False, prune_right)):
            link = self.link(left)
            if prune and link is not None:
                self._set_link(left, link.into_reference())

    def load(self, left: bool, source: Any) -> None:
        """Fetch the pruned child on the given side and keep it as loaded."""
        link = self.link(left)
        if link is None:
            raise ValueError("Expected link")
        if not isinstance(link, Reference):
            raise ValueError("Expected Some(Link::Reference)")
        tree = source.fetch(link)
        self._set_link(left, Loaded(link.hash(), link.child_heights, tree))

    def get_value(self, key: bytes) -> Any:
        """Look up a key; return Found, Pruned or NotFound."""
        key = bytes(key)
        cursor = self
        while True:
            if key == cursor.key():
                return Found(cursor.value())
            link = cursor.link(key < cursor.key())
            if link is None:
                return NotFound()
            child = link.tree()
            if child is None:
                return Pruned()
            cursor = child

    def __iter__(self) -> Iterator[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs in key order, skipping pruned subtrees."""
        stack: List[Tree] = []
        node: Optional[Tree] = self
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.child(True)
            node = stack.pop()
            yield node.key(), node.value()
            node = node.child(False)

    def __repr__(self) -> str:
        return f"Tree(key={self.key()!r}, value={self.value()!r})"
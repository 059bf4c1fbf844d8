"""Links from a tree node to its children."""

from typing import Any, Optional, Tuple

from .hashing import HASH_LENGTH, _check_hash


def _heights(child_heights: Tuple[int, int]) -> Tuple[int, int]:
    left, right = child_heights
    return (int(left), int(right))


class Link:
    """A reference to a child node, which may or may not hold the child itself."""

    __slots__ = ("child_heights",)

    def __init__(self, child_heights: Tuple[int, int]) -> None:
        self.child_heights = _heights(child_heights)

    @staticmethod
    def from_modified_tree(tree: Any) -> "Modified":
        """Wrap a freshly modified tree in a Modified link."""
        pending_writes = (
            1 + tree.child_pending_writes(True) + tree.child_pending_writes(False)
        )
        return Modified(pending_writes, tree.child_heights(), tree)

    @staticmethod
    def maybe_from_modified_tree(maybe_tree: Optional[Any]) -> Optional["Modified"]:
        if maybe_tree is None:
            return None
        return Link.from_modified_tree(maybe_tree)

    def is_reference(self) -> bool:
        return isinstance(self, Reference)

    def is_modified(self) -> bool:
        return isinstance(self, Modified)

    def is_uncommitted(self) -> bool:
        return isinstance(self, Uncommitted)

    def is_stored(self) -> bool:
        return isinstance(self, Loaded)

    def key(self) -> bytes:
        raise NotImplementedError

    def tree(self) -> Optional[Any]:
        """Return the child tree, or None if it has been pruned."""
        return None

    def hash(self) -> bytes:
        """Hash of the linked tree; a modified link has none yet."""
        if self.is_modified():
            raise ValueError("Cannot get hash from modified link")
        return self._hash  # type: ignore[attr-defined]

    def height(self) -> int:
        """Height of the linked tree: one more than its taller child."""
        return 1 + max(self.child_heights)

    def balance_factor(self) -> int:
        left, right = self.child_heights
        return right - left

    def into_reference(self) -> "Reference":
        """Convert to a Reference; only loaded and reference links can be pruned."""
        if self.is_reference():
            return self  # type: ignore[return-value]
        if self.is_stored():
            return Reference(self.hash(), self.child_heights, self.key())
        raise ValueError(f"Cannot prune {type(self).__name__} tree")

    def encode(self) -> bytes:
        """Encode as key length, key, hash and the two child heights."""
        if self.is_modified():
            raise ValueError("No encoding for a modified link")
        key = self.key()
        if len(key) >= 256:
            raise ValueError("Key length must be less than 256")
        return bytes([len(key)]) + key + self.hash() + bytes(self.child_heights)

    def encoding_length(self) -> int:
        if self.is_modified():
            raise ValueError("No encoding for a modified link")
        key = self.key()
        if len(key) >= 256:
            raise ValueError("Key length must be less than 256")
        return 1 + len(key) + HASH_LENGTH + 2

    @staticmethod
    def decode(data: bytes) -> "Reference":
        """Decode a link from the start of data; trailing bytes are ignored."""
        data = bytes(data)
        if not data:
            raise ValueError("unexpected end of input while reading link")
        key_end = 1 + data[0]
        hash_end = key_end + HASH_LENGTH
        if len(data) < hash_end + 2:
            raise ValueError("unexpected end of input while reading link")
        return Reference(
            data[key_end:hash_end],
            (data[hash_end], data[hash_end + 1]),
            data[1:key_end],
        )


class Reference(Link):
    """A child that has been pruned from memory; only its key is kept."""

    __slots__ = ("_hash", "_key")

    def __init__(self, hash: bytes, child_heights: Tuple[int, int], key: bytes) -> None:
        super().__init__(child_heights)
        self._hash = _check_hash("link", hash)
        self._key = bytes(key)

    def key(self) -> bytes:
        return self._key

    def __repr__(self) -> str:
        return (
            f"Reference(hash={self._hash.hex()}, "
            f"child_heights={self.child_heights}, key={self._key!r})"
        )


class _TreeLink(Link):
    __slots__ = ("_tree",)

    def __init__(self, child_heights: Tuple[int, int], tree: Any) -> None:
        super().__init__(child_heights)
        self._tree = tree

    def key(self) -> bytes:
        return self._tree.key()

    def tree(self) -> Any:
        return self._tree


class Modified(_TreeLink):
    """A child changed since the last hash computation; its hash is unknown."""

    __slots__ = ("pending_writes",)

    def __init__(self, pending_writes: int, child_heights: Tuple[int, int], tree: Any) -> None:
        super().__init__(child_heights, tree)
        self.pending_writes = pending_writes

    def __repr__(self) -> str:
        return (
            f"Modified(pending_writes={self.pending_writes}, "
            f"child_heights={self.child_heights}, key={self.key()!r})"
        )


class _HashedTreeLink(_TreeLink):
    __slots__ = ("_hash",)

    def __init__(self, hash: bytes, child_heights: Tuple[int, int], tree: Any) -> None:
        super().__init__(child_heights, tree)
        self._hash = _check_hash("link", hash)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(hash={self._hash.hex()}, "
            f"child_heights={self.child_heights}, key={self.key()!r})"
        )


class Uncommitted(_HashedTreeLink):
    """A child with an up-to-date hash that has not yet been committed."""

    __slots__ = ()


class Loaded(_HashedTreeLink):
    """An unmodified, committed child that is held in memory."""

    __slots__ = ()
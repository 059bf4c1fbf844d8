"""Sources from which pruned tree nodes can be fetched."""

from abc import ABC, abstractmethod
from typing import Optional

from .display import _format_key
from .link import Link
from .tree import Tree


class KeyNotFoundError(LookupError):
    """Raised when a node expected in the source is missing."""


class Fetch(ABC):
    """A source of tree nodes, used when a traversal reaches a pruned node."""

    @abstractmethod
    def fetch_by_key(self, key: bytes) -> Optional[Tree]:
        """Return the node stored under key, or None if there is none."""

    def fetch(self, link: Link) -> Tree:
        """Fetch the node a (reference) link points to."""
        return self.fetch_by_key_expect(link.key())

    def fetch_by_key_expect(self, key: bytes) -> Tree:
        """Fetch the node under key, raising KeyNotFoundError if missing."""
        tree = self.fetch_by_key(key)
        if tree is None:
            raise KeyNotFoundError(f"Key does not exist: {_format_key(key)}")
        return tree
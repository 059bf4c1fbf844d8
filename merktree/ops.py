"""Batch operations on trees: inserts, updates, deletes and AVL rebalancing."""

import copy
from bisect import bisect_left
from dataclasses import dataclass
from operator import itemgetter
from typing import Any, List, Optional, Sequence, Tuple, Union

from .fetch import Fetch
from .tree import Tree
from .walker import Walker


@dataclass(frozen=True)
class Put:
    """Insert the key, or update it to the given value."""

    value: bytes


@dataclass(frozen=True)
class Delete:
    """Delete the key."""


Op = Union[Put, Delete]
BatchEntry = Tuple[bytes, Op]
Batch = Sequence[BatchEntry]


class PanicSource(Fetch):
    """A source that must never be asked for a node.

    Useful for trees that are kept entirely in memory.
    """

    def fetch_by_key(self, key: bytes) -> Optional[Tree]:
        requested = bytes(key).hex()
        raise RuntimeError(f"PanicSource cannot fetch node with key {requested}")

    def __repr__(self) -> str:
        return "PanicSource()"


def apply_to(
    maybe_walker: Optional[Walker], batch: Batch, source: Any
) -> Tuple[Optional[Tree], List[bytes]]:
    """Apply a batch to a tree, or build a new tree if there is none.

    Keys in the batch must be sorted and unique. Returns the resulting tree
    (None if it ends up empty) and the keys that were deleted, in key order.
    """
    if not batch:
        deleted: List[bytes] = []
    elif maybe_walker is None:
        return build(batch, source), []
    else:
        maybe_walker, deleted = apply(maybe_walker, batch)
    tree = None if maybe_walker is None else maybe_walker.into_inner()
    return tree, deleted


def build(batch: Batch, source: Any) -> Optional[Tree]:
    """Build a balanced tree from a batch; keys must be sorted and unique."""
    if not batch:
        return None

    mid = len(batch) // 2
    mid_key, mid_op = batch[mid]

    if isinstance(mid_op, Delete):
        left_tree = build(batch[:mid], copy.copy(source))
        if left_tree is not None:
            maybe_walker, _ = apply(Walker(left_tree, copy.copy(source)), batch[mid + 1:])
        else:
            right_tree = build(batch[mid + 1:], copy.copy(source))
            maybe_walker = (
                None if right_tree is None else Walker(right_tree, copy.copy(source))
            )
        return None if maybe_walker is None else maybe_walker.into_inner()

    mid_walker = Walker(Tree(mid_key, mid_op.value), PanicSource())
    maybe_walker, _ = _recurse(mid_walker, batch, mid, True)
    return None if maybe_walker is None else maybe_walker.into_inner()


def apply(walker: Walker, batch: Batch) -> Tuple[Optional[Walker], List[bytes]]:
    """Apply a batch to a non-empty tree; keys must be sorted and unique."""
    key = walker.tree().key()
    index = bisect_left(batch, key, key=itemgetter(0))
    found = index < len(batch) and batch[index][0] == key

    if found:
        op = batch[index][1]
        if isinstance(op, Put):
            walker = walker.with_value(op.value)
        else:
            source = walker.clone_source()
            walker, maybe_left = walker.detach(True)
            walker, maybe_right = walker.detach(False)

            maybe_left_tree, deleted = apply_to(maybe_left, batch[:index], source)
            deleted.append(key)
            maybe_right_tree, deleted_right = apply_to(
                maybe_right, batch[index + 1:], copy.copy(source)
            )
            deleted.extend(deleted_right)

            maybe_walker = remove(
                walker.attach(True, maybe_left_tree).attach(False, maybe_right_tree)
            )
            if maybe_walker is not None:
                maybe_walker = maybe_balance(maybe_walker)
            return maybe_walker, deleted

    return _recurse(walker, batch, index, found)


def _recurse(
    walker: Walker, batch: Batch, mid: int, exclusive: bool
) -> Tuple[Optional[Walker], List[bytes]]:
    left_batch = batch[:mid]
    right_batch = batch[mid + 1:] if exclusive else batch[mid:]
    deleted: List[bytes] = []

    for left, side_batch in ((True, left_batch), (False, right_batch)):
        if not side_batch:
            continue
        source = walker.clone_source()

        def apply_side(
            maybe_child: Optional[Walker], side_batch: Batch = side_batch, source: Any = source
        ) -> Optional[Tree]:
            tree, side_deleted = apply_to(maybe_child, side_batch, source)
            deleted.extend(side_deleted)
            return tree

        walker = walker.walk(left, apply_side)

    return maybe_balance(walker), deleted


def maybe_balance(walker: Walker) -> Walker:
    """Rotate the tree if it is unbalanced; return the new root."""
    balance_factor = walker.tree().balance_factor()
    if abs(balance_factor) <= 1:
        return walker

    left = balance_factor < 0
    if left == (walker.tree().link(left).balance_factor() > 0):
        walker = walker.walk_expect(left, lambda child: _rotate(child, not left))

    return _rotate(walker, left)


def _rotate(walker: Walker, left: bool) -> Walker:
    walker, child = walker.detach_expect(left)
    child, maybe_grandchild = child.detach(not left)
    walker = maybe_balance(walker.attach(left, maybe_grandchild))
    return maybe_balance(child.attach(not left, walker))


def remove(walker: Walker) -> Optional[Walker]:
    """Remove the root node, rearranging its descendants into a valid tree."""
    tree = walker.tree()
    has_left = tree.link(True) is not None
    has_right = tree.link(False) is not None
    left = tree.child_height(True) > tree.child_height(False)

    if has_left and has_right:
        walker, tall_child = walker.detach_expect(left)
        _, short_child = walker.detach_expect(not left)
        return _promote_edge(tall_child, not left, short_child)
    if has_left or has_right:
        return walker.detach_expect(left)[1]
    return None


def _promote_edge(walker: Walker, left: bool, attach: Walker) -> Walker:
    edge, maybe_child = _remove_edge(walker, left)
    return maybe_balance(edge.attach(not left, maybe_child).attach(left, attach))


def _remove_edge(walker: Walker, left: bool) -> Tuple[Walker, Optional[Walker]]:
    if walker.tree().link(left) is not None:
        walker, child = walker.detach_expect(left)
        edge, maybe_child = _remove_edge(child, left)
        walker = maybe_balance(walker.attach(left, maybe_child))
        return edge, walker
    return walker.detach(not left)
import random

import pytest

from merktree.link import Loaded
from merktree.ops import (
    Delete,
    PanicSource,
    Put,
    apply,
    apply_to,
    build,
    maybe_balance,
    remove,
)
from merktree.tree import NoopCommit, Tree
from merktree.walker import Walker

SEQ_VALUE = bytes([123]) * 60


def seq_key(n):
    return n.to_bytes(8, "big")


def put_entry(n):
    return (seq_key(n), Put(SEQ_VALUE))


def del_entry(n):
    return (seq_key(n), Delete())


def _check_node(tree):
    assert abs(tree.balance_factor()) <= 1
    for left in (True, False):
        link = tree.link(left)
        child = tree.child(left)
        if child is None:
            continue
        if left:
            assert child.key() < tree.key()
        else:
            assert child.key() > tree.key()
        assert link.height() == child.height()
        if not link.is_modified():
            assert link.hash() == child.hash()
        _check_node(child)


def assert_tree_invariants(tree):
    _check_node(tree)
    keys = [key for key, _ in tree]
    assert keys == sorted(keys)
    assert len(set(keys)) == len(keys)


def apply_memonly(tree, batch):
    maybe_walker, _ = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    tree = maybe_walker.into_inner()
    tree.commit(NoopCommit())
    assert_tree_invariants(tree)
    return tree


def make_tree_seq(node_count):
    batch_size = 10_000 if node_count >= 10_000 else node_count
    tree = Tree(bytes(20), SEQ_VALUE)
    for i in range(node_count // batch_size):
        batch = [put_entry(n) for n in range(i * batch_size, (i + 1) * batch_size)]
        tree = apply_memonly(tree, batch)
    return tree


def _dedup_sorted(batch):
    batch = sorted(batch, key=lambda entry: entry[0])
    deduped = []
    for entry in batch:
        if deduped and deduped[-1][0] == entry[0]:
            continue
        deduped.append(entry)
    return deduped


def make_tree_rand(node_count, batch_size, seed):
    rng = random.Random(seed)
    tree = Tree(bytes(20), SEQ_VALUE)
    for _ in range(node_count // batch_size):
        batch = [(rng.randbytes(8), Put(SEQ_VALUE)) for _ in range(batch_size)]
        tree = apply_memonly(tree, _dedup_sorted(batch))
    return tree


def make_batch(maybe_tree, size, seed):
    rng = random.Random(seed)

    def random_key():
        entries = list(maybe_tree)
        return entries[rng.getrandbits(64) % len(entries)][0]

    batch = []
    for _ in range(size):
        kind = rng.getrandbits(64) % 3 if maybe_tree is not None else 0
        if kind == 0:
            batch.append((rng.randbytes(2), Put(rng.randbytes(2))))
        elif kind == 1:
            batch.append((random_key(), Put(rng.randbytes(2))))
        else:
            batch.append((random_key(), Delete()))
    return _dedup_sorted(batch)


def apply_to_map(mapping, batch):
    for key, op in batch:
        if isinstance(op, Put):
            mapping[key] = op.value
        else:
            mapping.pop(key, None)


def assert_map(maybe_tree, mapping):
    if not mapping:
        assert maybe_tree is None
        return
    assert maybe_tree is not None
    assert list(maybe_tree) == sorted(mapping.items())


def test_simple_insert():
    batch = [(b"foo2", Put(b"bar2"))]
    tree = Tree(b"foo", b"bar")
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert maybe_walker.tree().key() == b"foo"
    assert maybe_walker.into_inner().child(False).key() == b"foo2"
    assert deleted_keys == []


def test_simple_update():
    batch = [(b"foo", Put(b"bar2"))]
    tree = Tree(b"foo", b"bar")
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert maybe_walker.tree().key() == b"foo"
    assert maybe_walker.tree().value() == b"bar2"
    assert maybe_walker.tree().link(True) is None
    assert maybe_walker.tree().link(False) is None
    assert deleted_keys == []


def test_simple_delete():
    batch = [(b"foo2", Delete())]
    tree = Tree.from_fields(
        b"foo",
        b"bar",
        bytes([123]) * 32,
        None,
        Loaded(bytes([123]) * 32, (0, 0), Tree(b"foo2", b"bar2")),
    )
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert maybe_walker.tree().key() == b"foo"
    assert maybe_walker.tree().value() == b"bar"
    assert maybe_walker.tree().link(True) is None
    assert maybe_walker.tree().link(False) is None
    assert deleted_keys == [b"foo2"]


def test_delete_non_existent():
    batch = [(b"foo2", Delete())]
    tree = Tree(b"foo", b"bar")
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker.tree().key() == b"foo"
    assert deleted_keys == []


def test_delete_only_node():
    batch = [(b"foo", Delete())]
    tree = Tree(b"foo", b"bar")
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is None
    assert deleted_keys == [b"foo"]


def test_delete_deep():
    tree = make_tree_seq(50)
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), [del_entry(5)])
    assert maybe_walker is not None
    assert deleted_keys == [seq_key(5)]


def test_delete_recursive():
    tree = make_tree_seq(50)
    batch = [del_entry(29), del_entry(34)]
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert deleted_keys == [seq_key(29), seq_key(34)]


def test_delete_recursive_2():
    tree = make_tree_seq(10)
    batch = [del_entry(7), del_entry(9)]
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert sorted(deleted_keys) == [seq_key(7), seq_key(9)]


def test_rebalanced_delete():
    tree = make_tree_seq(7)
    walker, _ = apply(Walker(tree, PanicSource()), [(bytes(20), Delete())])
    assert walker is not None

    batch = [
        put_entry(0),
        put_entry(1),
        put_entry(2),
        put_entry(3),
        del_entry(4),
        del_entry(5),
        del_entry(6),
    ]
    maybe_walker, deleted_keys = apply(walker, batch)
    assert maybe_walker is not None
    assert sorted(deleted_keys) == [seq_key(4), seq_key(5), seq_key(6)]
    keys = [key for key, _ in maybe_walker.tree()]
    assert keys == [seq_key(0), seq_key(1), seq_key(2), seq_key(3)]


def test_apply_empty_none():
    maybe_tree, deleted_keys = apply_to(None, [], PanicSource())
    assert maybe_tree is None
    assert deleted_keys == []


def test_insert_empty_single():
    batch = [(b"\x00", Put(b"\x01"))]
    maybe_tree, deleted_keys = apply_to(None, batch, PanicSource())
    assert maybe_tree is not None
    assert maybe_tree.key() == b"\x00"
    assert maybe_tree.value() == b"\x01"
    assert_tree_invariants(maybe_tree)
    assert deleted_keys == []


def test_insert_root_single():
    tree = Tree(b"\x05", b"\x7b")
    tree = apply_memonly(tree, [(b"\x06", Put(b"\x7b"))])
    assert tree.key() == b"\x05"
    assert tree.child(True) is None
    assert tree.child(False).key() == b"\x06"


def test_insert_root_double():
    tree = Tree(b"\x05", b"\x7b")
    batch = [(b"\x04", Put(b"\x7b")), (b"\x06", Put(b"\x7b"))]
    tree = apply_memonly(tree, batch)
    assert tree.key() == b"\x05"
    assert tree.child(True).key() == b"\x04"
    assert tree.child(False).key() == b"\x06"


def test_insert_rebalance():
    tree = Tree(b"\x05", b"\x7b")
    tree = apply_memonly(tree, [(b"\x06", Put(b"\x7b"))])
    tree = apply_memonly(tree, [(b"\x07", Put(b"\x7b"))])
    assert tree.key() == b"\x06"
    assert tree.child(True).key() == b"\x05"
    assert tree.child(False).key() == b"\x07"


def test_insert_100_sequential():
    tree = Tree(b"\x00", b"\x7b")
    for i in range(100):
        tree = apply_memonly(tree, [(bytes([i + 1]), Put(b"\x7b"))])
    assert tree.key() == bytes([63])
    assert tree.child(True).key() == bytes([31])
    assert tree.child(False).key() == bytes([79])


def test_delete_recursive_large():
    tree = make_tree_seq(2_500)
    batch = [del_entry(i) for i in range(500, 2_000)]
    maybe_walker, deleted_keys = apply(Walker(tree, PanicSource()), batch)
    assert maybe_walker is not None
    assert len(deleted_keys) == 1_500
    remaining = [key for key, _ in maybe_walker.tree()]
    assert len(remaining) == 2_500 + 1 - 1_500


def test_build_skips_deletes():
    batch = [
        (b"\x01", Put(b"a")),
        (b"\x02", Delete()),
        (b"\x03", Put(b"c")),
    ]
    tree = build(batch, PanicSource())
    assert list(tree) == [(b"\x01", b"a"), (b"\x03", b"c")]


def test_build_empty():
    assert build([], PanicSource()) is None


def test_remove_leaf():
    assert remove(Walker(Tree(b"a", b"1"), PanicSource())) is None


def test_remove_root_with_two_children():
    tree = Tree(b"b", b"2").attach(True, Tree(b"a", b"1")).attach(False, Tree(b"c", b"3"))
    walker = remove(Walker(tree, PanicSource()))
    assert [key for key, _ in walker.tree()] == [b"a", b"c"]


def test_maybe_balance_right_chain():
    chain = Tree(b"\x01", b"x").attach(
        False, Tree(b"\x02", b"x").attach(False, Tree(b"\x03", b"x"))
    )
    walker = maybe_balance(Walker(chain, PanicSource()))
    tree = walker.tree()
    assert tree.key() == b"\x02"
    assert tree.child(True).key() == b"\x01"
    assert tree.child(False).key() == b"\x03"


def test_maybe_balance_double_rotation():
    chain = Tree(b"\x03", b"x").attach(
        True, Tree(b"\x01", b"x").attach(False, Tree(b"\x02", b"x"))
    )
    walker = maybe_balance(Walker(chain, PanicSource()))
    tree = walker.tree()
    assert tree.key() == b"\x02"
    assert tree.child(True).key() == b"\x01"
    assert tree.child(False).key() == b"\x03"


def test_panic_source_refuses_to_fetch():
    with pytest.raises(RuntimeError):
        PanicSource().fetch_by_key(b"key")


@pytest.mark.parametrize(
    "seed", [17391518417409062786, 396148930387069749, *range(200)]
)
def test_fuzz(seed):
    rng = random.Random(seed)
    initial_size = rng.getrandbits(64) % 10 + 1
    tree = make_tree_rand(initial_size, initial_size, seed)
    mapping = dict(tree)
    maybe_tree = tree
    for _ in range(3):
        batch_size = rng.getrandbits(64) % 3 + 1
        batch = make_batch(maybe_tree, batch_size, rng.getrandbits(64))
        maybe_walker = None if maybe_tree is None else Walker(maybe_tree, PanicSource())
        maybe_tree, _ = apply_to(maybe_walker, batch, PanicSource())
        if maybe_tree is not None:
            maybe_tree.commit(NoopCommit())
            assert_tree_invariants(maybe_tree)
        apply_to_map(mapping, batch)
        assert_map(maybe_tree, mapping)
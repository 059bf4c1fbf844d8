# merktree

`merktree` is a balanced binary search tree (AVL) whose nodes carry Merkle
hashes. Keys and values are byte strings. You apply changes in sorted
batches. Committing a tree does three things:

- it computes the hashes;
- it passes every changed node to a writer of your choice;
- it can prune subtrees from memory.

A pruned subtree can be fetched again on demand.

## Installation

```
pip install merktree
```

## Modules

| Module | Contents |
| --- | --- |
| `merktree.hashing` | `kv_hash`, `node_hash`, `HASH_LENGTH`, `NULL_HASH` |
| `merktree.kv` | `KV`, a key, a value and the hash of the pair |
| `merktree.link` | `Link` and its kinds: `Reference`, `Modified`, `Uncommitted`, `Loaded` |
| `merktree.tree` | `Tree`, `Commit`, `NoopCommit`, `Found`, `Pruned`, `NotFound`, `side_to_str` |
| `merktree.ops` | `Put`, `Delete`, `PanicSource`, `apply_to`, `apply`, `build`, `remove`, `maybe_balance` |
| `merktree.walker` | `Walker`, which detaches children as it walks and fetches pruned ones |
| `merktree.ref_walker` | `RefWalker`, which walks a committed tree in place and loads pruned children |
| `merktree.fetch` | `Fetch`, the base for node sources, and `KeyNotFoundError` |
| `merktree.encoding` | `encode_tree`, `decode_tree`, `tree_encoding_length` |
| `merktree.display` | `format_tree` |

## Building a tree

A batch is a sequence of `(key, op)` pairs. It must be sorted by key, and
each key may appear only once. An op is either `Put(value)` or `Delete()`.

```python
from merktree.ops import Put, Delete, PanicSource, apply_to
from merktree.tree import NoopCommit

batch = [
    (b"apple", Put(b"red")),
    (b"banana", Put(b"yellow")),
    (b"cherry", Put(b"dark red")),
]
tree, deleted = apply_to(None, batch, PanicSource())

tree.commit(NoopCommit())   # compute hashes, keep everything in memory
print(tree.hash().hex())    # root hash
print(list(tree))           # [(b"apple", b"red"), (b"banana", b"yellow"), (b"cherry", b"dark red")]
```

`apply_to` returns two things:

- the resulting tree, or `None` if the tree ends up empty;
- the list of deleted keys, in key order.

To change an existing tree, wrap it in a `Walker`:

```python
from merktree.walker import Walker

tree, deleted = apply_to(
    Walker(tree, PanicSource()),
    [(b"banana", Delete())],
    PanicSource(),
)
# deleted == [b"banana"]
```

Deleting a key that is not in the tree does nothing.

`PanicSource` is meant for trees that are kept entirely in memory. If it is
ever asked for a node, it raises `RuntimeError`.

Iterating over a `Tree` yields `(key, value)` pairs in key order. Subtrees
that are not in memory are skipped.

## Looking up values

`Tree.get_value(key)` returns one of three results:

- `Found`, whose `value` attribute holds the value;
- `NotFound`, when the key is absent;
- `Pruned`, when the search reaches a subtree that is not in memory.

## Committing and pruning

After changes, a node's links to its children are `Modified` links. Such a
link has no hash yet, so `Tree.hash()` raises `ValueError` until the tree is
committed.

`Tree.commit(committer)` works through the tree as follows:

1. It turns every `Modified` link into a `Loaded` link with a freshly
   computed hash.
2. It calls `committer.write(node)` once for each updated node. Children are
   written before their parent.
3. It calls `committer.prune(node)`, which returns
   `(prune_left, prune_right)`. Each child marked `True` is replaced by a
   `Reference` link. That link keeps only the child's key, its hash and the
   heights of its children.

A committer is a subclass of `Commit`, which is an abstract base class:

- `write` must be implemented.
- The default `prune` prunes every child that exists.

`NoopCommit` writes to no store. It records the key of each node passed to
`write` in its `written` list. By default it prunes nothing. Pass
`keep_in_memory=False` and it prunes both children of every node.

## Storing nodes and fetching them back

The package keeps no store of its own. A store is built from two parts:

- a `Commit` subclass that writes nodes;
- a `Fetch` subclass that reads them back.

`Fetch` asks for a single method, `fetch_by_key(key)`. It returns a `Tree`,
or `None` when the key is unknown. `fetch_by_key_expect` and `fetch` raise
`KeyNotFoundError` for a missing key.

Here is a store that uses a dictionary:

```python
from merktree.encoding import encode_tree, decode_tree
from merktree.fetch import Fetch
from merktree.ref_walker import RefWalker
from merktree.tree import Commit


class DictStore(Commit, Fetch):
    def __init__(self):
        self.nodes = {}

    def write(self, tree):
        self.nodes[tree.key()] = encode_tree(tree)

    def fetch_by_key(self, key):
        data = self.nodes.get(key)
        return None if data is None else decode_tree(key, data)


store = DictStore()
tree.commit(store)              # default prune: children are now references
print(tree.get_value(b"apple")) # Pruned()

child = RefWalker(tree, store).walk(True)   # loads the left child from the store
```

Pruned children are brought back in one of three ways:

- `Tree.load(left, source)` replaces a `Reference` link with a `Loaded` one.
- `RefWalker.walk(left)` loads as needed. It raises `ValueError` on a
  `Modified` link.
- `Walker` fetches from its source whenever it detaches a pruned child.

## Encoding

`merktree.encoding` gives each node a compact binary form. The encoding holds:

- the left link and the right link, each as a tag byte, then the key length,
  the key, the hash and the two child heights;
- the pair's hash and value.

The node's own key is not part of the encoding. You supply it when decoding.

```python
from merktree.encoding import encode_tree, decode_tree, tree_encoding_length

data = encode_tree(tree)
assert len(data) == tree_encoding_length(tree)
node = decode_tree(tree.key(), data)
```

The encoding has these limits:

- A `Modified` link cannot be encoded, so commit the tree first.
- Keys must be shorter than 256 bytes.
- Decoded children are always `Reference` links.

## Hashing

Hashes are SHA-512/256 digests, 32 bytes long:

- `kv_hash(key, value)` hashes a pair with 32-bit length prefixes. It raises
  `OverflowError` for longer inputs.
- `node_hash(kv, left, right)` combines a pair's hash with its children's
  hashes. A missing child counts as `NULL_HASH`, which is 32 zero bytes.

## Inspecting a tree

`merktree.display.format_tree(tree, color=False)` draws the tree sideways,
with one key per line in key order. Each key is shown as a list of byte
values. With `color=True` the output includes terminal colour codes: pruned
children are drawn in blue, and nodes in memory get a grey background.

## What the package does not do

- It has no command-line program.
- It has no storage engine or database. Persistence is whatever your `Commit`
  and `Fetch` subclasses provide.
- It does not make proofs from the hashes.
"""Binary encoding of tree nodes for storage.

A node is encoded as its left link, its right link and its key/value pair.
Each link is preceded by a tag byte (0 for no child, 1 for a child). The
node's own key is not part of the encoding; it is supplied when decoding.
"""

from typing import Optional, Tuple

from .kv import KV
from .link import Link
from .tree import Tree

_NONE_TAG = 0
_SOME_TAG = 1


def _tree_kv(tree: Tree) -> KV:
    return KV.from_fields(tree.key(), tree.value(), tree.kv_hash())


def _encode_option_link(link: Optional[Link]) -> bytes:
    if link is None:
        return bytes([_NONE_TAG])
    return bytes([_SOME_TAG]) + link.encode()


def _option_link_length(link: Optional[Link]) -> int:
    return 1 if link is None else 1 + link.encoding_length()


def _decode_option_link(data: bytes, offset: int) -> Tuple[Optional[Link], int]:
    if offset >= len(data):
        raise ValueError("unexpected end of input while reading link tag")
    tag = data[offset]
    if tag == _NONE_TAG:
        return None, offset + 1
    if tag == _SOME_TAG:
        link = Link.decode(data[offset + 1:])
        return link, offset + 1 + link.encoding_length()
    raise ValueError(f"invalid link tag: {tag}")


def encode_tree(tree: Tree) -> bytes:
    """Encode a node; raises ValueError if a child link is modified."""
    return (
        _encode_option_link(tree.link(True))
        + _encode_option_link(tree.link(False))
        + _tree_kv(tree).encode()
    )


def tree_encoding_length(tree: Tree) -> int:
    """Length in bytes of the encoding of a node."""
    return (
        _option_link_length(tree.link(True))
        + _option_link_length(tree.link(False))
        + _tree_kv(tree).encoding_length()
    )


def decode_tree(key: bytes, data: bytes) -> Tree:
    """Decode a node stored under the given key."""
    data = bytes(data)
    left, offset = _decode_option_link(data, 0)
    right, offset = _decode_option_link(data, offset)
    kv = KV.decode(data[offset:])
    return Tree.from_fields(key, kv.value, kv.hash, left, right)
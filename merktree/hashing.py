"""Hashes for key/value pairs and tree nodes, using SHA-512/256."""

import struct

from cryptography.hazmat.primitives import hashes

HASH_LENGTH = 32
"""Length of a hash digest in bytes."""

NULL_HASH = bytes(HASH_LENGTH)
"""A zero-filled hash, used in place of a missing child."""

_U32_MAX = 0xFFFFFFFF


def _digest(*parts: bytes) -> bytes:
    hasher = hashes.Hash(hashes.SHA512_256())
    for part in parts:
        hasher.update(part)
    return hasher.finalize()


def _check_hash(name: str, value: bytes) -> bytes:
    value = bytes(value)
    if len(value) != HASH_LENGTH:
        raise ValueError(f"{name} hash must be {HASH_LENGTH} bytes, got {len(value)}")
    return value


def kv_hash(key: bytes, value: bytes) -> bytes:
    """Hash a key/value pair.

    Raises OverflowError if the key or the value is longer than a 32-bit
    length prefix can describe.
    """
    key = bytes(key)
    value = bytes(value)
    if len(key) > _U32_MAX or len(value) > _U32_MAX:
        raise OverflowError("key or value is too long to hash")
    return _digest(
        b"\x00",
        struct.pack("<I", len(key)),
        key,
        struct.pack("<I", len(value)),
        value,
    )


def node_hash(kv: bytes, left: bytes, right: bytes) -> bytes:
    """Hash a node from its key/value hash and the hashes of its children."""
    kv = _check_hash("kv", kv)
    left = _check_hash("left", left)
    right = _check_hash("right", right)
    return _digest(b"\x01", left, kv, right)
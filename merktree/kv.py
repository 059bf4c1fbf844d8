"""Key/value pairs together with their hash."""

from .hashing import HASH_LENGTH, _check_hash, kv_hash


class KV:
    """A key, a value, and the hash of the pair."""

    __slots__ = ("key", "value", "hash")

    def __init__(self, key: bytes, value: bytes) -> None:
        self.key = bytes(key)
        self.value = bytes(value)
        self.hash = kv_hash(self.key, self.value)

    @classmethod
    def from_fields(cls, key: bytes, value: bytes, hash: bytes) -> "KV":
        """Build a KV from raw fields; the hash is not checked against the pair."""
        kv = cls.__new__(cls)
        kv.key = bytes(key)
        kv.value = bytes(value)
        kv.hash = _check_hash("kv", hash)
        return kv

    def with_value(self, value: bytes) -> "KV":
        """Return a KV with the same key, the given value and a fresh hash."""
        return type(self)(self.key, value)

    def encode(self) -> bytes:
        """Encode as the hash followed by the value; the key is not included."""
        return self.hash + self.value

    def encoding_length(self) -> int:
        if len(self.key) >= 256:
            raise ValueError("Key length must be less than 256")
        return HASH_LENGTH + len(self.value)

    @classmethod
    def decode(cls, data: bytes) -> "KV":
        """Decode a hash followed by a value; the resulting key is empty."""
        data = bytes(data)
        if len(data) < HASH_LENGTH:
            raise ValueError("unexpected end of input while reading kv hash")
        return cls.from_fields(b"", data[HASH_LENGTH:], data[:HASH_LENGTH])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KV):
            return NotImplemented
        return (self.key, self.value, self.hash) == (other.key, other.value, other.hash)

    def __repr__(self) -> str:
        return f"KV(key={self.key!r}, value={self.value!r}, hash={self.hash.hex()})"
"""
Entry and EntryKind for representing stored bytes with a write marker.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from todostore.models.exceptions import StoreReadError


class EntryKind(IntEnum):
    """Kind of write recorded for a key."""

    PUT = 0  # Live value
    TOMBSTONE = 1  # Deletion marker


@dataclass(frozen=True)
class Entry:
    """
    A raw value as kept by the engine.

    Attributes:
        data: The stored bytes (None for tombstones).
        kind: Whether this is a live value or a tombstone.
    """

    data: bytes | None
    kind: EntryKind = EntryKind.PUT
    _encoded: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        data = self.data if self.data is not None else b""
        # Format: [kind:1][data_len:4][data]
        encoded = self.kind.to_bytes(1, "big") + len(data).to_bytes(4, "big") + data
        object.__setattr__(self, "_encoded", encoded)

    @classmethod
    def put(cls, data: bytes) -> "Entry":
        return cls(data=bytes(data), kind=EntryKind.PUT)

    @classmethod
    def tombstone(cls) -> "Entry":
        return cls(data=None, kind=EntryKind.TOMBSTONE)

    def is_tombstone(self) -> bool:
        return self.kind == EntryKind.TOMBSTONE

    def __bytes__(self) -> bytes:
        return self._encoded

    def size_bytes(self) -> int:
        return len(self._encoded)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Entry":
        """Deserialize from bytes."""
        if len(data) < 5:
            raise StoreReadError(f"Entry too short: {len(data)} bytes")
        try:
            kind = EntryKind(data[0])
        except ValueError as exc:
            raise StoreReadError(f"Unknown entry kind: {data[0]}") from exc

        data_len = int.from_bytes(data[1:5], "big")
        payload = data[5 : 5 + data_len]
        if len(payload) < data_len:
            raise StoreReadError(
                f"Entry payload truncated: expected {data_len} bytes, got {len(payload)}"
            )

        if kind == EntryKind.TOMBSTONE:
            return cls.tombstone()
        return cls.put(payload)

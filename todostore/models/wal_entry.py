"""
WALEntry dataclass for Write-Ahead Log entries.
"""

from dataclasses import dataclass

from todostore.models.entry import Entry


@dataclass
class WALEntry:
    """
    Represents a single entry in the Write-Ahead Log.

    Attributes:
        key: The key being written.
        entry: The value or tombstone being written.
        seq: Sequence number for ordering entries.
    """

    key: bytes
    entry: Entry
    seq: int

    def __bytes__(self) -> bytes:
        """
        Serialize the entry to bytes for storage.

        Format: [seq:8][key_len:4][key][entry_len:4][entry]
        """
        entry_bytes = bytes(self.entry)

        return (
            self.seq.to_bytes(8, "big")
            + len(self.key).to_bytes(4, "big")
            + self.key
            + len(entry_bytes).to_bytes(4, "big")
            + entry_bytes
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "WALEntry":
        """Deserialize from bytes."""
        offset = 0

        seq = int.from_bytes(data[offset : offset + 8], "big")
        offset += 8

        key_len = int.from_bytes(data[offset : offset + 4], "big")
        offset += 4
        key = bytes(data[offset : offset + key_len])
        offset += key_len

        entry_len = int.from_bytes(data[offset : offset + 4], "big")
        offset += 4
        entry = Entry.from_bytes(data[offset : offset + entry_len])

        return cls(key=key, entry=entry, seq=seq)

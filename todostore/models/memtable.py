"""
MemTable - In-memory sorted table keyed by raw bytes.
"""

import bisect
from collections.abc import Iterator

from todostore.interfaces.sorted_source import SortedSource
from todostore.models.entry import Entry


class MemTable(SortedSource):
    """
    In-memory sorted table.

    Entries live in a dict for O(1) point lookups; a parallel key list is
    kept sorted with bisect for ordered scans and seeks.

    Supports:
    - put / delete (tombstone) / get
    - seek for cursor-style scans
    - Immutability marking before flush to SSTable
    """

    # Per-key bookkeeping overhead counted towards size_bytes()
    ENTRY_OVERHEAD = 16

    def __init__(self) -> None:
        self._entries: dict[bytes, Entry] = {}
        self._keys: list[bytes] = []
        self._size_bytes = 0
        self._immutable = False

    @property
    def is_immutable(self) -> bool:
        return self._immutable

    def mark_immutable(self) -> None:
        self._immutable = True

    def put(self, key: bytes, entry: Entry) -> bool:
        """
        Insert or replace the entry for a key.

        Returns:
            True if successful, False if MemTable is immutable.
        """
        if self._immutable:
            return False

        previous = self._entries.get(key)
        if previous is None:
            bisect.insort(self._keys, key)
            self._size_bytes += len(key) + self.ENTRY_OVERHEAD
        else:
            self._size_bytes -= previous.size_bytes()

        self._entries[key] = entry
        self._size_bytes += entry.size_bytes()
        return True

    def get(self, key: bytes) -> Entry | None:
        return self._entries.get(key)

    def seek(self, key: bytes, inclusive: bool = True) -> bytes | None:
        if inclusive:
            idx = bisect.bisect_left(self._keys, key)
        else:
            idx = bisect.bisect_right(self._keys, key)
        if idx < len(self._keys):
            return self._keys[idx]
        return None

    def size_bytes(self) -> int:
        return self._size_bytes

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[tuple[bytes, Entry]]:
        for key in list(self._keys):
            yield key, self._entries[key]

"""
SortedSource abstract base class for ordered, byte-keyed entry sources.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from todostore.models.entry import Entry


class SortedSource(ABC):
    """
    Abstract base class for ordered sources of (key, Entry) pairs.

    Keys are compared as raw bytes, so iteration order is the
    byte-lexicographic order of the keys.

    Implementations:
    - MemTable: mutable, in memory
    - SSTable: immutable, on disk
    """

    @abstractmethod
    def get(self, key: bytes) -> "Entry | None":
        """
        Retrieve the entry recorded for a key.

        Args:
            key: The key to look up.

        Returns:
            The Entry (possibly a tombstone) if present, None otherwise.
        """
        pass

    @abstractmethod
    def seek(self, key: bytes, inclusive: bool = True) -> bytes | None:
        """
        Find the first key at or after a position.

        Args:
            key: Position to seek from.
            inclusive: If True, `key` itself qualifies; otherwise only
                keys strictly greater than `key` do.

        Returns:
            The smallest qualifying key, or None when the source is exhausted.
        """
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[tuple[bytes, "Entry"]]:
        """Return an iterator over all (key, Entry) pairs in key order."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        """Return the number of keys held (tombstones included)."""
        pass

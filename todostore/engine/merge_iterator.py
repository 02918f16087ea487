"""
K-way merge of sorted entry sources.
"""

import heapq
from collections.abc import Iterator

from todostore.models.entry import Entry


class KWayMergeIterator:
    """
    Merges K sorted (key, Entry) iterators using a min-heap.

    Time Complexity: O(M log K) where M = total entries, K = number of sources
    Space Complexity: O(K) for the heap

    Sources are given newest first; when several sources hold the same key,
    the entry from the earliest source wins and the others are discarded.
    """

    def __init__(self, sources: list[Iterator[tuple[bytes, Entry]]]) -> None:
        self._heap: list[tuple[bytes, int, Entry]] = []
        self._sources: list[Iterator[tuple[bytes, Entry]] | None] = list(sources)

        for i in range(len(self._sources)):
            self._advance_source(i)

    def _advance_source(self, source_idx: int) -> None:
        source = self._sources[source_idx]
        if source is None:
            return

        try:
            key, entry = next(source)
        except StopIteration:
            self._sources[source_idx] = None
            return
        # Lower source_idx sorts first on equal keys, so newer data wins
        heapq.heappush(self._heap, (key, source_idx, entry))

    def __iter__(self) -> "KWayMergeIterator":
        return self

    def __next__(self) -> tuple[bytes, Entry]:
        if not self._heap:
            raise StopIteration

        key, source_idx, entry = heapq.heappop(self._heap)
        self._advance_source(source_idx)

        while self._heap and self._heap[0][0] == key:
            _, dup_source_idx, _ = heapq.heappop(self._heap)
            self._advance_source(dup_source_idx)

        return key, entry


def merge_live_entries(
    sources: list[Iterator[tuple[bytes, Entry]]],
) -> Iterator[tuple[bytes, Entry]]:
    """Merge sources newest-first and drop keys whose newest entry is a tombstone."""
    for key, entry in KWayMergeIterator(sources):
        if not entry.is_tombstone():
            yield key, entry

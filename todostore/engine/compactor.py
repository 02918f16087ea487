"""
SSTableCompactor - Compact multiple SSTables into one.
"""

import logging
import os

from todostore.engine.merge_iterator import merge_live_entries
from todostore.models.sstable import SSTable

logger = logging.getLogger(__name__)


class SSTableCompactor:
    """
    Compacts every SSTable of a store into a single SSTable.

    Responsibilities:
    - Merge entries from all tables using a k-way merge
    - Deduplicate keys (newest value wins)
    - Drop tombstones, since no older table remains to be masked
    - Write output using the temp file + rename pattern

    Memory stays O(K) in the number of input tables.
    """

    def __init__(self, sstables: list[SSTable], sstable_dir: str) -> None:
        """
        Initialize compactor.

        Args:
            sstables: Tables to compact, ordered newest to oldest.
                     The ordering is critical for correct deduplication.
            sstable_dir: Directory holding the store's SSTables.
        """
        self._sstables = sstables
        self._sstable_dir = sstable_dir

    def compact(self, new_ss_id: int) -> SSTable:
        """
        Merge the input tables into a new SSTable.

        The input tables are left untouched; the caller swaps them out and
        destroys them once the new table is in place.

        Args:
            new_ss_id: ID for the new compacted SSTable. It must be higher
                than every input ID so recovery orders it correctly.

        Returns:
            The newly created compacted SSTable.
        """
        final_path = os.path.join(self._sstable_dir, f"{new_ss_id}.sst")
        sources = [iter(sstable) for sstable in self._sstables]

        watermark = max((table.wal_watermark for table in self._sstables), default=0)

        sstable = SSTable.create(
            new_ss_id, final_path, merge_live_entries(sources), wal_watermark=watermark
        )
        logger.info(
            "Compacted %d SSTables into %s (%d keys)",
            len(self._sstables),
            final_path,
            len(sstable),
        )
        return sstable

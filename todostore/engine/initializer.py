"""
StoreInitializer - Handle startup and crash recovery.
"""

import logging
import os
import re
from pathlib import Path

from todostore.models.memtable import MemTable
from todostore.models.sstable import SSTable
from todostore.models.wal import WAL

logger = logging.getLogger(__name__)

WAL_PATTERN = re.compile(r"^wal_(\d+)\.wal$")
SSTABLE_PATTERN = re.compile(r"^(\d+)\.sst$")


class StoreInitializer:
    """
    Handles store initialization and crash recovery.

    Responsibilities:
    - Create the directory layout
    - Remove orphaned temp files from interrupted writes
    - Recover MemTables from WALs left behind by an unclean shutdown
    - Load existing SSTables and report the next free file IDs
    """

    def __init__(self, storage_dir: str) -> None:
        self.storage_dir = storage_dir
        self.wal_dir = os.path.join(storage_dir, "wal")
        self.sstable_dir = os.path.join(storage_dir, "sstables")

    def prepare(self) -> None:
        """Create the directory layout if missing."""
        Path(self.wal_dir).mkdir(parents=True, exist_ok=True)
        Path(self.sstable_dir).mkdir(parents=True, exist_ok=True)

    def _list_ids(self, directory: str, pattern: re.Pattern) -> list[tuple[int, str]]:
        if not os.path.exists(directory):
            return []

        found = []
        for filename in os.listdir(directory):
            match = pattern.match(filename)
            if match:
                found.append((int(match.group(1)), os.path.join(directory, filename)))
        return sorted(found)

    def _cleanup_temp_files(self) -> None:
        """
        Remove orphaned .tmp files from interrupted flushes and compactions.

        An interrupted flush still has its WAL; an interrupted compaction
        still has its input tables.
        """
        for directory in (self.sstable_dir, self.storage_dir):
            for filename in os.listdir(directory):
                if filename.endswith(".tmp"):
                    tmp_path = os.path.join(directory, filename)
                    try:
                        os.remove(tmp_path)
                    except OSError as exc:
                        logger.warning("Failed to remove temp file %s: %s", tmp_path, exc)

    def recover_memtable(self, wal: WAL) -> MemTable:
        """Rebuild an immutable MemTable by replaying a WAL."""
        memtable = MemTable()
        for wal_entry in wal:
            memtable.put(wal_entry.key, wal_entry.entry)
        memtable.mark_immutable()
        return memtable

    def recover(self) -> tuple[list[tuple[MemTable, WAL]], list[SSTable], int, int]:
        """
        Recover state from disk.

        WALs below the highest SSTable watermark were already flushed before
        their file could be deleted; they are removed instead of replayed.

        Returns:
            Tuple of:
            - (MemTable, WAL) pairs recovered from WAL files, oldest first
            - SSTables, oldest first
            - Next WAL ID to use
            - Next SSTable ID to use
        """
        self._cleanup_temp_files()

        wal_files = self._list_ids(self.wal_dir, WAL_PATTERN)
        sstable_files = self._list_ids(self.sstable_dir, SSTABLE_PATTERN)
        recovered: list[tuple[MemTable, WAL]] = []
        sstables: list[SSTable] = []

        try:
            for ss_id, sstable_path in sstable_files:
                sstable = SSTable(id=ss_id, file_path=sstable_path)
                sstable.open()
                sstables.append(sstable)

            watermark = max((sstable.wal_watermark for sstable in sstables), default=0)

            for wal_id, wal_path in wal_files:
                if wal_id < watermark:
                    logger.info("Removing already flushed WAL %s", wal_path)
                    os.remove(wal_path)
                    continue

                wal = WAL(id=wal_id, file_path=wal_path)
                wal.open(read_only=True)
                try:
                    memtable = self.recover_memtable(wal)
                except Exception:
                    wal.close()
                    raise
                recovered.append((memtable, wal))
                logger.info("Recovered %d keys from %s", len(memtable), wal_path)
        except Exception:
            for sstable in sstables:
                sstable.close()
            for _, wal in recovered:
                wal.close()
            raise

        next_wal_id = max(wal_files[-1][0] + 1 if wal_files else 0, watermark)
        next_ss_id = sstable_files[-1][0] + 1 if sstable_files else 0
        return recovered, sstables, next_wal_id, next_ss_id

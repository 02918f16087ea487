"""
Store - embedded, ordered, byte-keyed key-value engine.
"""

import dataclasses
import logging
import os
import threading
from collections.abc import Iterator

from todostore.config import StoreConfig
from todostore.engine.compactor import SSTableCompactor
from todostore.engine.dir_lock import DirectoryLock
from todostore.engine.id_generator import IdGenerator
from todostore.engine.initializer import StoreInitializer
from todostore.models.entry import Entry
from todostore.models.exceptions import (
    OpenError,
    StoreClosedError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from todostore.models.memtable import MemTable
from todostore.models.sstable import SSTable
from todostore.models.wal import WAL
from todostore.models.wal_entry import WALEntry

logger = logging.getLogger(__name__)


class Store:
    """
    LSM-style key-value engine over raw bytes.

    Provides:
    - put(key, value) / get(key) / delete(key)
    - scan(prefix): live, ordered cursor over keys sharing a prefix
    - generate_id(): persisted, strictly increasing u64 IDs

    Architecture:
    - Writes go to the WAL (durability) and then the MemTable
    - A MemTable over the size threshold is flushed to an SSTable
    - Reads check the MemTable first, then SSTables newest to oldest
    - Once enough SSTables pile up they are compacted into one

    One Store owns its directory exclusively for as long as it is open.
    """

    def __init__(self, config: StoreConfig) -> None:
        self._config = config
        self._storage_dir = os.path.abspath(config.path)
        self._initializer = StoreInitializer(self._storage_dir)
        self._dir_lock = DirectoryLock(self._storage_dir)
        self._ids = IdGenerator(
            os.path.join(self._storage_dir, "IDS"), config.id_reservation
        )

        self._memtable: MemTable | None = None
        self._wal: WAL | None = None

        # On-disk SSTables, newest first
        self._sstables: list[SSTable] = []

        self._wal_id_seq = 0
        self._ss_id_seq = 0

        self._mutex = threading.RLock()
        self._closed = True

    @classmethod
    def open(cls, path: str | None = None, config: StoreConfig | None = None) -> "Store":
        """
        Open (creating if absent) the store at `path`.

        Args:
            path: Store directory; overrides `config.path` when given.
            config: Tunables; defaults to StoreConfig().

        Raises:
            OpenError: If the directory is locked by another handle or
                cannot be recovered.
        """
        config = config or StoreConfig()
        if path is not None:
            config = dataclasses.replace(config, path=path)

        store = cls(config)
        store._open()
        return store

    @property
    def path(self) -> str:
        return self._storage_dir

    @property
    def closed(self) -> bool:
        return self._closed

    def _open(self) -> None:
        try:
            os.makedirs(self._storage_dir, exist_ok=True)
            self._dir_lock.acquire()
        except OpenError:
            raise
        except OSError as exc:
            raise OpenError(f"Cannot open store at {self._storage_dir}: {exc}") from exc

        recovered = []
        try:
            self._initializer.prepare()
            recovered, sstables, next_wal_id, next_ss_id = self._initializer.recover()
            self._ids.load()

            self._sstables = list(reversed(sstables))
            self._wal_id_seq = next_wal_id
            self._ss_id_seq = next_ss_id

            for memtable, wal in recovered:
                self._install(self._write_sstable(memtable, wal.id))
                self._retire_wal(wal)

            self._wal = self._open_wal()
            self._memtable = MemTable()
            self._closed = False
            self._maybe_compact()
        except (StoreError, OSError) as exc:
            for _, wal in recovered:
                wal.close()
            self._abort_open()
            raise OpenError(f"Cannot recover store at {self._storage_dir}: {exc}") from exc

        logger.info(
            "Opened store %s (%d SSTables)", self._storage_dir, len(self._sstables)
        )

    def _abort_open(self) -> None:
        self._closed = True
        for sstable in self._sstables:
            sstable.close()
        self._sstables = []
        if self._wal is not None:
            self._wal.close()
            self._wal = None
        self._dir_lock.release()

    def _ensure_open(self) -> None:
        if self._closed:
            raise StoreClosedError(f"Store {self._storage_dir} is closed")

    def _open_wal(self) -> WAL:
        wal_id = self._wal_id_seq
        wal_path = os.path.join(self._initializer.wal_dir, f"wal_{wal_id}.wal")

        wal = WAL(id=wal_id, file_path=wal_path)
        wal.set_fsync_interval(self._config.fsync_interval_ms)
        try:
            wal.open()
        except OSError as exc:
            raise StoreWriteError(f"Failed to open WAL {wal_path}: {exc}") from exc

        self._wal_id_seq += 1
        return wal

    # Writes

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or overwrite the value stored at `key`."""
        self._write(bytes(key), Entry.put(value))

    def delete(self, key: bytes) -> None:
        """Delete `key`. Deleting an absent key is not an error."""
        self._write(bytes(key), Entry.tombstone())

    def _write(self, key: bytes, entry: Entry) -> None:
        """
        Log and apply one write.

        A full MemTable is flushed before the write rather than after, so a
        StoreWriteError always means the write was not applied.
        """
        with self._mutex:
            self._ensure_open()
            if self._memtable.size_bytes() >= self._config.memtable_threshold:
                self._rotate()

            self._wal.append(WALEntry(key=key, entry=entry, seq=self._wal.seq))
            if not self._memtable.put(key, entry):
                raise StoreWriteError(f"Active MemTable of {self._storage_dir} is immutable")

    def generate_id(self) -> int:
        """Allocate the next store-wide ID."""
        with self._mutex:
            self._ensure_open()
            return self._ids.next_id()

    # Reads

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored at `key`, or None if absent."""
        with self._mutex:
            self._ensure_open()
            entry = self._lookup(bytes(key))
        if entry is None or entry.is_tombstone():
            return None
        return entry.data

    def _lookup(self, key: bytes) -> Entry | None:
        entry = self._memtable.get(key)
        if entry is not None:
            return entry

        for sstable in self._sstables:
            try:
                entry = sstable.get(key)
            except OSError as exc:
                raise StoreReadError(f"Failed to read {sstable.file_path}: {exc}") from exc
            if entry is not None:
                return entry
        return None

    def _seek(self, key: bytes, inclusive: bool) -> bytes | None:
        """Smallest key at/after `key` across the MemTable and all SSTables."""
        candidates = [self._memtable.seek(key, inclusive)]
        candidates.extend(sstable.seek(key, inclusive) for sstable in self._sstables)
        found = [c for c in candidates if c is not None]
        return min(found) if found else None

    def scan(self, prefix: bytes = b"") -> "ScanCursor":
        """
        Return a lazy cursor over live (key, value) pairs whose key starts
        with `prefix`, in byte-lexicographic key order.
        """
        with self._mutex:
            self._ensure_open()
        return ScanCursor(self, bytes(prefix))

    def __iter__(self) -> Iterator[tuple[bytes, bytes]]:
        return self.scan()

    # Maintenance

    def flush(self) -> None:
        """Flush the active MemTable to an SSTable if it holds anything."""
        with self._mutex:
            self._ensure_open()
            if len(self._memtable):
                self._rotate()

    def compact(self) -> None:
        """Merge every SSTable into one, dropping overwritten values and tombstones."""
        with self._mutex:
            self._ensure_open()
            if len(self._sstables) > 1:
                self._compact()

    def _rotate(self) -> None:
        """
        Swap in a fresh MemTable and WAL, flushing the old MemTable.

        The new WAL is opened and the SSTable written before anything is
        swapped, so a failure in either leaves the store as it was.
        """
        new_wal = self._open_wal()
        try:
            sstable = self._write_sstable(self._memtable, self._wal.id)
        except StoreError:
            try:
                new_wal.destroy()
            except OSError as exc:
                logger.warning("Failed to discard unused WAL %s: %s", new_wal.file_path, exc)
            raise

        old_memtable, old_wal = self._memtable, self._wal
        self._install(sstable)
        old_memtable.mark_immutable()
        self._memtable, self._wal = MemTable(), new_wal

        self._retire_wal(old_wal)
        self._maybe_compact()

    def _write_sstable(self, memtable: MemTable, wal_id: int) -> SSTable | None:
        """
        Write a MemTable out as a new SSTable, or return None if it is empty.

        The table records `wal_id + 1` as its WAL watermark: recovery treats
        every WAL below it as already flushed.
        """
        if not len(memtable):
            return None

        ss_id = self._ss_id_seq
        file_path = os.path.join(self._initializer.sstable_dir, f"{ss_id}.sst")
        sstable = SSTable.create(ss_id, file_path, iter(memtable), wal_watermark=wal_id + 1)
        self._ss_id_seq += 1
        logger.debug("Flushed %d keys to %s", len(memtable), file_path)
        return sstable

    def _install(self, sstable: SSTable | None) -> None:
        if sstable is not None:
            self._sstables.insert(0, sstable)

    def _retire_wal(self, wal: WAL) -> None:
        try:
            wal.destroy()
        except OSError as exc:
            raise StoreWriteError(f"Failed to delete WAL {wal.file_path}: {exc}") from exc

    def _maybe_compact(self) -> None:
        if len(self._sstables) >= self._config.compaction_threshold:
            self._compact()

    def _compact(self) -> None:
        old_sstables = self._sstables
        ss_id = self._ss_id_seq
        compactor = SSTableCompactor(old_sstables, self._initializer.sstable_dir)
        new_sstable = compactor.compact(ss_id)
        self._ss_id_seq += 1
        self._sstables = [new_sstable]

        # Oldest first: any table left behind is newer than every deleted one
        remaining = list(reversed(old_sstables))
        for i, sstable in enumerate(remaining):
            try:
                sstable.destroy()
            except OSError as exc:
                for rest in remaining[i + 1:]:
                    rest.close()
                raise StoreWriteError(
                    f"Failed to delete compacted SSTable {sstable.file_path}: {exc}"
                ) from exc

    # Lifecycle

    def close(self) -> None:
        """Flush pending writes, persist the ID counter and release the directory."""
        with self._mutex:
            if self._closed:
                return

            try:
                self._install(self._write_sstable(self._memtable, self._wal.id))
                self._memtable.mark_immutable()
                self._ids.close()
                self._retire_wal(self._wal)
            finally:
                self._closed = True
                for sstable in self._sstables:
                    sstable.close()
                self._wal.close()
                self._dir_lock.release()

        logger.info("Closed store %s", self._storage_dir)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Store(path={self._storage_dir!r}, {state})"


class ScanCursor(Iterator[tuple[bytes, bytes]]):
    """
    Lazy, single-pass cursor over a Store.

    Every pull re-seeks past the last key it returned, so the cursor sees
    writes made while it is being consumed rather than a frozen snapshot.
    The position advances before the value is read: if reading one entry
    raises, the next pull carries on with the following key.
    """

    def __init__(self, store: Store, prefix: bytes) -> None:
        self._store = store
        self._prefix = prefix
        self._last: bytes | None = None
        self._done = False

    def __iter__(self) -> "ScanCursor":
        return self

    def __next__(self) -> tuple[bytes, bytes]:
        while not self._done:
            with self._store._mutex:
                self._store._ensure_open()
                if self._last is None:
                    key = self._store._seek(self._prefix, inclusive=True)
                else:
                    key = self._store._seek(self._last, inclusive=False)

                if key is None or not key.startswith(self._prefix):
                    self._done = True
                    break

                self._last = key
                entry = self._store._lookup(key)

            if entry is not None and not entry.is_tombstone():
                return key, entry.data

        raise StopIteration

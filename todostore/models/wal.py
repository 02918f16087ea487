import logging
import os
import time
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from todostore.models.exceptions import StoreWriteError, WALCorruptionError
from todostore.models.wal_entry import WALEntry

logger = logging.getLogger(__name__)

LENGTH_SIZE = 4
CHECKSUM_SIZE = 4
MAX_FSYNC_INTERVAL_MS = 10000


def _checksum(payload: bytes) -> int:
    return zlib.crc32(payload) & 0xFFFFFFFF


def frame(entry: WALEntry) -> bytes:
    """Frame an entry as [length:4][entry][crc32:4]."""
    payload = bytes(entry)
    return (
        len(payload).to_bytes(LENGTH_SIZE, "big")
        + payload
        + _checksum(payload).to_bytes(CHECKSUM_SIZE, "big")
    )


def read_frames(file_path: str) -> Iterator[WALEntry]:
    """
    Replay the entries framed in a log file, oldest first.

    A record cut short by a crash ends the replay quietly; a complete
    record whose checksum does not match raises WALCorruptionError.
    """
    if not os.path.exists(file_path):
        return

    with open(file_path, "rb") as f:
        while True:
            offset = f.tell()
            header = f.read(LENGTH_SIZE)
            if len(header) < LENGTH_SIZE:
                return

            length = int.from_bytes(header, "big")
            payload = f.read(length)
            trailer = f.read(CHECKSUM_SIZE)
            if len(payload) < length or len(trailer) < CHECKSUM_SIZE:
                return

            stored = int.from_bytes(trailer, "big")
            computed = _checksum(payload)
            if stored != computed:
                raise WALCorruptionError(expected=stored, actual=computed, entry_offset=offset)

            yield WALEntry.from_bytes(payload)


class WAL:
    """
    Append-only write-ahead log backing one MemTable.

    Every put and delete is framed and appended here before it reaches the
    MemTable; after a crash the log is replayed to rebuild it.
    """

    def __init__(self, id: int, file_path: str) -> None:
        self.id = id
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._read_only = False
        self._seq = 0

        # 0 = fsync after every append
        self._fsync_interval_ms = 0
        self._last_sync = 0.0

    @property
    def seq(self) -> int:
        """Sequence number the next appended entry should carry."""
        return self._seq

    def set_fsync_interval(self, fsync_interval_ms: int) -> None:
        if not 0 <= fsync_interval_ms <= MAX_FSYNC_INTERVAL_MS:
            raise ValueError(
                f"fsync_interval_ms must be between 0 and {MAX_FSYNC_INTERVAL_MS}, "
                f"got {fsync_interval_ms}"
            )
        self._fsync_interval_ms = fsync_interval_ms

    def open(self, read_only: bool = False) -> None:
        """
        Open the log file, creating it when opened for writing.

        A writable log resumes its sequence after the last replayed entry.
        """
        self._read_only = read_only
        if read_only:
            self._file = open(self.file_path, "rb")
            return

        Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
        self._seq = max((entry.seq + 1 for entry in self), default=0)
        self._file = open(self.file_path, "ab")

    def append(self, entry: WALEntry) -> None:
        """
        Append an entry, syncing to disk according to the fsync interval.

        Raises:
            RuntimeError: If the log is read-only or not open.
            StoreWriteError: If the write or sync fails. The log is cut back
                to its previous length so the entry is never replayed.
        """
        if self._read_only or self._file is None:
            raise RuntimeError(f"WAL {self.file_path} is not open for writing")

        offset = self._file.tell()
        try:
            self._file.write(frame(entry))
            if self._sync_due():
                self._sync()
        except OSError as exc:
            self._truncate(offset)
            raise StoreWriteError(f"Failed to append to WAL {self.file_path}: {exc}") from exc

        self._seq = entry.seq + 1

    def _truncate(self, offset: int) -> None:
        try:
            self._file.truncate(offset)
        except OSError as exc:
            logger.warning("Failed to cut WAL %s back to %d bytes: %s", self.file_path, offset, exc)

    def _sync_due(self) -> bool:
        if self._fsync_interval_ms == 0:
            return True
        now = time.monotonic()
        if (now - self._last_sync) * 1000 < self._fsync_interval_ms:
            return False
        self._last_sync = now
        return True

    def _sync(self) -> None:
        self._file.flush()
        if hasattr(os, "fdatasync"):
            os.fdatasync(self._file.fileno())
        else:
            os.fsync(self._file.fileno())

    def sync(self) -> None:
        """Force appended entries to disk regardless of the fsync interval."""
        if self._file is None or self._read_only:
            return
        try:
            self._sync()
        except OSError as exc:
            raise StoreWriteError(f"Failed to sync WAL {self.file_path}: {exc}") from exc

    def close(self) -> None:
        if self._file is None:
            return
        try:
            if not self._read_only:
                self._sync()
        finally:
            self._file.close()
            self._file = None

    def destroy(self) -> None:
        """Close the log and delete its file."""
        self.close()
        if os.path.exists(self.file_path):
            os.remove(self.file_path)

    def __enter__(self) -> "WAL":
        if self._file is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[WALEntry]:
        return read_frames(self.file_path)

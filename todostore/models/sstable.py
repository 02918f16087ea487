"""
SSTable - Sorted String Table for on-disk storage.
"""

import bisect
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

from todostore.interfaces.sorted_source import SortedSource
from todostore.models.entry import Entry
from todostore.models.exceptions import (
    SSTableCorruptionError,
    StoreReadError,
    StoreWriteError,
)


class SSTable(SortedSource):
    """
    Sorted String Table - immutable on-disk sorted key-value storage.

    Layout:
    - Data: [key_len:4][key][entry_len:4][entry] per key, in key order
    - Index: [count:4] then [key_len:4][key][offset:8] per key
    - Footer: [wal_watermark:8][index_offset:8]

    `wal_watermark` is one past the highest WAL id whose contents this table
    holds (0 if none); recovery skips WALs below it.

    Supports:
    - O(log N) point lookups and seeks via the in-memory index
    - Ordered iteration for merges and compaction
    """

    FOOTER_SIZE = 16

    def __init__(self, id: int, file_path: str) -> None:
        """
        Initialize SSTable.

        Args:
            id: Unique identifier for this SSTable.
            file_path: Path to the SSTable file.
        """
        self.id = id
        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._offsets: dict[bytes, int] = {}
        self._sorted_keys: list[bytes] = []
        self.wal_watermark = 0

    def open(self) -> None:
        """Open the SSTable file and load index."""
        if not os.path.exists(self.file_path):
            raise FileNotFoundError(f"SSTable not found: {self.file_path}")

        self._file = open(self.file_path, "rb")
        try:
            self._load_index()
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def destroy(self) -> None:
        """Close and delete the SSTable file."""
        self.close()
        if os.path.exists(self.file_path):
            os.remove(self.file_path)

    def get(self, key: bytes) -> Entry | None:
        offset = self._offsets.get(key)
        if offset is None:
            return None

        entry_key, entry = self._read_entry_at(offset)
        if entry_key != key:
            raise SSTableCorruptionError(
                self.file_path, f"index points at {entry_key!r} for key {key!r}"
            )
        return entry

    def seek(self, key: bytes, inclusive: bool = True) -> bytes | None:
        if inclusive:
            idx = bisect.bisect_left(self._sorted_keys, key)
        else:
            idx = bisect.bisect_right(self._sorted_keys, key)
        if idx < len(self._sorted_keys):
            return self._sorted_keys[idx]
        return None

    def __len__(self) -> int:
        return len(self._sorted_keys)

    def __iter__(self) -> Iterator[tuple[bytes, Entry]]:
        for key in self._sorted_keys:
            yield key, self.get(key)

    def __enter__(self) -> "SSTable":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _load_index(self) -> None:
        file_size = os.fstat(self._file.fileno()).st_size
        if file_size < self.FOOTER_SIZE + 4:
            raise SSTableCorruptionError(self.file_path, "file too small")

        self._file.seek(-self.FOOTER_SIZE, os.SEEK_END)
        footer = self._file.read(self.FOOTER_SIZE)
        self.wal_watermark = int.from_bytes(footer[:8], "big")
        index_offset = int.from_bytes(footer[8:], "big")
        if index_offset > file_size - self.FOOTER_SIZE - 4:
            raise SSTableCorruptionError(self.file_path, f"bad index offset {index_offset}")

        self._file.seek(index_offset)
        index = self._file.read(file_size - self.FOOTER_SIZE - index_offset)

        num_entries = int.from_bytes(index[0:4], "big")
        pos = 4
        keys = []
        for _ in range(num_entries):
            if pos + 4 > len(index):
                raise SSTableCorruptionError(self.file_path, "index truncated")
            key_len = int.from_bytes(index[pos : pos + 4], "big")
            pos += 4
            key = index[pos : pos + key_len]
            pos += key_len
            if pos + 8 > len(index):
                raise SSTableCorruptionError(self.file_path, "index truncated")
            offset = int.from_bytes(index[pos : pos + 8], "big")
            pos += 8

            self._offsets[key] = offset
            keys.append(key)

        self._sorted_keys = sorted(keys)

    def _read_entry_at(self, offset: int) -> tuple[bytes, Entry]:
        """
        Read entry at specific offset using pread.

        os.pread leaves the file position alone, so concurrent readers
        do not interfere with each other.
        """
        if self._file is None:
            raise StoreReadError(f"SSTable {self.file_path} is not open")

        fd = self._file.fileno()
        try:
            key_len = int.from_bytes(self._pread_exact(fd, 4, offset), "big")
            offset += 4
            key = self._pread_exact(fd, key_len, offset)
            offset += key_len
            entry_len = int.from_bytes(self._pread_exact(fd, 4, offset), "big")
            offset += 4
            entry = Entry.from_bytes(self._pread_exact(fd, entry_len, offset))
        except OSError as exc:
            raise StoreReadError(f"Failed to read SSTable {self.file_path}: {exc}") from exc

        return key, entry

    def _pread_exact(self, fd: int, size: int, offset: int) -> bytes:
        data = os.pread(fd, size, offset)
        if len(data) < size:
            raise SSTableCorruptionError(
                self.file_path, f"short read of {len(data)}/{size} bytes at offset {offset}"
            )
        return data

    @staticmethod
    def create(
        id: int,
        file_path: str,
        entries: Iterable[tuple[bytes, Entry]],
        wal_watermark: int = 0,
    ) -> "SSTable":
        """
        Create a new SSTable from entries given in key order.

        The table is written to `<file_path>.tmp` and renamed into place,
        so a crash never leaves a half-written table under the final name.

        Args:
            id: Unique identifier.
            file_path: Path for the new file.
            entries: Iterable of (key, Entry) tuples in sorted order.
            wal_watermark: One past the highest WAL id covered by the entries.

        Returns:
            The created, opened SSTable.

        Raises:
            StoreWriteError: If the file cannot be written or reopened.
        """
        temp_path = f"{file_path}.tmp"
        index: list[tuple[bytes, int]] = []

        try:
            Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "wb") as f:
                for key, entry in entries:
                    index.append((key, f.tell()))

                    entry_bytes = bytes(entry)
                    f.write(len(key).to_bytes(4, "big"))
                    f.write(key)
                    f.write(len(entry_bytes).to_bytes(4, "big"))
                    f.write(entry_bytes)

                index_offset = f.tell()
                f.write(len(index).to_bytes(4, "big"))
                for key, offset in index:
                    f.write(len(key).to_bytes(4, "big"))
                    f.write(key)
                    f.write(offset.to_bytes(8, "big"))

                f.write(wal_watermark.to_bytes(8, "big"))
                f.write(index_offset.to_bytes(8, "big"))
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, file_path)

            sstable = SSTable(id, file_path)
            sstable.open()
        except OSError as exc:
            raise StoreWriteError(f"Failed to write SSTable {file_path}: {exc}") from exc
        return sstable

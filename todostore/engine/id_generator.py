"""
IdGenerator - store-wide monotonic ID allocation persisted next to the data.
"""

import logging
import os
import zlib

from todostore.models.exceptions import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)

MAX_ID = (1 << 64) - 1


class IdGenerator:
    """
    Hands out strictly increasing unsigned 64-bit IDs.

    IDs are served from memory. Before an ID beyond the durable ceiling is
    served, a new ceiling `reservation` IDs higher is written to disk, so a
    crash can only skip IDs, never repeat one. A clean close records the
    exact next ID so restarts continue without a gap.

    File format: [value:8][crc32:4], rewritten atomically.
    """

    def __init__(self, file_path: str, reservation: int) -> None:
        if reservation < 1:
            raise ValueError(f"reservation must be >= 1, got {reservation}")
        self.file_path = file_path
        self._reservation = reservation
        self._next = 0
        self._ceiling = 0

    def load(self) -> None:
        """Read the persisted counter; a missing file means a fresh store."""
        if not os.path.exists(self.file_path):
            self._next = self._ceiling = 0
            return

        try:
            with open(self.file_path, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise StoreReadError(f"Failed to read ID counter {self.file_path}: {exc}") from exc

        if len(data) != 12:
            raise StoreReadError(f"ID counter {self.file_path} has bad length {len(data)}")
        value_bytes, checksum_bytes = data[:8], data[8:]
        if zlib.crc32(value_bytes) & 0xFFFFFFFF != int.from_bytes(checksum_bytes, "big"):
            raise StoreReadError(f"ID counter {self.file_path} failed checksum")

        self._next = self._ceiling = int.from_bytes(value_bytes, "big")
        logger.debug("ID generator resumes at %d", self._next)

    def next_id(self) -> int:
        """Allocate the next ID."""
        if self._next >= MAX_ID:
            raise StoreWriteError("ID space exhausted")
        if self._next >= self._ceiling:
            ceiling = min(self._next + self._reservation, MAX_ID)
            self._persist(ceiling)
            self._ceiling = ceiling

        id = self._next
        self._next += 1
        return id

    def close(self) -> None:
        """Record the exact next ID."""
        self._persist(self._next)
        self._ceiling = self._next

    def _persist(self, value: int) -> None:
        value_bytes = value.to_bytes(8, "big")
        checksum = zlib.crc32(value_bytes) & 0xFFFFFFFF
        temp_path = f"{self.file_path}.tmp"
        try:
            with open(temp_path, "wb") as f:
                f.write(value_bytes + checksum.to_bytes(4, "big"))
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.file_path)
        except OSError as exc:
            raise StoreWriteError(f"Failed to persist ID counter {self.file_path}: {exc}") from exc

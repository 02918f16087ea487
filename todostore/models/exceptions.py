"""
Exceptions raised by the store engine and the typed driver.
"""


class StoreError(Exception):
    """Base class for every error raised by todostore."""


class OpenError(StoreError):
    """Raised when a store directory cannot be opened (locked or corrupt)."""


class StoreClosedError(StoreError):
    """Raised when an operation is issued against a closed store."""


class EncodeError(StoreError):
    """Raised when a value cannot be represented by the codec."""


class DecodeError(StoreError):
    """Raised when stored bytes do not match the requested type's layout."""


class StoreWriteError(StoreError):
    """Raised when the engine fails to persist a write."""


class StoreReadError(StoreError):
    """Raised when the engine fails to read stored data."""


class KeyEncodingError(StoreError):
    """
    Raised when a stored key is not valid UTF-8.

    Attributes:
        raw_key: The undecodable key bytes.
    """

    def __init__(self, raw_key: bytes):
        self.raw_key = raw_key
        super().__init__(f"Stored key is not valid UTF-8: {raw_key!r}")


class WALCorruptionError(StoreReadError):
    """
    Raised when WAL entry corruption is detected via checksum mismatch.

    This is a fail-fast error indicating data integrity issues.
    """

    def __init__(self, expected: int, actual: int, entry_offset: int):
        """
        Initialize corruption error.

        Args:
            expected: Expected CRC32 checksum.
            actual: Actual CRC32 checksum computed.
            entry_offset: File offset where corruption detected.
        """
        self.expected = expected
        self.actual = actual
        self.entry_offset = entry_offset
        super().__init__(
            f"WAL corruption detected at offset {entry_offset}: "
            f"expected CRC32 0x{expected:08x}, got 0x{actual:08x}"
        )


class SSTableCorruptionError(StoreReadError):
    """Raised when an SSTable's index or entries cannot be parsed."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"SSTable {file_path} is corrupt: {reason}")

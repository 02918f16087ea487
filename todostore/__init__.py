"""
Typed record storage over an embedded, ordered key-value engine.

This package provides:
- Driver: insert / get / remove / next_id / iter / iter_prefix over typed records
- Codec: big-endian binary serialization used for every stored value
- Store: the LSM-style byte-keyed engine the driver wraps
- SharedDriver: a Driver shared between asyncio tasks behind a reader/writer lock
- TodoRepository: todo operations built on the above
"""

from todostore.codec import BIG_ENDIAN, I64, Codec, decode, encode
from todostore.config import StoreConfig
from todostore.driver import Driver
from todostore.engine.store import Store
from todostore.models.exceptions import (
    DecodeError,
    EncodeError,
    KeyEncodingError,
    OpenError,
    SSTableCorruptionError,
    StoreClosedError,
    StoreError,
    StoreReadError,
    StoreWriteError,
    WALCorruptionError,
)
from todostore.models.scan_item import ScanItem
from todostore.models.todo import Todo
from todostore.shared import ReadWriteLock, SharedDriver
from todostore.todos import TodoNotFoundError, TodoRepository


__all__ = [
    "BIG_ENDIAN",
    "Codec",
    "DecodeError",
    "Driver",
    "EncodeError",
    "I64",
    "KeyEncodingError",
    "OpenError",
    "ReadWriteLock",
    "SSTableCorruptionError",
    "ScanItem",
    "SharedDriver",
    "Store",
    "StoreClosedError",
    "StoreConfig",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "Todo",
    "TodoNotFoundError",
    "TodoRepository",
    "WALCorruptionError",
    "decode",
    "encode",
]

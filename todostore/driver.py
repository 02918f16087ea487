"""
Driver - typed record storage over the embedded byte-oriented store.
"""

import logging
from collections.abc import Iterator
from typing import Any, TypeVar

from todostore.codec import BIG_ENDIAN, Codec
from todostore.config import StoreConfig
from todostore.engine.store import ScanCursor, Store
from todostore.models.exceptions import DecodeError, KeyEncodingError, StoreReadError
from todostore.models.scan_item import ScanItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Driver:
    """
    Typed gateway to a Store.

    Keys are UTF-8 strings; values are any type the codec can encode. The
    driver keeps no cache: every call reads through to the store. It does
    no locking of its own either; callers sharing a Driver guard it with
    SharedDriver.

    Provides:
    - next_id(): allocate a store-wide, never reused u64
    - insert(key, value): upsert the encoded value
    - get(key, type_): decode the value at key, None if absent
    - remove(key): idempotent delete
    - iter(type_) / iter_prefix(prefix, type_): ordered, lazy scans yielding
      one ScanItem per entry
    """

    def __init__(self, store: Store, codec: Codec = BIG_ENDIAN) -> None:
        self._store = store
        self._codec = codec

    @classmethod
    def open(cls, path: str | None = None, config: StoreConfig | None = None) -> "Driver":
        """
        Open (creating if absent) the store at `path`, or at the default
        location `db` when neither `path` nor `config` name one.

        Raises:
            OpenError: If the path is locked by another handle or corrupt.
        """
        return cls(Store.open(path, config))

    @property
    def path(self) -> str:
        return self._store.path

    @property
    def codec(self) -> Codec:
        return self._codec

    # CRUD

    def next_id(self) -> int:
        return self._store.generate_id()

    def insert(self, key: str, value: Any, type_: Any = None) -> None:
        """
        Encode `value` and store it at `key`, replacing any previous value.

        Raises:
            EncodeError: If the value is not representable.
            StoreWriteError: If the store fails to persist the write.
        """
        data = self._codec.encode(value, type_)
        self._store.put(key.encode("utf-8"), data)

    def get(self, key: str, type_: type[T] | Any) -> T | None:
        """
        Return the value at `key` decoded as `type_`, or None if absent.

        Raises:
            DecodeError: If the stored bytes do not decode as `type_`.
            StoreReadError: If the store fails to read.
        """
        data = self._store.get(key.encode("utf-8"))
        if data is None:
            return None
        return self._codec.decode(data, type_)

    def remove(self, key: str) -> None:
        self._store.delete(key.encode("utf-8"))

    # Iterators

    def iter(self, type_: type[T] | Any) -> Iterator[ScanItem[T]]:
        """Iterate every entry in key order, decoding values as `type_`."""
        return self._decode_items(self._store.scan(), type_)

    def iter_prefix(self, prefix: str, type_: type[T] | Any) -> Iterator[ScanItem[T]]:
        """Iterate entries whose key starts with `prefix`, in key order."""
        return self._decode_items(self._store.scan(prefix.encode("utf-8")), type_)

    def _decode_items(self, cursor: ScanCursor, type_: Any) -> Iterator[ScanItem[Any]]:
        while True:
            try:
                raw_key, raw_value = next(cursor)
            except StopIteration:
                return
            except StoreReadError as exc:
                logger.debug("Scan item unreadable: %s", exc)
                yield ScanItem.failure(exc)
                continue

            try:
                key = raw_key.decode("utf-8")
            except UnicodeDecodeError as exc:
                error = KeyEncodingError(raw_key)
                error.__cause__ = exc
                yield ScanItem.failure(error)
                continue

            try:
                value = self._codec.decode(raw_value, type_)
            except DecodeError as exc:
                yield ScanItem.failure(exc, key=key)
                continue

            yield ScanItem.success(key, value)

    # Lifecycle

    def close(self) -> None:
        self._store.close()

    @property
    def closed(self) -> bool:
        return self._store.closed

    def __enter__(self) -> "Driver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Driver(path={self.path!r})"

"""
ScanItem - one element of a driver scan, holding a record or the error
raised while reading it.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ScanItem(Generic[T]):
    """
    Result of pulling one entry from a scan.

    Exactly one of `value` and `error` is meaningful: when `error` is set
    the entry could not be read or decoded, and `key` may be None if the
    key itself was unreadable. Iteration continues past failed items.
    """

    key: str | None
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, key: str, value: T) -> "ScanItem[T]":
        return cls(key=key, value=value)

    @classmethod
    def failure(cls, error: Exception, key: str | None = None) -> "ScanItem[Any]":
        return cls(key=key, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> tuple[str, T]:
        """Return (key, value), raising the stored error if the item failed."""
        if self.error is not None:
            raise self.error
        return self.key, self.value

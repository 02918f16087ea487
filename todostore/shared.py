"""
SharedDriver - one Driver shared between tasks behind a reader/writer lock.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from todostore.driver import Driver


class ReadWriteLock:
    """
    Cooperative reader/writer lock for asyncio tasks.

    Any number of readers may hold the lock together; a writer holds it
    alone. Once a writer is waiting, new readers queue behind it so writers
    are not starved.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    async def acquire_read(self) -> None:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and not self._waiting_writers)
            self._readers += 1

    async def release_read(self) -> None:
        async with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def acquire_write(self) -> None:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            except BaseException:
                # Readers queued behind this writer may proceed again
                self._waiting_writers -= 1
                self._cond.notify_all()
                raise
            self._waiting_writers -= 1
            self._writer = True

    async def release_write(self) -> None:
        async with self._cond:
            self._writer = False
            self._cond.notify_all()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        await self.acquire_read()
        try:
            yield
        finally:
            await self.release_read()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        await self.acquire_write()
        try:
            yield
        finally:
            await self.release_write()


class SharedDriver:
    """
    Reference-shared Driver guarded by a ReadWriteLock.

    Usage:
        shared = SharedDriver(Driver.open("db"))
        async with shared.read() as db:
            todo = db.get("todo:0", Todo)
        async with shared.write() as db:
            db.insert("todo:0", todo)

    The lock is the only suspension point: once held, driver calls run
    synchronously. It is released on every exit from the block, including
    exceptions and scans abandoned part way through.
    """

    def __init__(self, driver: Driver) -> None:
        self._driver = driver
        self._lock = ReadWriteLock()

    @classmethod
    def open(cls, path: str | None = None, **kwargs) -> "SharedDriver":
        return cls(Driver.open(path, **kwargs))

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    @asynccontextmanager
    async def read(self) -> AsyncIterator[Driver]:
        async with self._lock.read():
            yield self._driver

    @asynccontextmanager
    async def write(self) -> AsyncIterator[Driver]:
        async with self._lock.write():
            yield self._driver

    async def close(self) -> None:
        """Close the underlying driver once every holder has let go."""
        async with self._lock.write():
            self._driver.close()

    async def __aenter__(self) -> "SharedDriver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

"""
Shared pytest fixtures for store, driver and todo tests.
"""

import os
import tempfile
from dataclasses import dataclass

import pytest
import pytest_asyncio

from todostore.config import StoreConfig
from todostore.driver import Driver
from todostore.engine.store import Store
from todostore.shared import SharedDriver


@dataclass
class Sample:
    """Small record used as a generic payload in driver tests."""

    id: int
    name: str


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def store_path(temp_dir):
    """Provide a path for a store directory that does not exist yet."""
    return os.path.join(temp_dir, "db")


@pytest.fixture
def store(store_path):
    """Provide an open Store, closed after the test."""
    s = Store.open(store_path)
    yield s
    s.close()


@pytest.fixture
def small_config(store_path):
    """Config that flushes after a few writes and compacts early."""
    return StoreConfig(path=store_path, memtable_threshold=200, compaction_threshold=3)


@pytest.fixture
def driver(store_path):
    """Provide an open Driver, closed after the test."""
    with Driver.open(store_path) as db:
        yield db


@pytest_asyncio.fixture
async def shared(store_path):
    """Provide a SharedDriver over a fresh store."""
    shared_driver = SharedDriver(Driver.open(store_path))
    yield shared_driver
    await shared_driver.close()


@pytest.fixture
def samples():
    """The two records used by the ordering scenarios."""
    return [("test", Sample(id=0, name="test")), ("test2", Sample(id=1, name="test2"))]

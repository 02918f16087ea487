"""
Data models for the storage engine and the todo application.
"""

from todostore.models.entry import Entry, EntryKind
from todostore.models.memtable import MemTable
from todostore.models.scan_item import ScanItem
from todostore.models.sstable import SSTable
from todostore.models.todo import Todo
from todostore.models.wal import WAL
from todostore.models.wal_entry import WALEntry

__all__ = [
    "Entry",
    "EntryKind",
    "MemTable",
    "ScanItem",
    "SSTable",
    "Todo",
    "WAL",
    "WALEntry",
]

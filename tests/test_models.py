"""
Tests for data models: Entry, WALEntry, MemTable, SSTable, WAL and the merge iterator.
"""

import os

import pytest

from todostore.engine.merge_iterator import KWayMergeIterator, merge_live_entries
from todostore.models.entry import Entry, EntryKind
from todostore.models.exceptions import (
    SSTableCorruptionError,
    StoreReadError,
    WALCorruptionError,
)
from todostore.models.memtable import MemTable
from todostore.models.scan_item import ScanItem
from todostore.models.sstable import SSTable
from todostore.models.wal import WAL
from todostore.models.wal_entry import WALEntry


class TestEntry:
    """Tests for Entry and EntryKind."""

    def test_put_entry(self):
        entry = Entry.put(b"data")
        assert entry.data == b"data"
        assert entry.kind == EntryKind.PUT
        assert not entry.is_tombstone()

    def test_tombstone(self):
        entry = Entry.tombstone()
        assert entry.data is None
        assert entry.is_tombstone()

    def test_serialization(self):
        """Test serialization and deserialization."""
        entry = Entry.put(b"data")
        assert bytes(entry) == b"\x00\x00\x00\x00\x04data"
        assert Entry.from_bytes(bytes(entry)) == entry
        assert entry.size_bytes() == 9

    def test_tombstone_serialization(self):
        restored = Entry.from_bytes(bytes(Entry.tombstone()))
        assert restored.is_tombstone()
        assert restored.data is None

    def test_truncated(self):
        with pytest.raises(StoreReadError):
            Entry.from_bytes(b"\x00\x00\x00\x00\x09data")

    def test_unknown_kind(self):
        with pytest.raises(StoreReadError):
            Entry.from_bytes(b"\x07\x00\x00\x00\x00")


class TestWALEntry:
    """Tests for WALEntry."""

    def test_serialization(self):
        record = WALEntry(key=b"test_key", entry=Entry.put(b"data"), seq=42)
        restored = WALEntry.from_bytes(bytes(record))

        assert restored == record
        assert bytes(record)[:8] == (42).to_bytes(8, "big")


class TestMemTable:
    """Tests for MemTable."""

    def test_put_and_get(self):
        memtable = MemTable()
        memtable.put(b"b", Entry.put(b"2"))
        memtable.put(b"a", Entry.put(b"1"))

        assert memtable.get(b"a") == Entry.put(b"1")
        assert memtable.get(b"missing") is None
        assert len(memtable) == 2

    def test_iteration_is_sorted(self):
        memtable = MemTable()
        for key in (b"c", b"a", b"b"):
            memtable.put(key, Entry.put(key))

        assert [key for key, _ in memtable] == [b"a", b"b", b"c"]

    def test_delete_keeps_tombstone(self):
        memtable = MemTable()
        memtable.put(b"a", Entry.put(b"1"))
        memtable.put(b"a", Entry.tombstone())

        assert memtable.get(b"a").is_tombstone()
        assert len(memtable) == 1

    def test_immutability(self):
        memtable = MemTable()
        memtable.mark_immutable()

        assert memtable.is_immutable
        assert memtable.put(b"a", Entry.put(b"1")) is False
        assert len(memtable) == 0

    def test_seek(self):
        memtable = MemTable()
        for key in (b"a", b"c", b"e"):
            memtable.put(key, Entry.put(b""))

        assert memtable.seek(b"c") == b"c"
        assert memtable.seek(b"c", inclusive=False) == b"e"
        assert memtable.seek(b"b") == b"c"
        assert memtable.seek(b"e", inclusive=False) is None

    def test_size_tracks_overwrites(self):
        memtable = MemTable()
        memtable.put(b"key", Entry.put(b"x" * 100))
        large = memtable.size_bytes()
        memtable.put(b"key", Entry.put(b"x"))

        assert memtable.size_bytes() == large - 99
        assert memtable.size_bytes() == 3 + MemTable.ENTRY_OVERHEAD + 6


class TestSSTable:
    """Tests for SSTable."""

    def test_create_and_read(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        entries = [(b"a", Entry.put(b"1")), (b"b", Entry.tombstone()), (b"c", Entry.put(b"3"))]

        sstable = SSTable.create(0, path, entries)
        try:
            assert len(sstable) == 3
            assert sstable.get(b"a") == Entry.put(b"1")
            assert sstable.get(b"b").is_tombstone()
            assert sstable.get(b"missing") is None
            assert list(sstable) == entries
        finally:
            sstable.close()

        assert not os.path.exists(f"{path}.tmp")

    def test_reopen(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        SSTable.create(0, path, [(b"key", Entry.put(b"value"))]).close()

        with SSTable(0, path) as sstable:
            assert sstable.get(b"key") == Entry.put(b"value")

    def test_wal_watermark(self, temp_dir):
        """Test that the WAL watermark is stored in the footer."""
        path = os.path.join(temp_dir, "0.sst")
        SSTable.create(0, path, [(b"key", Entry.put(b"value"))], wal_watermark=7).close()

        with SSTable(0, path) as sstable:
            assert sstable.wal_watermark == 7
            assert sstable.get(b"key") == Entry.put(b"value")

        SSTable.create(1, os.path.join(temp_dir, "1.sst"), []).close()
        with SSTable(1, os.path.join(temp_dir, "1.sst")) as sstable:
            assert sstable.wal_watermark == 0

    def test_seek(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        entries = [(key, Entry.put(b"")) for key in (b"a", b"c", b"e")]

        sstable = SSTable.create(0, path, entries)
        try:
            assert sstable.seek(b"b") == b"c"
            assert sstable.seek(b"c", inclusive=False) == b"e"
            assert sstable.seek(b"f") is None
        finally:
            sstable.close()

    def test_empty_table(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        sstable = SSTable.create(0, path, [])
        try:
            assert len(sstable) == 0
            assert sstable.seek(b"") is None
        finally:
            sstable.close()

    def test_truncated_file(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        with open(path, "wb") as f:
            f.write(b"\x00\x01")

        with pytest.raises(SSTableCorruptionError):
            SSTable(0, path).open()

    def test_destroy(self, temp_dir):
        path = os.path.join(temp_dir, "0.sst")
        sstable = SSTable.create(0, path, [(b"a", Entry.put(b"1"))])
        sstable.destroy()
        assert not os.path.exists(path)


class TestWAL:
    """Tests for WAL."""

    def test_append_and_iterate(self, temp_dir):
        path = os.path.join(temp_dir, "wal_0.wal")
        with WAL(0, path) as wal:
            wal.append(WALEntry(key=b"a", entry=Entry.put(b"1"), seq=0))
            wal.append(WALEntry(key=b"b", entry=Entry.tombstone(), seq=1))

        entries = list(WAL(0, path))
        assert [e.key for e in entries] == [b"a", b"b"]
        assert entries[1].entry.is_tombstone()

    def test_seq_resumes(self, temp_dir):
        path = os.path.join(temp_dir, "wal_0.wal")
        with WAL(0, path) as wal:
            wal.append(WALEntry(key=b"a", entry=Entry.put(b"1"), seq=0))

        wal = WAL(0, path)
        wal.open()
        try:
            assert wal.seq == 1
        finally:
            wal.close()

    def test_read_only(self, temp_dir):
        path = os.path.join(temp_dir, "wal_0.wal")
        with WAL(0, path):
            pass

        wal = WAL(0, path)
        wal.open(read_only=True)
        try:
            with pytest.raises(RuntimeError):
                wal.append(WALEntry(key=b"a", entry=Entry.put(b"1"), seq=0))
        finally:
            wal.close()

    def test_torn_tail(self, temp_dir):
        path = os.path.join(temp_dir, "wal_0.wal")
        with WAL(0, path) as wal:
            wal.append(WALEntry(key=b"a", entry=Entry.put(b"1"), seq=0))
        with open(path, "ab") as f:
            f.write(b"\x00\x00\x00\x20abc")

        assert [e.key for e in WAL(0, path)] == [b"a"]

    def test_checksum_mismatch(self, temp_dir):
        path = os.path.join(temp_dir, "wal_0.wal")
        with WAL(0, path) as wal:
            wal.append(WALEntry(key=b"a", entry=Entry.put(b"1"), seq=0))

        # First byte of the key: [length:4][seq:8][key_len:4][key]
        with open(path, "r+b") as f:
            f.seek(16)
            f.write(b"z")

        with pytest.raises(WALCorruptionError) as exc_info:
            list(WAL(0, path))
        assert exc_info.value.entry_offset == 0


class TestMergeIterator:
    """Tests for the k-way merge."""

    def test_newest_source_wins(self):
        newest = iter([(b"a", Entry.put(b"new")), (b"c", Entry.tombstone())])
        oldest = iter([(b"a", Entry.put(b"old")), (b"b", Entry.put(b"b")), (b"c", Entry.put(b"c"))])

        merged = list(KWayMergeIterator([newest, oldest]))
        assert merged == [
            (b"a", Entry.put(b"new")),
            (b"b", Entry.put(b"b")),
            (b"c", Entry.tombstone()),
        ]

    def test_live_entries_drop_tombstones(self):
        newest = iter([(b"a", Entry.tombstone())])
        oldest = iter([(b"a", Entry.put(b"old")), (b"b", Entry.put(b"b"))])

        assert list(merge_live_entries([newest, oldest])) == [(b"b", Entry.put(b"b"))]

    def test_empty_sources(self):
        assert list(KWayMergeIterator([iter([]), iter([])])) == []


class TestScanItem:
    """Tests for ScanItem."""

    def test_success(self):
        item = ScanItem.success("k", 1)
        assert item.ok
        assert item.unwrap() == ("k", 1)

    def test_failure(self):
        error = StoreReadError("boom")
        item = ScanItem.failure(error, key="k")
        assert not item.ok
        with pytest.raises(StoreReadError):
            item.unwrap()

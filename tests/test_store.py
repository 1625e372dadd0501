"""Tests for the directory-backed image store."""

from pathlib import Path

from conftest import make_records

from luminarias.models import ProcessingStatus
from luminarias.store import ImageStore


class TestImageStore:
    """Tests for ImageStore put/get_all/clear."""

    def test_get_all_before_anything_stored(self, tmp_path: Path):
        """Test that a missing directory reads as empty."""
        assert ImageStore(tmp_path / "nothing").get_all() == []

    def test_round_trip_keeps_order_and_bytes(self, store):
        """Test records come back in ingestion order with their bytes."""
        records = make_records(3)
        for r in records:
            store.put(r)

        loaded = store.get_all()

        assert [r.id for r in loaded] == [r.id for r in records]
        assert [r.data for r in loaded] == [r.data for r in records]
        assert all(r.status is ProcessingStatus.PENDING for r in loaded)

    def test_last_write_wins(self, store):
        """Test that a later put replaces the earlier state of the same id."""
        first, second = make_records(2)
        store.put(first)
        store.put(second)
        first.mark_processing()
        first.mark_success("08390")
        store.put(first)

        loaded = store.get_all()

        assert [r.id for r in loaded] == [first.id, second.id]
        assert loaded[0].status is ProcessingStatus.SUCCESS
        assert loaded[0].extracted_code == "08390"
        assert loaded[0].found is True

    def test_order_follows_journal_not_timestamp(self, store):
        """Test that load order is the order records were first stored."""
        older, newer = make_records(2)
        older.created_at = "2020-01-01T00:00:00+00:00"
        newer.created_at = "2019-01-01T00:00:00+00:00"
        store.put(older)
        store.put(newer)

        assert [r.id for r in store.get_all()] == [older.id, newer.id]

    def test_blob_written_once(self, store):
        """Test that image bytes are not rewritten on later puts."""
        (record,) = make_records(1)
        store.put(record)
        blob = store.blob_path(record.id)
        mtime = blob.stat().st_mtime_ns

        record.mark_processing()
        record.mark_error("x")
        store.put(record)

        assert blob.stat().st_mtime_ns == mtime
        assert blob.read_bytes() == record.data

    def test_ignores_truncated_lines(self, store):
        """Test that a partial last line does not break loading."""
        records = make_records(2)
        for r in records:
            store.put(r)
        with store.journal_path.open("a", encoding="utf-8") as f:
            f.write('{"id": "abc", "file_na')

        assert [r.id for r in store.get_all()] == [r.id for r in records]

    def test_skips_records_without_blob(self, store):
        """Test that a record whose image is gone is not loaded."""
        records = make_records(2)
        for r in records:
            store.put(r)
        store.blob_path(records[0].id).unlink()

        assert [r.id for r in store.get_all()] == [records[1].id]

    def test_clear(self, store):
        """Test that clear removes everything."""
        for r in make_records(2):
            store.put(r)

        store.clear()

        assert store.get_all() == []
        assert not store.root.exists()

    def test_clear_when_empty(self, store):
        """Test clearing a store that was never written."""
        store.clear()
        assert store.get_all() == []

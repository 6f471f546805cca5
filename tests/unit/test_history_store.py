"""Tests for history stores."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from histreport.exceptions import HistoryStoreUnavailableError
from histreport.history import InMemoryHistoryStore, JsonHistoryStore
from histreport.identity import md5
from histreport.models.history import HistoryEntry, HistoryItem
from histreport.models.result import TestResult, TestStatus

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def make_item(history_id: str = "case.params", runs: int = 3) -> HistoryItem:
    """Create a history item with one entry per run."""
    entries = [
        HistoryEntry(
            run_id=f"run-{i}",
            run_timestamp=BASE_TIME + timedelta(hours=i),
            result=TestResult(
                id=f"r{i}",
                history_id=history_id,
                name="Login",
                status=TestStatus.PASSED if i % 2 == 0 else TestStatus.FAILED,
                duration=100 + i,
            ),
        )
        for i in range(runs)
    ]
    return HistoryItem(history_id=history_id, entries=entries)


@pytest.fixture
def history_dir(tmp_path: Path) -> Path:
    """Create a temporary history directory path."""
    return tmp_path / "test-history"


class TestInMemoryHistoryStore:
    """Tests for InMemoryHistoryStore."""

    def test_get_unknown(self) -> None:
        assert InMemoryHistoryStore().get("missing") is None

    def test_put_and_get(self) -> None:
        store = InMemoryHistoryStore()
        item = make_item()

        store.put(item)

        assert store.get(item.history_id) == item
        assert store.list_ids() == [item.history_id]

    def test_returned_items_are_copies(self) -> None:
        """Test that mutating a loaded item does not change the store."""
        store = InMemoryHistoryStore()
        store.put(make_item())

        loaded = store.get("case.params")
        assert loaded is not None
        loaded.entries.clear()

        stored = store.get("case.params")
        assert stored is not None
        assert len(stored.entries) == 3

    def test_delete_oldest(self) -> None:
        store = InMemoryHistoryStore()
        store.put(make_item(runs=5))

        removed = store.delete_oldest("case.params", 2)

        item = store.get("case.params")
        assert item is not None
        assert removed == 3
        assert item.run_ids() == ["run-3", "run-4"]

    def test_delete_oldest_within_bound(self) -> None:
        store = InMemoryHistoryStore()
        store.put(make_item(runs=2))

        assert store.delete_oldest("case.params", 5) == 0
        assert store.delete_oldest("missing", 5) == 0


class TestJsonHistoryStore:
    """Tests for JsonHistoryStore."""

    def test_put_creates_layout(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item())

        assert (history_dir / "items" / f"{md5('case.params')}.json").exists()
        assert not (history_dir / "index.json").exists()

        store.flush()

        assert (history_dir / "index.json").exists()

    def test_round_trip(self, history_dir: Path) -> None:
        item = make_item()
        JsonHistoryStore(history_dir).put(item)

        loaded = JsonHistoryStore(history_dir).get(item.history_id)

        assert loaded == item
        assert loaded is not None
        assert loaded.entries[0].run_timestamp.tzinfo is not None

    def test_history_id_with_unsafe_characters(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        item = make_item("a/b#2")

        store.put(item)

        assert store.get("a/b#2") == item

    def test_get_unknown(self, history_dir: Path) -> None:
        assert JsonHistoryStore(history_dir).get("missing") is None

    def test_index_tracks_items(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item("one", runs=2))
        store.put(make_item("two", runs=4))

        assert store.list_ids() == ["one", "two"]

        store.flush()
        index = store.load_index()

        assert sorted(index.items) == ["one", "two"]
        assert index.items["two"].entry_count == 4
        assert index.items["two"].last_run_id == "run-3"

    def test_no_temp_files_left(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item())
        store.put(make_item())

        assert not list(history_dir.rglob(".tmp-*"))

    def test_corrupt_item_raises(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item())
        (history_dir / "items" / f"{md5('case.params')}.json").write_text("{broken")

        with pytest.raises(HistoryStoreUnavailableError, match="Corrupt"):
            store.get("case.params")

    def test_corrupt_index_raises(self, history_dir: Path) -> None:
        history_dir.mkdir(parents=True)
        (history_dir / "index.json").write_text("[]")

        with pytest.raises(HistoryStoreUnavailableError, match="index"):
            JsonHistoryStore(history_dir).list_ids()

    def test_unwritable_directory_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(HistoryStoreUnavailableError):
            JsonHistoryStore(blocker).put(make_item())

    def test_rebuild_index(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item("one"))
        store.put(make_item("two"))
        store.flush()
        (history_dir / "index.json").unlink()
        (history_dir / "items" / "garbage.json").write_text("nope")

        count = store.rebuild_index()

        assert count == 2
        assert store.list_ids() == ["one", "two"]

    def test_delete_oldest(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item(runs=4))

        assert store.delete_oldest("case.params", 1) == 3

        item = store.get("case.params")
        assert item is not None
        assert item.run_ids() == ["run-3"]
        store.flush()
        assert store.load_index().items["case.params"].entry_count == 1

    def test_invalid_utf8_item_raises(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item())
        (history_dir / "items" / f"{md5('case.params')}.json").write_bytes(b"\xff\xfe garbage")

        with pytest.raises(HistoryStoreUnavailableError, match="Cannot read"):
            store.get("case.params")

    def test_invalid_utf8_index_raises(self, history_dir: Path) -> None:
        history_dir.mkdir(parents=True)
        (history_dir / "index.json").write_bytes(b"\xff\xfe garbage")

        with pytest.raises(HistoryStoreUnavailableError, match="index"):
            JsonHistoryStore(history_dir).list_ids()

    def test_flush_writes_index_once(self, history_dir: Path) -> None:
        """Test that many puts cost a single index write."""
        store = JsonHistoryStore(history_dir)

        with patch.object(store, "_write_index", wraps=store._write_index) as write_index:
            for i in range(50):
                store.put(make_item(f"case-{i}", runs=1))
            store.flush()
            store.flush()

        assert write_index.call_count == 1
        assert len(store.load_index().items) == 50

    def test_flush_keeps_existing_entries(self, history_dir: Path) -> None:
        first = JsonHistoryStore(history_dir)
        first.put(make_item("one"))
        first.flush()

        second = JsonHistoryStore(history_dir)
        second.put(make_item("two"))
        second.flush()

        assert sorted(second.load_index().items) == ["one", "two"]

    def test_delete_oldest_skips_read_within_bound(self, history_dir: Path) -> None:
        store = JsonHistoryStore(history_dir)
        store.put(make_item(runs=2))

        with patch.object(store, "get", wraps=store.get) as get:
            assert store.delete_oldest("case.params", 5) == 0

        get.assert_not_called()

"""History store implementations.

A history store is a durable mapping from history id to HistoryItem. The
engine only needs get/put/delete-oldest semantics, so the format is up to the
implementation.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from histreport.exceptions import HistoryStoreUnavailableError
from histreport.identity.resolver import md5
from histreport.models.history import HistoryItem

logger = logging.getLogger(__name__)


class HistoryStore(ABC):
    """Abstract base class for history stores."""

    @abstractmethod
    def get(self, history_id: str) -> HistoryItem | None:
        """Load the item of a history id, None if unknown.

        Raises:
            HistoryStoreUnavailableError: If the store cannot be read.
        """
        ...

    @abstractmethod
    def put(self, item: HistoryItem) -> None:
        """Persist an item, replacing any previous version.

        Raises:
            HistoryStoreUnavailableError: If the store cannot be written.
        """
        ...

    @abstractmethod
    def list_ids(self) -> list[str]:
        """List all stored history ids."""
        ...

    def flush(self) -> None:
        """Persist bookkeeping deferred by ``put``, if the store defers any."""

    def delete_oldest(self, history_id: str, bound: int) -> int:
        """Drop the oldest entries of an item beyond ``bound``.

        Returns:
            Number of entries removed.
        """
        item = self.get(history_id)
        if item is None or len(item.entries) <= bound:
            return 0
        removed = len(item.entries) - bound
        item.entries = item.entries[removed:]
        self.put(item)
        return removed


class InMemoryHistoryStore(HistoryStore):
    """History store kept in process memory."""

    def __init__(self) -> None:
        self._items: dict[str, HistoryItem] = {}
        self._guard = threading.Lock()

    def get(self, history_id: str) -> HistoryItem | None:
        with self._guard:
            item = self._items.get(history_id)
        # Copies keep stored state isolated from callers
        return item.model_copy(deep=True) if item is not None else None

    def put(self, item: HistoryItem) -> None:
        with self._guard:
            self._items[item.history_id] = item.model_copy(deep=True)

    def list_ids(self) -> list[str]:
        with self._guard:
            return sorted(self._items)


class HistoryIndexEntry(BaseModel):
    """Entry in the history index for fast lookup."""

    history_id: str
    filename: str
    entry_count: int
    last_run_id: str | None = None
    last_updated: datetime


class HistoryIndex(BaseModel):
    """Index of all stored history items."""

    items: dict[str, HistoryIndexEntry] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


class JsonHistoryStore(HistoryStore):
    """History store backed by a directory of JSON files.

    Layout::

        <history_dir>/
            index.json
            items/<md5 of history id>.json

    Item files are written by ``put``. Index updates are collected and written
    once by ``flush``.
    """

    def __init__(self, history_dir: Path) -> None:
        """Initialize the store.

        Args:
            history_dir: Directory to keep history in.
        """
        self._history_dir = history_dir
        self._items_dir = history_dir / "items"
        self._index_path = history_dir / "index.json"
        self._index_lock = threading.Lock()
        self._pending: dict[str, HistoryIndexEntry] = {}

    def _ensure_dirs(self) -> None:
        """Ensure storage directories exist."""
        try:
            self._items_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create history directory {self._items_dir}: {e}"
            raise HistoryStoreUnavailableError(msg) from e

    def _item_path(self, history_id: str) -> Path:
        # History ids may contain characters that are unsafe in filenames
        return self._items_dir / f"{md5(history_id)}.json"

    def _write_atomic(self, path: Path, content: str) -> None:
        """Write a file so readers never observe a partial document."""
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _write_index(self, index: HistoryIndex) -> None:
        try:
            self._write_atomic(self._index_path, index.model_dump_json(indent=2))
        except OSError as e:
            msg = f"Cannot write history index {self._index_path}: {e}"
            raise HistoryStoreUnavailableError(msg) from e

    @staticmethod
    def _index_entry(item: HistoryItem, filename: str, updated: datetime) -> HistoryIndexEntry:
        return HistoryIndexEntry(
            history_id=item.history_id,
            filename=filename,
            entry_count=len(item.entries),
            last_run_id=item.entries[-1].run_id if item.entries else None,
            last_updated=updated,
        )

    def get(self, history_id: str) -> HistoryItem | None:
        path = self._item_path(history_id)
        if not path.exists():
            return None
        try:
            return HistoryItem.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Cannot read history item {history_id}: {e}"
            raise HistoryStoreUnavailableError(msg) from e
        except ValidationError as e:
            msg = f"Corrupt history item {history_id} in {path}: {e}"
            raise HistoryStoreUnavailableError(msg) from e

    def put(self, item: HistoryItem) -> None:
        self._ensure_dirs()
        path = self._item_path(item.history_id)
        try:
            self._write_atomic(path, item.model_dump_json(indent=2))
        except OSError as e:
            msg = f"Cannot write history item {item.history_id}: {e}"
            raise HistoryStoreUnavailableError(msg) from e
        with self._index_lock:
            self._pending[item.history_id] = self._index_entry(
                item, path.name, datetime.now(UTC)
            )

    def delete_oldest(self, history_id: str, bound: int) -> int:
        with self._index_lock:
            known = self._pending.get(history_id)
        # Items written in this session are known to be within the bound
        if known is not None and known.entry_count <= bound:
            return 0
        return super().delete_oldest(history_id, bound)

    def flush(self) -> None:
        """Write the index updates collected since the last flush."""
        with self._index_lock:
            if not self._pending:
                return
            self._ensure_dirs()
            index = self.load_index()
            index.items.update(self._pending)
            index.last_updated = datetime.now(UTC)
            self._write_index(index)
            logger.debug("Indexed %d history items in %s", len(self._pending), self._index_path)
            self._pending.clear()

    def load_index(self) -> HistoryIndex:
        """Load the history index as last flushed.

        Returns:
            The index, or an empty index if none was written yet.
        """
        if not self._index_path.exists():
            return HistoryIndex()
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
            return HistoryIndex.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            msg = f"Cannot read history index {self._index_path}: {e}"
            raise HistoryStoreUnavailableError(msg) from e

    def list_ids(self) -> list[str]:
        with self._index_lock:
            return sorted(set(self.load_index().items) | set(self._pending))

    def rebuild_index(self) -> int:
        """Rebuild the index from the item files.

        Returns:
            Number of items indexed.
        """
        index = HistoryIndex()
        if self._items_dir.exists():
            for item_file in sorted(self._items_dir.glob("*.json")):
                try:
                    item = HistoryItem.model_validate_json(item_file.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError, ValidationError) as e:
                    logger.warning("Skipping unreadable history file %s: %s", item_file, e)
                    continue
                index.items[item.history_id] = self._index_entry(
                    item, item_file.name, index.last_updated
                )

        self._ensure_dirs()
        with self._index_lock:
            self._write_index(index)
            self._pending.clear()
        return len(index.items)

"""History merger.

Appends the results of a run to the per-test history, one key at a time.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import TYPE_CHECKING

from histreport.exceptions import HistReportError
from histreport.models.config import DEFAULT_HISTORY_RETENTION
from histreport.models.history import HistoryEntry, HistoryItem

if TYPE_CHECKING:
    from histreport.history.store import HistoryStore
    from histreport.models.result import RunInfo, TestResult

logger = logging.getLogger(__name__)


class KeyedLock:
    """One lock per key; different keys never block each other.

    A key's lock lives only while some caller holds a reference to it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock of a key for the duration of the block."""
        lock = self._lock_for(key)
        with lock:
            yield


class HistoryMerger:
    """Merges run results into a history store."""

    def __init__(
        self,
        store: HistoryStore,
        retention: int = DEFAULT_HISTORY_RETENTION,
        locks: KeyedLock | None = None,
    ) -> None:
        """Initialize the merger.

        Args:
            store: History store to read from and write to.
            retention: Maximum entries kept per history id.
            locks: Lock registry, shared between mergers of the same store.
        """
        if retention < 1:
            msg = f"History retention must be at least 1, got {retention}"
            raise ValueError(msg)
        self._store = store
        self._retention = retention
        self._locks = locks or KeyedLock()

    @property
    def retention(self) -> int:
        return self._retention

    def merge_result(self, run: RunInfo, result: TestResult) -> HistoryItem:
        """Merge one result into its history item.

        Merging the same (history id, run id) twice replaces the entry. Index
        bookkeeping of the store is left to ``merge`` or the caller.

        Args:
            run: The run that produced the result.
            result: A result carrying a history id.

        Returns:
            The merged item as written to the store.

        Raises:
            HistReportError: If the result has no history id.
            HistoryStoreUnavailableError: If the store fails.
        """
        if not result.history_id:
            msg = f"Result '{result.name}' has no history id"
            raise HistReportError(msg)

        history_id = result.history_id
        entry = HistoryEntry.for_run(run, result)

        with self._locks.hold(history_id):
            item = self._store.get(history_id) or HistoryItem(history_id=history_id)

            entries = [e for e in item.entries if e.run_id != run.run_id]
            if len(entries) != len(item.entries):
                logger.debug("Replacing entry of run %s for %s", run.run_id, history_id)
            entries.append(entry)
            entries.sort(key=HistoryEntry.sort_key)

            evicted = max(0, len(entries) - self._retention)
            if evicted:
                logger.debug("Evicting %d oldest entries of %s", evicted, history_id)
            item.entries = entries[evicted:]

            self._store.put(item)
            self._store.delete_oldest(history_id, self._retention)

        return item

    def merge(
        self,
        run: RunInfo,
        results: Iterable[TestResult],
        max_workers: int = 1,
    ) -> dict[str, HistoryItem]:
        """Merge all results of a run.

        Args:
            run: The run that produced the results.
            results: Results carrying history ids.
            max_workers: Worker threads; keys merge independently.

        Returns:
            Mapping of history id to merged item.
        """
        results = list(results)
        logger.debug("Merging %d results of run %s", len(results), run.run_id)

        try:
            if max_workers <= 1 or len(results) <= 1:
                items = [self.merge_result(run, r) for r in results]
            else:
                with ThreadPoolExecutor(max_workers=max_workers) as pool:
                    items = list(pool.map(lambda r: self.merge_result(run, r), results))
        finally:
            # Items already written stay indexed even when a later merge fails
            self._store.flush()

        return {item.history_id: item for item in items}

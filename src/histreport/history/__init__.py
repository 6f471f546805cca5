"""History storage and merging."""

from histreport.history.merger import HistoryMerger, KeyedLock
from histreport.history.store import (
    HistoryIndex,
    HistoryIndexEntry,
    HistoryStore,
    InMemoryHistoryStore,
    JsonHistoryStore,
)

__all__ = [
    "HistoryIndex",
    "HistoryIndexEntry",
    "HistoryMerger",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonHistoryStore",
    "KeyedLock",
]

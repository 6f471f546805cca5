"""Ingestion normalizer.

Turns the raw records of one or more adapters into TestResults. Malformed
records are collected instead of aborting the run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from histreport.exceptions import IngestionError, MalformedRecordError
from histreport.models.result import MalformedRecord, TestResult

if TYPE_CHECKING:
    from histreport.ingestion.base import RecordAdapter

logger = logging.getLogger(__name__)


@dataclass
class IngestionOutcome:
    """Normalized results and rejects of an ingestion pass."""

    results: list[TestResult] = field(default_factory=list)
    malformed: list[MalformedRecord] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)


class Normalizer:
    """Normalizes the records of a sequence of adapters."""

    def __init__(self, adapters: Sequence[RecordAdapter]) -> None:
        """Initialize the normalizer.

        Args:
            adapters: Adapters to read, in order.
        """
        self._adapters = list(adapters)
        self._rejects: list[MalformedRecord] = []
        self._processed = 0
        self._started = False

    @property
    def rejects(self) -> list[MalformedRecord]:
        """Records rejected so far."""
        return list(self._rejects)

    @property
    def processed(self) -> int:
        """Number of results produced so far."""
        return self._processed

    def normalize(self) -> Iterator[TestResult]:
        """Lazily yield normalized results.

        The sequence can be consumed once; later calls raise.

        Raises:
            IngestionError: If called twice, or an adapter source is unreadable.
        """
        if self._started:
            msg = "Normalizer has already been consumed"
            raise IngestionError(msg)
        self._started = True
        return self._iterate()

    def _iterate(self) -> Iterator[TestResult]:
        for adapter in self._adapters:
            logger.debug("Reading records from %s", adapter.source_label)
            for index, raw in enumerate(adapter.records()):
                try:
                    result = adapter.normalize(raw, index)
                except MalformedRecordError as e:
                    reject = MalformedRecord(
                        source=adapter.source_label, index=index, reason=str(e)
                    )
                    self._rejects.append(reject)
                    logger.warning(
                        "Skipping malformed record %d from %s: %s",
                        index,
                        adapter.source_label,
                        e,
                    )
                    continue

                self._processed += 1
                yield result


def ingest(adapters: Sequence[RecordAdapter]) -> IngestionOutcome:
    """Normalize all adapters sequentially."""
    normalizer = Normalizer(adapters)
    results = list(normalizer.normalize())
    return IngestionOutcome(results=results, malformed=normalizer.rejects)


async def ingest_concurrently(adapters: Sequence[RecordAdapter]) -> IngestionOutcome:
    """Normalize adapters in parallel worker threads.

    Results keep adapter order, then record order, no matter which adapter
    finishes first. Cancelling the returned coroutine discards all results.

    Args:
        adapters: Adapters to read.

    Returns:
        Combined outcome of all adapters.
    """
    outcomes = await asyncio.gather(*(asyncio.to_thread(ingest, [a]) for a in adapters))

    combined = IngestionOutcome()
    for outcome in outcomes:
        combined.results.extend(outcome.results)
        combined.malformed.extend(outcome.malformed)
    return combined

"""Report engine.

Coordinates the pipeline for one report generation:
ingestion -> identity resolution -> history merge -> statistics -> report model.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from histreport.analysis.stats import StatisticsEngine
from histreport.exceptions import HistReportError
from histreport.history.merger import HistoryMerger
from histreport.identity.resolver import IdentityResolver
from histreport.ingestion.normalizer import IngestionOutcome, ingest, ingest_concurrently
from histreport.models.config import EngineConfig
from histreport.models.history import HistoryEntry
from histreport.models.result import RunInfo
from histreport.reporting.builder import ReportModelBuilder

if TYPE_CHECKING:
    from histreport.history.store import HistoryStore
    from histreport.ingestion.base import RecordAdapter
    from histreport.models.report import AggregateStats, ReportModel
    from histreport.models.result import TestResult

logger = logging.getLogger(__name__)


class ReportEngine:
    """Runs the aggregation pipeline against a history store.

    The store is passed in rather than looked up, so tests can use an
    in-memory store and several engines can share one store safely.
    """

    def __init__(self, store: HistoryStore, config: EngineConfig | None = None) -> None:
        """Initialize the engine.

        Args:
            store: History store to merge into.
            config: Engine options, defaults when omitted.

        Raises:
            ConfigurationError: If the identity fields are invalid.
        """
        self._config = config or EngineConfig()
        self._store = store
        self._resolver = IdentityResolver(self._config.identity_fields)
        self._merger = HistoryMerger(store, retention=self._config.history_retention)
        self._stats = StatisticsEngine(flaky_window=self._config.flaky_window)
        self._builder = ReportModelBuilder(allow_empty=self._config.allow_empty)

    @property
    def config(self) -> EngineConfig:
        return self._config

    def generate(
        self,
        adapters: Sequence[RecordAdapter],
        run: RunInfo | None = None,
    ) -> ReportModel:
        """Generate a report, reading adapters one after another.

        Args:
            adapters: Sources of raw records.
            run: Run metadata; a new run is created when omitted.

        Returns:
            The report model.

        Raises:
            HistoryStoreUnavailableError: If history cannot be read or written.
            EmptyResultSetError: If nothing was produced and that is not allowed.
        """
        return self.process(ingest(adapters), run)

    async def generate_async(
        self,
        adapters: Sequence[RecordAdapter],
        run: RunInfo | None = None,
    ) -> ReportModel:
        """Generate a report, reading adapters concurrently.

        Cancelling before ingestion finishes leaves the history untouched.
        """
        outcome = await ingest_concurrently(adapters)
        return self.process(outcome, run)

    def process(self, outcome: IngestionOutcome, run: RunInfo | None = None) -> ReportModel:
        """Run the synchronous stages over an ingestion outcome."""
        run = run or RunInfo()
        logger.info(
            "Processing run %s: %d results, %d malformed records",
            run.run_id,
            outcome.processed,
            len(outcome.malformed),
        )

        resolved, duplicates = self._resolver.resolve_run(outcome.results)
        items = self._merger.merge(run, resolved, max_workers=self._config.merge_workers)

        joined: list[tuple[TestResult, AggregateStats]] = []
        for result in resolved:
            item = items.get(result.history_id or "")
            if item is None:
                msg = f"Result '{result.name}' was not merged into history"
                raise HistReportError(msg)
            entry = HistoryEntry.for_run(run, result)
            joined.append((result, self._stats.compute(item, entry)))

        return self._builder.build(
            run,
            joined,
            malformed=outcome.malformed,
            duplicates=duplicates,
        )

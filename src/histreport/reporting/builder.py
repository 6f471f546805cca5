"""Report model builder.

Joins the current run's results with their statistics and computes the
summary rollups in a single pass.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from histreport.analysis.durations import duration_buckets
from histreport.analysis.trends import clamp
from histreport.exceptions import EmptyResultSetError
from histreport.models.report import (
    AggregateStats,
    ReportEntry,
    ReportModel,
    ReportSummary,
    StatusTransition,
)
from histreport.models.result import TestStatus

if TYPE_CHECKING:
    from histreport.models.result import (
        DuplicateIdentity,
        MalformedRecord,
        RunInfo,
        TestResult,
    )

logger = logging.getLogger(__name__)


class ReportModelBuilder:
    """Builds the immutable report model of one generation."""

    def __init__(self, allow_empty: bool = False) -> None:
        """Initialize the builder.

        Args:
            allow_empty: Accept a run without any results.
        """
        self._allow_empty = allow_empty

    def build(
        self,
        run: RunInfo,
        joined: Sequence[tuple[TestResult, AggregateStats]],
        *,
        malformed: Sequence[MalformedRecord] = (),
        duplicates: Sequence[DuplicateIdentity] = (),
        generated_at: datetime | None = None,
    ) -> ReportModel:
        """Build the report model.

        Args:
            run: The reported run.
            joined: Current results paired with their statistics.
            malformed: Records rejected during ingestion.
            duplicates: Identity collisions found during resolution.
            generated_at: Generation time, defaults to now.

        Returns:
            The report model.

        Raises:
            EmptyResultSetError: If there are no results and empty runs are
                not allowed.
        """
        if not joined and not self._allow_empty:
            msg = f"Run {run.run_id} produced no test results"
            if malformed:
                msg += f" ({len(malformed)} malformed records were skipped)"
            raise EmptyResultSetError(msg)

        entries = tuple(ReportEntry(result=r, stats=s) for r, s in joined)
        summary = self._summarize(entries, malformed=len(malformed), duplicates=len(duplicates))

        logger.debug(
            "Built report for run %s: %d results, %d skipped",
            run.run_id,
            summary.processed,
            summary.skipped_records,
        )

        return ReportModel(
            run=run,
            generated_at=generated_at or datetime.now(UTC),
            entries=entries,
            summary=summary,
            malformed=tuple(malformed),
            duplicates=tuple(duplicates),
        )

    def _summarize(
        self,
        entries: Sequence[ReportEntry],
        *,
        malformed: int,
        duplicates: int,
    ) -> ReportSummary:
        """Compute rollups over all entries."""
        by_status: dict[TestStatus, int] = {}
        by_severity: dict[str, int] = {}
        by_transition: dict[StatusTransition, int] = {}
        durations: list[int] = []
        flaky = retried = passed = 0
        previous_total = previous_passed = 0

        for entry in entries:
            result, stats = entry.result, entry.stats
            by_status[result.status] = by_status.get(result.status, 0) + 1
            by_severity[result.severity] = by_severity.get(result.severity, 0) + 1
            if stats.transition is not None:
                by_transition[stats.transition] = by_transition.get(stats.transition, 0) + 1
            durations.append(result.duration)
            flaky += stats.flaky
            retried += result.retry_count > 0
            passed += result.status == TestStatus.PASSED
            if stats.previous_status is not None:
                previous_total += 1
                previous_passed += stats.previous_status == TestStatus.PASSED

        total = len(entries)
        total_duration = sum(durations)
        run_pass_rate = passed / total if total else 0.0
        previous_pass_rate = previous_passed / previous_total if previous_total else None

        return ReportSummary(
            total=total,
            processed=total,
            skipped_records=malformed,
            duplicate_identities=duplicates,
            by_status=by_status,
            by_severity=by_severity,
            by_transition=by_transition,
            flaky=flaky,
            retried=retried,
            total_duration=total_duration,
            average_duration=total_duration / total if total else 0.0,
            duration_buckets=tuple(duration_buckets(durations)),
            pass_rate=run_pass_rate,
            previous_pass_rate=previous_pass_rate,
            trend_delta=(
                clamp(run_pass_rate - previous_pass_rate)
                if previous_pass_rate is not None
                else 0.0
            ),
        )

"""Statistics engine.

Derives AggregateStats from a history item. The computation is a pure
function of the item's entries, so stored history can be re-reported at any
time with identical results.
"""

from __future__ import annotations

import statistics
from typing import TYPE_CHECKING

from histreport.analysis.durations import percentiles
from histreport.analysis.flaky import FlakyClassifier
from histreport.analysis.trends import clamp, detect_trend, pass_rate, status_transition
from histreport.models.config import DEFAULT_FLAKY_WINDOW
from histreport.models.report import AggregateStats

if TYPE_CHECKING:
    from histreport.models.history import HistoryEntry, HistoryItem


class StatisticsEngine:
    """Computes per-test statistics for the current run."""

    def __init__(self, flaky_window: int = DEFAULT_FLAKY_WINDOW) -> None:
        """Initialize the engine.

        Args:
            flaky_window: Previous runs considered for flaky classification.
        """
        self._flaky = FlakyClassifier(flaky_window)

    def previous_entries(self, item: HistoryItem, current: HistoryEntry) -> list[HistoryEntry]:
        """Entries of runs that precede the current one, oldest first."""
        key = current.sort_key()
        return [e for e in item.entries if e.run_id != current.run_id and e.sort_key() < key]

    def compute(self, item: HistoryItem, current: HistoryEntry) -> AggregateStats:
        """Compute statistics of the current run's entry.

        The window is every retained entry up to and including the current
        run. The item is never modified.

        Args:
            item: History of the test.
            current: Entry of the run being reported.

        Returns:
            Fresh AggregateStats.

        Raises:
            ValueError: If the entry belongs to a different history id.
        """
        if current.result.history_id not in (None, item.history_id):
            msg = (
                f"Entry for {current.result.history_id} does not belong "
                f"to history item {item.history_id}"
            )
            raise ValueError(msg)

        previous = self.previous_entries(item, current)
        previous_results = [e.result for e in previous]
        window = [*previous_results, current.result]

        durations = [r.duration for r in window]
        points = percentiles(durations)

        window_rate = pass_rate([r.status for r in window]) or 0.0
        previous_rate = pass_rate([r.status for r in previous_results])
        delta = clamp(window_rate - previous_rate) if previous_rate is not None else 0.0

        return AggregateStats(
            history_id=item.history_id,
            sample_count=len(window),
            min_duration=min(durations),
            max_duration=max(durations),
            avg_duration=statistics.mean(durations),
            p50=points[50],
            p90=points[90],
            p95=points[95],
            p99=points[99],
            duration_trend=detect_trend(durations, higher_is_better=False),
            pass_rate=window_rate,
            previous_pass_rate=previous_rate,
            trend_delta=delta,
            flaky=self._flaky.is_flaky(current.result, previous_results),
            retry_count=current.result.retry_count,
            transition=status_transition(
                current.result.status, [r.status for r in previous_results]
            ),
            previous_status=previous_results[-1].status if previous_results else None,
        )

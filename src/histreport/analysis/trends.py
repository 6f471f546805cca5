"""Trend and status-change helpers.

Works on chronologically ordered values taken from a history window.
"""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Sequence

from histreport.models.report import StatusTransition, TrendDirection
from histreport.models.result import NON_SIGNIFICANT_STATUSES, TestStatus

# Constants for trend analysis
MIN_DATA_POINTS_FOR_TREND = 3
DEFAULT_SLOPE_THRESHOLD = 0.05

TRANSITIONS = {
    TestStatus.PASSED: StatusTransition.FIXED,
    TestStatus.FAILED: StatusTransition.REGRESSED,
    TestStatus.BROKEN: StatusTransition.MALFUNCTIONED,
}


def detect_trend(
    values: Sequence[float],
    slope_threshold: float = DEFAULT_SLOPE_THRESHOLD,
    *,
    higher_is_better: bool = True,
) -> TrendDirection:
    """Detect trend direction using linear regression.

    Args:
        values: List of values in chronological order.
        slope_threshold: Normalized slope needed to call a trend.
        higher_is_better: False for metrics such as durations.

    Returns:
        TrendDirection indicating the trend.
    """
    if len(values) < MIN_DATA_POINTS_FOR_TREND:
        return TrendDirection.STABLE

    # Simple linear regression slope
    n = len(values)
    x_mean = (n - 1) / 2
    y_mean = statistics.mean(values)

    numerator = sum((i - x_mean) * (v - y_mean) for i, v in enumerate(values))
    denominator = sum((i - x_mean) ** 2 for i in range(n))

    if denominator == 0:
        return TrendDirection.STABLE

    slope = numerator / denominator

    # Normalize slope by value range
    value_range = max(values) - min(values)
    normalized_slope = slope / value_range if value_range > 0 else slope
    if not higher_is_better:
        normalized_slope = -normalized_slope

    if normalized_slope > slope_threshold:
        return TrendDirection.IMPROVING
    if normalized_slope < -slope_threshold:
        return TrendDirection.DEGRADING
    return TrendDirection.STABLE


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def pass_rate(statuses: Sequence[TestStatus]) -> float | None:
    """Share of passed statuses, None for an empty sequence."""
    if not statuses:
        return None
    return sum(1 for s in statuses if s == TestStatus.PASSED) / len(statuses)


def majority_status(statuses: Sequence[TestStatus]) -> TestStatus | None:
    """Most frequent significant status.

    Skipped and unknown statuses are ignored. Ties go to the status seen most
    recently. Returns None when no significant status is present.
    """
    significant = [s for s in statuses if s not in NON_SIGNIFICANT_STATUSES]
    if not significant:
        return None

    counts = Counter(significant)
    top = max(counts.values())
    for status in reversed(significant):
        if counts[status] == top:
            return status
    return None


def last_significant_status(statuses: Sequence[TestStatus]) -> TestStatus | None:
    """Most recent status that is neither skipped nor unknown."""
    for status in reversed(statuses):
        if status not in NON_SIGNIFICANT_STATUSES:
            return status
    return None


def status_transition(
    current: TestStatus,
    previous: Sequence[TestStatus],
) -> StatusTransition | None:
    """Classify the change of a test's status against its history.

    Args:
        current: Status in the current run.
        previous: Earlier statuses, oldest first.

    Returns:
        NEW without history, FIXED/REGRESSED/MALFUNCTIONED when the status
        differs from the last significant one (or the history holds only
        skipped and unknown runs), otherwise None.
    """
    if not previous:
        return StatusTransition.NEW

    last = last_significant_status(previous)
    if last == current:
        return None
    return TRANSITIONS.get(current)

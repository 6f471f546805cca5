"""Flaky test classification.

A result is flaky when it was unstable within the run and the instability was
resolved by a retry, and the status of its first attempt disagrees with what
the test usually does.
"""

from __future__ import annotations

from collections.abc import Sequence

from histreport.analysis.retries import ResolvedExecution
from histreport.analysis.trends import majority_status
from histreport.models.config import DEFAULT_FLAKY_WINDOW
from histreport.models.result import TestResult


class FlakyClassifier:
    """Decides whether the current result of a test is flaky."""

    def __init__(self, window: int = DEFAULT_FLAKY_WINDOW) -> None:
        """Initialize the classifier.

        Args:
            window: Number of previous runs considered.
        """
        if window < 1:
            msg = f"Flaky window must be at least 1, got {window}"
            raise ValueError(msg)
        self._window = window

    @property
    def window(self) -> int:
        return self._window

    def comparable_history(
        self,
        current: TestResult,
        previous: Sequence[TestResult],
    ) -> list[TestResult]:
        """Last ``window`` previous results from the same environment.

        Args:
            current: Result of the current run.
            previous: Earlier results, oldest first.
        """
        recent = list(previous)[-self._window:]
        if current.environment is None:
            return recent
        return [r for r in recent if r.environment in (None, current.environment)]

    def is_flaky(self, current: TestResult, previous: Sequence[TestResult]) -> bool:
        """Classify the current result.

        Args:
            current: Result of the current run, with its in-run retries.
            previous: Earlier results of the same test, oldest first.

        Returns:
            True if the result is flaky for the current run.
        """
        execution = ResolvedExecution(
            final_status=current.status,
            prior_statuses=current.retries,
        )
        if not execution.resolved_by_retry:
            return False

        majority = majority_status([r.status for r in self.comparable_history(current, previous)])
        if majority is None:
            # Nothing to compare with; the retry evidence alone decides
            return True
        return current.first_status != majority

"""Retry tracking for a single test execution within a run.

Every execution walks an explicit state machine:

    (none) --attempt--> ATTEMPTED --attempt--> RETRIED --attempt--> RETRIED
                             \\                   /
                              ------resolve------> RESOLVED

The resolved execution carries the final status and the ordered statuses of
the attempts before it, which is what flaky classification reads later.
"""

from dataclasses import dataclass
from enum import Enum

from histreport.models.result import TestStatus


class ExecutionState(str, Enum):
    """Lifecycle state of a test execution."""

    ATTEMPTED = "attempted"
    RETRIED = "retried"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class ResolvedExecution:
    """Outcome of a finished execution."""

    final_status: TestStatus
    prior_statuses: tuple[TestStatus, ...] = ()

    @property
    def was_retried(self) -> bool:
        return bool(self.prior_statuses)

    @property
    def resolved_by_retry(self) -> bool:
        """True when an earlier attempt failed and the final one passed."""
        return (
            self.was_retried
            and self.final_status == TestStatus.PASSED
            and self.prior_statuses[0] != TestStatus.PASSED
        )


class ExecutionTracker:
    """Records the attempts of one test execution."""

    def __init__(self) -> None:
        self._state: ExecutionState | None = None
        self._attempts: list[TestStatus] = []

    @property
    def state(self) -> ExecutionState | None:
        """Current state, None before the first attempt."""
        return self._state

    def attempt(self, status: TestStatus) -> ExecutionState:
        """Record one attempt.

        Args:
            status: Status of the attempt.

        Returns:
            The new state.

        Raises:
            ValueError: If the execution is already resolved.
        """
        if self._state == ExecutionState.RESOLVED:
            msg = "Cannot record an attempt on a resolved execution"
            raise ValueError(msg)

        self._attempts.append(status)
        if len(self._attempts) == 1:
            self._state = ExecutionState.ATTEMPTED
        else:
            self._state = ExecutionState.RETRIED
        return self._state

    def resolve(self) -> ResolvedExecution:
        """Finish the execution; the last attempt is the final status.

        Raises:
            ValueError: If no attempt was recorded or it was already resolved.
        """
        if not self._attempts:
            msg = "Cannot resolve an execution without attempts"
            raise ValueError(msg)
        if self._state == ExecutionState.RESOLVED:
            msg = "Execution already resolved"
            raise ValueError(msg)

        self._state = ExecutionState.RESOLVED
        return ResolvedExecution(
            final_status=self._attempts[-1],
            prior_statuses=tuple(self._attempts[:-1]),
        )


def track_attempts(statuses: list[TestStatus]) -> ResolvedExecution:
    """Run a list of attempt statuses, oldest first, through a tracker."""
    tracker = ExecutionTracker()
    for status in statuses:
        tracker.attempt(status)
    return tracker.resolve()

"""History data models.

A HistoryItem is the bounded, time-ordered record of one test case across runs.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from histreport.models.result import RunInfo, TestResult


class HistoryEntry(BaseModel):
    """One test result together with the run that produced it."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    run_timestamp: datetime
    result: TestResult

    @field_validator("run_timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    @classmethod
    def for_run(cls, run: RunInfo, result: TestResult) -> "HistoryEntry":
        """Build the entry for a result of the given run."""
        return cls(run_id=run.run_id, run_timestamp=run.timestamp, result=result)

    def sort_key(self) -> tuple[datetime, str]:
        """Ordering key: run timestamp, then run id for equal timestamps."""
        return (self.run_timestamp, self.run_id)


class HistoryItem(BaseModel):
    """Time-ordered entries of a single history id.

    Entries are kept in ascending run timestamp order and hold at most one
    entry per run id. Only the history merger mutates this object.
    """

    history_id: str
    entries: list[HistoryEntry] = Field(default_factory=list)

    def run_ids(self) -> list[str]:
        """Run ids in entry order."""
        return [e.run_id for e in self.entries]

    def find(self, run_id: str) -> HistoryEntry | None:
        """Return the entry of a run, if present."""
        for entry in self.entries:
            if entry.run_id == run_id:
                return entry
        return None

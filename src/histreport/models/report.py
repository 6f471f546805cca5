"""Report data models.

Everything here is immutable: the report model is built once per generation
and only read by consumers afterwards.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from histreport.models.result import (
    DuplicateIdentity,
    MalformedRecord,
    RunInfo,
    TestResult,
    TestStatus,
)


class TrendDirection(str, Enum):
    """Direction of a metric trend."""

    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


class StatusTransition(str, Enum):
    """Change of a test's status compared to its history."""

    NEW = "new"
    FIXED = "fixed"
    REGRESSED = "regressed"
    MALFUNCTIONED = "malfunctioned"


class AggregateStats(BaseModel):
    """Statistics derived from one history item for the current run."""

    model_config = ConfigDict(frozen=True)

    history_id: str
    sample_count: int = Field(ge=1)

    # Duration metrics (milliseconds)
    min_duration: int
    max_duration: int
    avg_duration: float
    p50: int
    p90: int
    p95: int
    p99: int
    duration_trend: TrendDirection = TrendDirection.STABLE

    # Pass/fail metrics
    pass_rate: float = Field(ge=0.0, le=1.0)
    previous_pass_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    trend_delta: float = Field(default=0.0, ge=-1.0, le=1.0)

    flaky: bool = False
    retry_count: int = 0
    transition: StatusTransition | None = None
    previous_status: TestStatus | None = None  # Status in the preceding run


class DurationBucket(BaseModel):
    """Inclusive duration range and the number of results inside it."""

    model_config = ConfigDict(frozen=True)

    from_ms: int
    to_ms: int
    count: int = 0


class ReportEntry(BaseModel):
    """A current-run result joined with its statistics."""

    model_config = ConfigDict(frozen=True)

    result: TestResult
    stats: AggregateStats


class SummaryTestResult(BaseModel):
    """Minimal projection used by summary views."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    status: TestStatus
    duration: int


class ReportSummary(BaseModel):
    """Rollups over all entries of a report."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    processed: int = 0
    skipped_records: int = 0
    duplicate_identities: int = 0

    by_status: dict[TestStatus, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_transition: dict[StatusTransition, int] = Field(default_factory=dict)

    flaky: int = 0
    retried: int = 0

    total_duration: int = 0
    average_duration: float = 0.0
    duration_buckets: tuple[DurationBucket, ...] = ()

    pass_rate: float = 0.0
    previous_pass_rate: float | None = None
    trend_delta: float = 0.0


class ReportModel(BaseModel):
    """Root of the report object tree."""

    model_config = ConfigDict(frozen=True)

    run: RunInfo
    generated_at: datetime
    entries: tuple[ReportEntry, ...] = ()
    summary: ReportSummary = Field(default_factory=ReportSummary)
    malformed: tuple[MalformedRecord, ...] = ()
    duplicates: tuple[DuplicateIdentity, ...] = ()

    def summary_results(self) -> list[SummaryTestResult]:
        """Project entries to {id, name, status, duration} for summary cards."""
        return [
            SummaryTestResult(
                id=e.result.id,
                name=e.result.name,
                status=e.result.status,
                duration=e.result.duration,
            )
            for e in self.entries
        ]

    def entry_for(self, history_id: str) -> ReportEntry | None:
        """Find the entry of a history id."""
        for entry in self.entries:
            if entry.result.history_id == history_id:
                return entry
        return None

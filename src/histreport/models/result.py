"""Test result data models.

Defines the canonical, normalized shape of one test execution in one run.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TestStatus(str, Enum):
    """Final status of a test execution."""

    __test__ = False  # Not a pytest test class

    PASSED = "passed"
    FAILED = "failed"
    BROKEN = "broken"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


# Statuses that carry no signal about test health
NON_SIGNIFICANT_STATUSES = frozenset({TestStatus.SKIPPED, TestStatus.UNKNOWN})


class TestResult(BaseModel):
    """One execution of one test case in one run."""

    model_config = ConfigDict(frozen=True)
    __test__ = False

    id: str = Field(..., min_length=1)  # Run-scoped
    history_id: str | None = None
    name: str = Field(..., min_length=1)
    full_name: str | None = None
    status: TestStatus
    duration: int = Field(default=0, ge=0)  # Milliseconds
    start: int | None = None  # Epoch milliseconds
    stop: int | None = None
    severity: str = "normal"
    labels: dict[str, str] = Field(default_factory=dict)
    parameters: dict[str, str] = Field(default_factory=dict)
    environment: str | None = None
    message: str | None = None

    # Statuses of earlier attempts in the same run, oldest first
    retries: tuple[TestStatus, ...] = ()
    source: str | None = None

    @model_validator(mode="after")
    def _check_timing(self) -> "TestResult":
        if self.start is not None and self.stop is not None:
            if self.stop < self.start:
                msg = f"stop ({self.stop}) is earlier than start ({self.start})"
                raise ValueError(msg)
            if self.duration != self.stop - self.start:
                msg = (
                    f"duration ({self.duration}) does not match "
                    f"stop - start ({self.stop - self.start})"
                )
                raise ValueError(msg)
        return self

    @property
    def retry_count(self) -> int:
        """Number of earlier attempts in this run."""
        return len(self.retries)

    @property
    def first_status(self) -> TestStatus:
        """Status of the first attempt in this run."""
        return self.retries[0] if self.retries else self.status

    def with_history_id(self, history_id: str) -> "TestResult":
        """Return a copy carrying the given history id."""
        return self.model_copy(update={"history_id": history_id})


class RunInfo(BaseModel):
    """Metadata of the run that produced a set of results."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    name: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC so that ordering never mixes kinds
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class MalformedRecord(BaseModel):
    """A raw record that was rejected during ingestion."""

    model_config = ConfigDict(frozen=True)

    source: str
    index: int
    reason: str


class DuplicateIdentity(BaseModel):
    """Warning raised when two results in one run share an identity."""

    model_config = ConfigDict(frozen=True)

    history_id: str
    assigned_id: str
    occurrence: int
    name: str

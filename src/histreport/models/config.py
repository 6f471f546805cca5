"""Configuration data models.

Defines the recognized engine options. Option names are accepted both in the
camelCase spelling used by report configs (``historyRetention``) and in
snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_HISTORY_RETENTION = 30
DEFAULT_FLAKY_WINDOW = 5
DEFAULT_IDENTITY_FIELDS = ("full_name", "parameters")


class EngineConfig(BaseModel):
    """Configuration for the aggregation engine."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    history_retention: int = Field(
        default=DEFAULT_HISTORY_RETENTION, ge=1, alias="historyRetention"
    )
    flaky_window: int = Field(default=DEFAULT_FLAKY_WINDOW, ge=1, alias="flakyWindow")
    identity_fields: tuple[str, ...] = Field(
        default=DEFAULT_IDENTITY_FIELDS, alias="identityFields"
    )
    allow_empty: bool = Field(default=False, alias="allowEmpty")
    # Parallel merge workers; 1 merges sequentially
    merge_workers: int = Field(default=1, ge=1, alias="mergeWorkers")

    @field_validator("identity_fields")
    @classmethod
    def _non_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            msg = "identityFields must name at least one field"
            raise ValueError(msg)
        return value


class HistoryConfig(BaseModel):
    """Configuration for history storage."""

    dir: str = "test-history"


class QualityGateConfig(BaseModel):
    """Thresholds for the quality gate. Unset rules are not evaluated."""

    max_failures: int | None = Field(default=None, ge=0)
    min_tests_count: int | None = Field(default=None, ge=0)
    success_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    max_duration: int | None = Field(default=None, ge=0)  # Milliseconds, per test
    known_issues: list[str] = Field(default_factory=list)  # History ids

    @property
    def enabled(self) -> bool:
        """Whether any rule is configured."""
        return any(
            v is not None
            for v in (
                self.max_failures,
                self.min_tests_count,
                self.success_rate,
                self.max_duration,
            )
        )

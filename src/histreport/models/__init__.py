"""Data models for histreport."""

from histreport.models.config import EngineConfig, HistoryConfig, QualityGateConfig
from histreport.models.history import HistoryEntry, HistoryItem
from histreport.models.report import (
    AggregateStats,
    DurationBucket,
    ReportEntry,
    ReportModel,
    ReportSummary,
    StatusTransition,
    SummaryTestResult,
    TrendDirection,
)
from histreport.models.result import (
    NON_SIGNIFICANT_STATUSES,
    DuplicateIdentity,
    MalformedRecord,
    RunInfo,
    TestResult,
    TestStatus,
)

__all__ = [
    "NON_SIGNIFICANT_STATUSES",
    "AggregateStats",
    "DuplicateIdentity",
    "DurationBucket",
    "EngineConfig",
    "HistoryConfig",
    "HistoryEntry",
    "HistoryItem",
    "MalformedRecord",
    "QualityGateConfig",
    "ReportEntry",
    "ReportModel",
    "ReportSummary",
    "RunInfo",
    "StatusTransition",
    "SummaryTestResult",
    "TestResult",
    "TestStatus",
    "TrendDirection",
]

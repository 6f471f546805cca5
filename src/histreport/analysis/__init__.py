"""Analysis module for statistics, trends, retries and flaky classification."""

from histreport.analysis.durations import duration_buckets, nearest_rank, percentiles
from histreport.analysis.flaky import FlakyClassifier
from histreport.analysis.retries import ExecutionState, ExecutionTracker, ResolvedExecution
from histreport.analysis.stats import StatisticsEngine
from histreport.analysis.trends import detect_trend, majority_status, status_transition

__all__ = [
    "ExecutionState",
    "ExecutionTracker",
    "FlakyClassifier",
    "ResolvedExecution",
    "StatisticsEngine",
    "detect_trend",
    "duration_buckets",
    "majority_status",
    "nearest_rank",
    "percentiles",
    "status_transition",
]

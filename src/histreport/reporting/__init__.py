"""Report model building and report consumers."""

from histreport.reporting.builder import ReportModelBuilder
from histreport.reporting.json_generator import JsonReportGenerator
from histreport.reporting.quality_gate import (
    RULES,
    QualityGate,
    QualityGateResult,
    QualityGateRule,
)

__all__ = [
    "RULES",
    "JsonReportGenerator",
    "QualityGate",
    "QualityGateResult",
    "QualityGateRule",
    "ReportModelBuilder",
]

"""JSON report generator for machine-readable export.

Exports the report model as JSON for programmatic access and integration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from histreport import __version__

if TYPE_CHECKING:
    from histreport.models.report import ReportEntry, ReportModel
    from histreport.reporting.quality_gate import QualityGateResult


class JsonReportGenerator:
    """Generates JSON reports from a report model."""

    def generate(
        self,
        report: ReportModel,
        output_path: Path,
        quality_gate: list[QualityGateResult] | None = None,
    ) -> None:
        """Generate a JSON report.

        Args:
            report: The report model.
            output_path: Path to write the JSON report.
            quality_gate: Optional quality gate outcomes to include.
        """
        document = self.build_report(report, quality_gate)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(document, indent=2, default=str))

    def build_report(
        self,
        report: ReportModel,
        quality_gate: list[QualityGateResult] | None = None,
    ) -> dict[str, Any]:
        """Build the report dictionary."""
        summary = report.summary
        document: dict[str, Any] = {
            "metadata": {
                "generated_at": report.generated_at.isoformat(),
                "histreport_version": __version__,
                "run_id": report.run.run_id,
                "run_timestamp": report.run.timestamp.isoformat(),
                "run_name": report.run.name,
            },
            "summary": {
                "total": summary.total,
                "processed": summary.processed,
                "skipped_records": summary.skipped_records,
                "duplicate_identities": summary.duplicate_identities,
                "statuses": {s.value: n for s, n in summary.by_status.items()},
                "severities": summary.by_severity,
                "transitions": {t.value: n for t, n in summary.by_transition.items()},
                "flaky": summary.flaky,
                "retried": summary.retried,
                "total_duration_ms": summary.total_duration,
                "average_duration_ms": summary.average_duration,
                "pass_rate": summary.pass_rate,
                "previous_pass_rate": summary.previous_pass_rate,
                "trend_delta": summary.trend_delta,
                "duration_buckets": [b.model_dump() for b in summary.duration_buckets],
            },
            "results": [self._build_result_entry(e) for e in report.entries],
            "malformed": [m.model_dump() for m in report.malformed],
            "duplicates": [d.model_dump() for d in report.duplicates],
        }

        if quality_gate is not None:
            document["quality_gate"] = [q.model_dump() for q in quality_gate]

        return document

    def _build_result_entry(self, entry: ReportEntry) -> dict[str, Any]:
        """Build a single result entry."""
        result, stats = entry.result, entry.stats
        data: dict[str, Any] = {
            "id": result.id,
            "history_id": result.history_id,
            "name": result.name,
            "full_name": result.full_name,
            "status": result.status.value,
            "duration_ms": result.duration,
            "severity": result.severity,
            "labels": result.labels,
            "parameters": result.parameters,
            "retries": [s.value for s in result.retries],
            "stats": stats.model_dump(mode="json", exclude={"history_id"}),
        }

        if result.message:
            data["message"] = result.message
        if result.environment:
            data["environment"] = result.environment

        return data

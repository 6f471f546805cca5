"""Quality gate evaluation.

A read-only consumer of the report model: each configured rule compares an
actual value computed from the current run with its expected threshold.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel

from histreport.models.result import TestResult, TestStatus

if TYPE_CHECKING:
    from histreport.models.config import QualityGateConfig
    from histreport.models.report import ReportModel

FAILURE_STATUSES = frozenset({TestStatus.FAILED, TestStatus.BROKEN})


class QualityGateResult(BaseModel):
    """Outcome of a single rule."""

    rule: str
    expected: float
    actual: float
    success: bool
    message: str


@dataclass(frozen=True)
class QualityGateRule:
    """A named rule: computes the actual value and compares it."""

    name: str
    measure: Callable[[Sequence[TestResult], frozenset[str]], float]
    passes: Callable[[float, float], bool]
    describe: str

    def validate(
        self,
        results: Sequence[TestResult],
        expected: float,
        known_issues: frozenset[str] = frozenset(),
    ) -> QualityGateResult:
        actual = self.measure(results, known_issues)
        success = self.passes(actual, expected)
        return QualityGateResult(
            rule=self.name,
            expected=expected,
            actual=actual,
            success=success,
            message=self.describe.format(actual=actual, expected=expected),
        )


def _without_known(results: Sequence[TestResult], known: frozenset[str]) -> list[TestResult]:
    return [r for r in results if r.history_id not in known]


def _failures(results: Sequence[TestResult], known: frozenset[str]) -> float:
    return sum(1 for r in _without_known(results, known) if r.status in FAILURE_STATUSES)


def _tests_count(results: Sequence[TestResult], known: frozenset[str]) -> float:
    return len(results)


def _success_rate(results: Sequence[TestResult], known: frozenset[str]) -> float:
    relevant = _without_known(results, known)
    if not relevant:
        return 0.0
    return sum(1 for r in relevant if r.status == TestStatus.PASSED) / len(relevant)


def _max_duration(results: Sequence[TestResult], known: frozenset[str]) -> float:
    # Known issues still count: a slow test is slow regardless of its status
    return max((r.duration for r in results), default=0)


max_failures_rule = QualityGateRule(
    name="max_failures",
    measure=_failures,
    passes=lambda actual, expected: actual <= expected,
    describe="Failures: {actual:.0f} (allowed at most {expected:.0f})",
)

min_tests_count_rule = QualityGateRule(
    name="min_tests_count",
    measure=_tests_count,
    passes=lambda actual, expected: actual >= expected,
    describe="Tests: {actual:.0f} (required at least {expected:.0f})",
)

success_rate_rule = QualityGateRule(
    name="success_rate",
    measure=_success_rate,
    passes=lambda actual, expected: actual >= expected,
    describe="Success rate: {actual:.0%} (required at least {expected:.0%})",
)

max_duration_rule = QualityGateRule(
    name="max_duration",
    measure=_max_duration,
    passes=lambda actual, expected: actual <= expected,
    describe="Longest test: {actual:.0f}ms (allowed at most {expected:.0f}ms)",
)

RULES: dict[str, QualityGateRule] = {
    rule.name: rule
    for rule in (max_failures_rule, min_tests_count_rule, success_rate_rule, max_duration_rule)
}


class QualityGate:
    """Evaluates the configured rules against a report."""

    def __init__(self, config: QualityGateConfig) -> None:
        self._config = config

    def evaluate(self, report: ReportModel) -> list[QualityGateResult]:
        """Run every configured rule.

        Args:
            report: The report to check.

        Returns:
            One result per configured rule, in rule order.
        """
        results = [e.result for e in report.entries]
        known = frozenset(self._config.known_issues)
        outcomes: list[QualityGateResult] = []

        for name, rule in RULES.items():
            expected = getattr(self._config, name)
            if expected is None:
                continue
            outcomes.append(rule.validate(results, float(expected), known))

        return outcomes

    @staticmethod
    def passed(outcomes: Sequence[QualityGateResult]) -> bool:
        return all(o.success for o in outcomes)

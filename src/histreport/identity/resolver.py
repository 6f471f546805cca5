"""Identity resolution.

Computes the stable history id that lets the same logical test be recognized
across runs and across the machines that produced the results.

A history id has the shape ``<case hash>.<parameters hash>``: the md5 of the
configured case fields and the md5 of the sorted parameter signature. Only
fields that describe the test itself are allowed into the hash.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Sequence

from histreport.exceptions import ConfigurationError
from histreport.models.config import DEFAULT_IDENTITY_FIELDS
from histreport.models.result import DuplicateIdentity, TestResult

logger = logging.getLogger(__name__)

LABEL_PREFIX = "labels."
PARAMETERS_FIELD = "parameters"
CASE_FIELDS = frozenset({"name", "full_name"})

# Values that change from run to run and would break cross-run correlation
RUN_SPECIFIC_FIELDS = frozenset(
    {"id", "start", "stop", "duration", "status", "environment", "run_id", "timestamp"}
)

FIELD_SEPARATOR = "\x1f"
DUPLICATE_SUFFIX = "#"


def md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8"), usedforsecurity=False).hexdigest()


def validate_identity_fields(fields: Sequence[str]) -> tuple[str, ...]:
    """Check that identity fields only name stable test attributes.

    Raises:
        ConfigurationError: If a field is unknown or run-specific.
    """
    if not fields:
        msg = "At least one identity field is required"
        raise ConfigurationError(msg)

    for name in fields:
        if name in RUN_SPECIFIC_FIELDS:
            msg = f"Identity field '{name}' is run-specific and cannot be hashed"
            raise ConfigurationError(msg)
        if name.startswith(LABEL_PREFIX):
            if not name[len(LABEL_PREFIX):]:
                msg = f"Identity field '{name}' is missing a label name"
                raise ConfigurationError(msg)
            continue
        if name not in CASE_FIELDS and name != PARAMETERS_FIELD:
            msg = f"Unknown identity field '{name}'"
            raise ConfigurationError(msg)
    return tuple(fields)


class IdentityResolver:
    """Assigns history ids to test results."""

    def __init__(self, identity_fields: Sequence[str] = DEFAULT_IDENTITY_FIELDS) -> None:
        """Initialize the resolver.

        Args:
            identity_fields: Fields hashed into the history id.

        Raises:
            ConfigurationError: If the fields are invalid.
        """
        self._fields = validate_identity_fields(identity_fields)

    @property
    def identity_fields(self) -> tuple[str, ...]:
        return self._fields

    def _field_value(self, result: TestResult, name: str) -> str:
        if name.startswith(LABEL_PREFIX):
            return result.labels.get(name[len(LABEL_PREFIX):], "")
        if name == "full_name":
            return result.full_name or result.name
        return result.name

    def parameter_signature(self, result: TestResult) -> str:
        """Order-independent signature of the result's parameters."""
        if PARAMETERS_FIELD not in self._fields:
            return ""
        return FIELD_SEPARATOR.join(f"{k}={v}" for k, v in sorted(result.parameters.items()))

    def compute_history_id(self, result: TestResult) -> str:
        """Compute the history id from identity fields only."""
        case_values = [
            f"{name}={self._field_value(result, name)}"
            for name in self._fields
            if name != PARAMETERS_FIELD
        ]
        case_hash = md5(FIELD_SEPARATOR.join(case_values))
        return f"{case_hash}.{md5(self.parameter_signature(result))}"

    def resolve_run(
        self,
        results: Iterable[TestResult],
    ) -> tuple[list[TestResult], list[DuplicateIdentity]]:
        """Assign history ids to all results of one run.

        Results that already carry a history id keep it unless the id is
        already taken in the run. When two results of the run end up with the
        same id, later occurrences get a ``#<n>`` suffix in input order and a
        warning is recorded.

        Args:
            results: Normalized results of the run.

        Returns:
            Tuple of (resolved results, duplicate warnings).
        """
        resolved: list[TestResult] = []
        duplicates: list[DuplicateIdentity] = []
        occurrences: dict[str, int] = {}
        assigned: set[str] = set()

        for result in results:
            base_id = result.history_id or self.compute_history_id(result)
            occurrence = occurrences.get(base_id, 0) + 1
            occurrences[base_id] = occurrence

            history_id = base_id
            if occurrence > 1 or base_id in assigned:
                occurrence = max(occurrence, 2)
                history_id = f"{base_id}{DUPLICATE_SUFFIX}{occurrence}"
                # Skip suffixes that collide with ids already taken in this run
                while history_id in assigned:
                    occurrence += 1
                    history_id = f"{base_id}{DUPLICATE_SUFFIX}{occurrence}"
                occurrences[base_id] = occurrence
                duplicates.append(
                    DuplicateIdentity(
                        history_id=base_id,
                        assigned_id=history_id,
                        occurrence=occurrence,
                        name=result.name,
                    )
                )
                logger.warning(
                    "Duplicate identity %s for test '%s', assigned %s",
                    base_id,
                    result.name,
                    history_id,
                )

            assigned.add(history_id)
            resolved.append(result.with_history_id(history_id))

        return resolved, duplicates

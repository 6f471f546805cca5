"""Abstract base classes for source adapters and raw record views.

An adapter yields raw records in its own format. Each raw record is wrapped in
a RawRecordView that answers capability questions (has a name? a status? a
duration?), and a single shared routine turns any view into a TestResult.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from histreport.analysis.retries import track_attempts
from histreport.exceptions import MalformedRecordError
from histreport.models.result import TestResult, TestStatus


def parse_status(value: Any) -> TestStatus:
    """Parse a raw status value.

    Raises:
        MalformedRecordError: If the value is not a recognized status.
    """
    if isinstance(value, TestStatus):
        return value
    if isinstance(value, str):
        try:
            return TestStatus(value.strip().lower())
        except ValueError:
            pass
    msg = f"Unrecognized status: {value!r}"
    raise MalformedRecordError(msg)


def parse_millis(value: Any, field: str) -> int | None:
    """Parse an optional integral millisecond value."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        msg = f"Field '{field}' must be a number, got {type(value).__name__}"
        raise MalformedRecordError(msg)
    if isinstance(value, float) and not math.isfinite(value):
        msg = f"Field '{field}' must be finite, got {value!r}"
        raise MalformedRecordError(msg)
    return int(value)


class RawRecordView(ABC):
    """Capability view over one raw record."""

    @abstractmethod
    def record_id(self) -> str | None:
        """Source-provided run-scoped id."""
        ...

    @abstractmethod
    def name(self) -> str | None: ...

    @abstractmethod
    def full_name(self) -> str | None: ...

    @abstractmethod
    def status(self) -> TestStatus | None:
        """Final status, None when the record carries none.

        Raises:
            MalformedRecordError: If a status is present but unrecognized.
        """
        ...

    @abstractmethod
    def duration(self) -> int | None: ...

    @abstractmethod
    def start(self) -> int | None: ...

    @abstractmethod
    def stop(self) -> int | None: ...

    def history_id(self) -> str | None:
        return None

    def severity(self) -> str | None:
        return None

    def labels(self) -> dict[str, str]:
        return {}

    def parameters(self) -> dict[str, str]:
        return {}

    def environment(self) -> str | None:
        return None

    def message(self) -> str | None:
        return None

    def attempts(self) -> list[TestStatus]:
        """Statuses of earlier attempts in this run, oldest first."""
        return []

    def has_name(self) -> bool:
        return bool(self.name() or self.full_name())

    def has_status(self) -> bool:
        return self.status() is not None

    def has_duration(self) -> bool:
        return self.duration() is not None or (
            self.start() is not None and self.stop() is not None
        )


def _short_name(full_name: str | None) -> str | None:
    if not full_name:
        return None
    return full_name.rsplit(".", 1)[-1] or full_name


def build_result(view: RawRecordView, *, source: str, index: int) -> TestResult:
    """Normalize a raw record view into a TestResult.

    Args:
        view: Capability view over the raw record.
        source: Label of the adapter that produced the record.
        index: Position of the record within its adapter.

    Returns:
        The normalized result.

    Raises:
        MalformedRecordError: If name or status cannot be derived, or the
            timing data is inconsistent.
    """
    if not view.has_name():
        msg = "Record has no name"
        raise MalformedRecordError(msg)
    status = view.status()
    if status is None:
        msg = "Record has no status"
        raise MalformedRecordError(msg)

    start, stop = view.start(), view.stop()
    duration = view.duration()
    if start is not None and stop is not None:
        if stop < start:
            msg = f"Record stops ({stop}) before it starts ({start})"
            raise MalformedRecordError(msg)
        duration = stop - start
    elif duration is None:
        duration = 0
    if duration < 0:
        msg = f"Record has negative duration: {duration}"
        raise MalformedRecordError(msg)

    execution = track_attempts([*view.attempts(), status])
    labels = view.labels()

    try:
        return TestResult(
            id=view.record_id() or f"{source}#{index}",
            history_id=view.history_id(),
            name=view.name() or _short_name(view.full_name()),
            full_name=view.full_name(),
            status=execution.final_status,
            duration=duration,
            start=start,
            stop=stop,
            severity=view.severity() or labels.get("severity") or "normal",
            labels=labels,
            parameters=view.parameters(),
            environment=view.environment(),
            message=view.message(),
            retries=execution.prior_statuses,
            source=source,
        )
    except ValidationError as e:
        msg = f"Invalid record: {e}"
        raise MalformedRecordError(msg) from e


class RecordAdapter(ABC):
    """Abstract base class for all source adapters."""

    name: str = "base"

    def __init__(self, source: Any) -> None:
        """Initialize the adapter with its source.

        Args:
            source: Adapter-specific source (path, list of mappings, ...).
        """
        self._source = source

    @property
    def source_label(self) -> str:
        """Human readable label used in reject reports."""
        return self.name

    @abstractmethod
    def records(self) -> Iterator[Any]:
        """Yield raw records in source order.

        Raises:
            IngestionError: If the source as a whole cannot be read.
        """
        ...

    @abstractmethod
    def view(self, raw: Any) -> RawRecordView:
        """Wrap a raw record in a capability view.

        Raises:
            MalformedRecordError: If the raw record is unusable.
        """
        ...

    def normalize(self, raw: Any, index: int) -> TestResult:
        """Normalize one raw record.

        Raises:
            MalformedRecordError: If the record cannot be normalized.
        """
        return build_result(self.view(raw), source=self.source_label, index=index)

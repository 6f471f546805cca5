"""Adapters for mapping-shaped records.

Records follow the Allure result JSON layout (``name``, ``fullName``,
``status``, ``start``, ``stop``, ``labels`` as ``[{name, value}]`` ...).
Labels and parameters may also be given as plain mappings.
"""

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from histreport.exceptions import IngestionError, MalformedRecordError
from histreport.ingestion.base import RawRecordView, RecordAdapter, parse_millis, parse_status
from histreport.ingestion.factory import AdapterRegistry
from histreport.models.result import TestStatus

RESULT_FILE_PATTERN = "*-result.json"


def _pairs(value: Any, field: str) -> dict[str, str]:
    """Convert ``[{name, value}]`` or a mapping into a str->str dict."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, list):
        pairs: dict[str, str] = {}
        for item in value:
            if not isinstance(item, Mapping) or "name" not in item:
                msg = f"Invalid entry in '{field}': {item!r}"
                raise MalformedRecordError(msg)
            pairs[str(item["name"])] = str(item.get("value", ""))
        return pairs
    msg = f"Field '{field}' must be a list or mapping"
    raise MalformedRecordError(msg)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class MappingRecordView(RawRecordView):
    """Capability view over an Allure-style mapping."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    def record_id(self) -> str | None:
        return _optional_str(self._data.get("uuid") or self._data.get("id"))

    def name(self) -> str | None:
        return _optional_str(self._data.get("name"))

    def full_name(self) -> str | None:
        return _optional_str(self._data.get("fullName") or self._data.get("full_name"))

    def status(self) -> TestStatus | None:
        value = self._data.get("status")
        if value is None or value == "":
            return None
        return parse_status(value)

    def duration(self) -> int | None:
        return parse_millis(self._data.get("duration"), "duration")

    def start(self) -> int | None:
        return parse_millis(self._data.get("start"), "start")

    def stop(self) -> int | None:
        return parse_millis(self._data.get("stop"), "stop")

    def history_id(self) -> str | None:
        return _optional_str(self._data.get("historyId") or self._data.get("history_id"))

    def severity(self) -> str | None:
        return _optional_str(self._data.get("severity"))

    def labels(self) -> dict[str, str]:
        return _pairs(self._data.get("labels"), "labels")

    def parameters(self) -> dict[str, str]:
        return _pairs(self._data.get("parameters"), "parameters")

    def environment(self) -> str | None:
        return _optional_str(self._data.get("environment"))

    def message(self) -> str | None:
        details = self._data.get("statusDetails")
        if isinstance(details, Mapping) and details.get("message"):
            return str(details["message"])
        return _optional_str(self._data.get("message"))

    def attempts(self) -> list[TestStatus]:
        retries = self._data.get("retries") or []
        if not isinstance(retries, list):
            msg = "Field 'retries' must be a list"
            raise MalformedRecordError(msg)
        statuses: list[TestStatus] = []
        for retry in retries:
            value = retry.get("status") if isinstance(retry, Mapping) else retry
            statuses.append(parse_status(value))
        return statuses


@AdapterRegistry.register("dict")
class DictRecordAdapter(RecordAdapter):
    """Adapter over in-memory mappings."""

    def records(self) -> Iterator[Any]:
        yield from self._source

    def view(self, raw: Any) -> RawRecordView:
        if not isinstance(raw, Mapping):
            msg = f"Record must be a mapping, got {type(raw).__name__}"
            raise MalformedRecordError(msg)
        return MappingRecordView(raw)


@AdapterRegistry.register("allure")
class AllureResultsAdapter(DictRecordAdapter):
    """Adapter over a directory of Allure ``*-result.json`` files."""

    def __init__(self, source: Path | str) -> None:
        super().__init__(Path(source))

    @property
    def source_label(self) -> str:
        return f"{self.name}:{self._source}"

    def records(self) -> Iterator[Any]:
        results_dir: Path = self._source
        if not results_dir.is_dir():
            msg = f"Results directory not found: {results_dir}"
            raise IngestionError(msg)

        for result_file in sorted(results_dir.glob(RESULT_FILE_PATTERN)):
            yield result_file

    def view(self, raw: Any) -> RawRecordView:
        try:
            data = json.loads(Path(raw).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            msg = f"Unreadable result file {raw}: {e}"
            raise MalformedRecordError(msg) from e
        return super().view(data)

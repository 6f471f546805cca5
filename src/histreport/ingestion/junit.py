"""JUnit XML adapter.

Reads ``testcase`` elements from JUnit XML files. Surefire rerun elements
(``flakyFailure``, ``rerunFailure`` ...) are taken as earlier attempts.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from histreport.exceptions import IngestionError, MalformedRecordError
from histreport.ingestion.base import RawRecordView, RecordAdapter
from histreport.ingestion.factory import AdapterRegistry
from histreport.models.result import TestStatus

# Surefire rerun elements, mapped to the status of the failed attempt
RERUN_ELEMENTS = {
    "flakyFailure": TestStatus.FAILED,
    "flakyError": TestStatus.BROKEN,
    "rerunFailure": TestStatus.FAILED,
    "rerunError": TestStatus.BROKEN,
}


@dataclass(frozen=True)
class UnreadableFile:
    """Raw record standing in for a JUnit file that failed to parse."""

    path: Path
    reason: str


class JunitRecordView(RawRecordView):
    """Capability view over a ``testcase`` element."""

    def __init__(self, testcase: ET.Element, suite: str | None = None) -> None:
        self._case = testcase
        self._suite = suite

    def record_id(self) -> str | None:
        return None

    def name(self) -> str | None:
        return (self._case.get("name") or "").strip() or None

    def full_name(self) -> str | None:
        name = self.name()
        classname = (self._case.get("classname") or self._suite or "").strip()
        if name and classname:
            return f"{classname}.{name}"
        return name

    def status(self) -> TestStatus | None:
        if self._case.find("error") is not None:
            return TestStatus.BROKEN
        if self._case.find("failure") is not None:
            return TestStatus.FAILED
        if self._case.find("skipped") is not None:
            return TestStatus.SKIPPED
        return TestStatus.PASSED

    def duration(self) -> int | None:
        value = self._case.get("time")
        if value is None or value == "":
            return None
        try:
            seconds = float(value.replace(",", ""))
        except ValueError as e:
            msg = f"Invalid testcase time: {value!r}"
            raise MalformedRecordError(msg) from e
        millis = seconds * 1000
        if not math.isfinite(millis):
            msg = f"Invalid testcase time: {value!r}"
            raise MalformedRecordError(msg)
        return round(millis)

    def start(self) -> int | None:
        return None

    def stop(self) -> int | None:
        return None

    def labels(self) -> dict[str, str]:
        labels: dict[str, str] = {}
        if self._suite:
            labels["suite"] = self._suite
        for prop in self._case.iterfind("properties/property"):
            name = prop.get("name")
            if name:
                labels[name] = prop.get("value", "")
        return labels

    def message(self) -> str | None:
        for tag in ("error", "failure"):
            element = self._case.find(tag)
            if element is not None:
                return element.get("message") or (element.text or "").strip() or None
        return None

    def attempts(self) -> list[TestStatus]:
        return [RERUN_ELEMENTS[child.tag] for child in self._case if child.tag in RERUN_ELEMENTS]


@AdapterRegistry.register("junit")
class JunitXmlAdapter(RecordAdapter):
    """Adapter over a JUnit XML file or a directory of them."""

    def __init__(self, source: Path | str) -> None:
        super().__init__(Path(source))

    @property
    def source_label(self) -> str:
        return f"{self.name}:{self._source}"

    def _files(self) -> list[Path]:
        path: Path = self._source
        if path.is_dir():
            return sorted(path.glob("**/*.xml"))
        if path.is_file():
            return [path]
        msg = f"JUnit source not found: {path}"
        raise IngestionError(msg)

    def records(self) -> Iterator[Any]:
        for xml_file in self._files():
            try:
                root = ET.parse(xml_file).getroot()
            except (ET.ParseError, OSError) as e:
                yield UnreadableFile(xml_file, str(e))
                continue

            suites = [root] if root.tag == "testsuite" else list(root.iter("testsuite"))
            if not suites and root.tag == "testcase":
                yield (root, None)
                continue
            for suite in suites:
                for testcase in suite.findall("testcase"):
                    yield (testcase, suite.get("name"))

    def view(self, raw: Any) -> RawRecordView:
        if isinstance(raw, UnreadableFile):
            msg = f"Failed to parse JUnit file {raw.path}: {raw.reason}"
            raise MalformedRecordError(msg)
        testcase, suite = raw
        return JunitRecordView(testcase, suite)

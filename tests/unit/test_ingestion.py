"""Tests for ingestion: mapping adapters, registry and normalizer."""

import json
from pathlib import Path
from typing import Any

import pytest

from histreport.exceptions import (
    AdapterNotFoundError,
    IngestionError,
    MalformedRecordError,
)
from histreport.ingestion import (
    AdapterRegistry,
    AllureResultsAdapter,
    DictRecordAdapter,
    Normalizer,
    create_adapter,
    ingest,
    ingest_concurrently,
)
from histreport.ingestion.base import parse_millis, parse_status
from histreport.models.result import TestStatus


def make_record(index: int, **overrides: Any) -> dict[str, Any]:
    """Create an Allure-style raw record."""
    record: dict[str, Any] = {
        "uuid": f"uuid-{index}",
        "name": f"test_{index}",
        "fullName": f"suite.test_{index}",
        "status": "passed",
        "start": 1_000,
        "stop": 1_000 + index,
    }
    record.update(overrides)
    return record


class TestParsers:
    """Tests for raw value parsers."""

    @pytest.mark.parametrize("value", ["passed", "PASSED", " Passed "])
    def test_parse_status_normalizes_case(self, value: str) -> None:
        assert parse_status(value) == TestStatus.PASSED

    @pytest.mark.parametrize("value", ["green", 1, None])
    def test_parse_status_rejects_unknown(self, value: Any) -> None:
        """Test that unrecognized statuses are malformed."""
        with pytest.raises(MalformedRecordError, match="Unrecognized status"):
            parse_status(value)

    def test_parse_millis(self) -> None:
        assert parse_millis(None, "start") is None
        assert parse_millis(12.7, "start") == 12
        with pytest.raises(MalformedRecordError, match="start"):
            parse_millis("12", "start")
        with pytest.raises(MalformedRecordError):
            parse_millis(True, "start")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_parse_millis_rejects_non_finite(self, value: float) -> None:
        with pytest.raises(MalformedRecordError, match="finite"):
            parse_millis(value, "duration")


class TestDictRecordAdapter:
    """Tests for normalizing mapping records."""

    def test_normalize_full_record(self) -> None:
        """Test that every Allure field lands on the result."""
        adapter = DictRecordAdapter(
            [
                {
                    "uuid": "abc",
                    "name": "Login",
                    "fullName": "auth.LoginTest.Login",
                    "status": "failed",
                    "start": 100,
                    "stop": 350,
                    "labels": [
                        {"name": "severity", "value": "critical"},
                        {"name": "feature", "value": "auth"},
                    ],
                    "parameters": [{"name": "browser", "value": "firefox"}],
                    "statusDetails": {"message": "expected 200"},
                    "environment": "ci",
                }
            ]
        )

        result = adapter.normalize(next(adapter.records()), 0)

        assert result.id == "abc"
        assert result.name == "Login"
        assert result.full_name == "auth.LoginTest.Login"
        assert result.status == TestStatus.FAILED
        assert result.duration == 250
        assert result.severity == "critical"
        assert result.labels["feature"] == "auth"
        assert result.parameters == {"browser": "firefox"}
        assert result.message == "expected 200"
        assert result.environment == "ci"
        assert result.source == "dict"

    def test_duration_derived_from_timing(self) -> None:
        """Test that stop - start wins over a stated duration."""
        adapter = DictRecordAdapter([])
        result = adapter.normalize(
            {"name": "t", "status": "passed", "start": 10, "stop": 40, "duration": 5}, 0
        )
        assert result.duration == 30

    def test_duration_without_timing(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize({"name": "t", "status": "passed", "duration": 75}, 0)

        assert result.duration == 75
        assert result.start is None

    def test_missing_duration_defaults_to_zero(self) -> None:
        adapter = DictRecordAdapter([])
        assert adapter.normalize({"name": "t", "status": "passed"}, 0).duration == 0

    def test_fallback_id_uses_source_and_index(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize({"name": "t", "status": "passed"}, 7)
        assert result.id == "dict#7"

    def test_name_from_full_name(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize({"fullName": "pkg.Suite.test_x", "status": "passed"}, 0)
        assert result.name == "test_x"

    def test_parameters_as_mapping(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize(
            {"name": "t", "status": "passed", "parameters": {"n": 1}, "labels": {"a": "b"}}, 0
        )

        assert result.parameters == {"n": "1"}
        assert result.labels == {"a": "b"}

    def test_source_history_id_is_kept(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize({"name": "t", "status": "passed", "historyId": "h-1"}, 0)
        assert result.history_id == "h-1"

    def test_retries_become_prior_attempts(self) -> None:
        adapter = DictRecordAdapter([])
        result = adapter.normalize(
            {
                "name": "t",
                "status": "passed",
                "retries": [{"status": "failed"}, "broken"],
            },
            0,
        )

        assert result.status == TestStatus.PASSED
        assert result.retries == (TestStatus.FAILED, TestStatus.BROKEN)

    @pytest.mark.parametrize(
        ("record", "reason"),
        [
            ({"status": "passed"}, "no name"),
            ({"name": "t"}, "no status"),
            ({"name": "t", "status": ""}, "no status"),
            ({"name": "t", "status": "weird"}, "Unrecognized status"),
            ({"name": "t", "status": "passed", "start": 50, "stop": 10}, "before it starts"),
            ({"name": "t", "status": "passed", "duration": -3}, "negative duration"),
            ({"name": "t", "status": "passed", "duration": float("nan")}, "finite"),
            ({"name": "t", "status": "passed", "duration": float("inf")}, "finite"),
            ({"name": "t", "status": "passed", "start": 0, "stop": float("inf")}, "finite"),
            ({"name": "t", "status": "passed", "labels": "oops"}, "labels"),
            ({"name": "t", "status": "passed", "retries": "failed"}, "retries"),
        ],
    )
    def test_malformed_records(self, record: dict[str, Any], reason: str) -> None:
        """Test that unusable records raise MalformedRecordError."""
        adapter = DictRecordAdapter([])

        with pytest.raises(MalformedRecordError, match=reason):
            adapter.normalize(record, 0)

    def test_non_mapping_record(self) -> None:
        adapter = DictRecordAdapter([])

        with pytest.raises(MalformedRecordError, match="mapping"):
            adapter.normalize(["not", "a", "dict"], 0)


class TestAllureResultsAdapter:
    """Tests for reading Allure result directories."""

    def test_reads_result_files_in_name_order(self, tmp_path: Path) -> None:
        (tmp_path / "b-result.json").write_text(json.dumps(make_record(2)))
        (tmp_path / "a-result.json").write_text(json.dumps(make_record(1)))
        (tmp_path / "x-container.json").write_text("{}")

        outcome = ingest([AllureResultsAdapter(tmp_path)])

        assert [r.name for r in outcome.results] == ["test_1", "test_2"]
        assert outcome.malformed == []

    def test_unreadable_file_is_skipped(self, tmp_path: Path) -> None:
        """Test that a broken file is a reject, not a fatal error."""
        (tmp_path / "a-result.json").write_text("{not json")
        (tmp_path / "b-result.json").write_text(json.dumps(make_record(1)))

        outcome = ingest([AllureResultsAdapter(tmp_path)])

        assert outcome.processed == 1
        assert len(outcome.malformed) == 1
        assert outcome.malformed[0].index == 0
        assert outcome.malformed[0].source == f"allure:{tmp_path}"

    def test_invalid_utf8_file_is_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "a-result.json").write_bytes(b"\xff\xfe garbage")
        (tmp_path / "b-result.json").write_text(json.dumps(make_record(1)))

        outcome = ingest([AllureResultsAdapter(tmp_path)])

        assert outcome.processed == 1
        assert "Unreadable result file" in outcome.malformed[0].reason

    def test_infinite_timestamp_is_skipped(self, tmp_path: Path) -> None:
        """Test that a JSON Infinity literal rejects only its own file."""
        (tmp_path / "a-result.json").write_text(
            '{"name": "t", "status": "passed", "start": 0, "stop": Infinity}'
        )
        (tmp_path / "b-result.json").write_text(json.dumps(make_record(1)))

        outcome = ingest([AllureResultsAdapter(tmp_path)])

        assert outcome.processed == 1
        assert len(outcome.malformed) == 1
        assert "finite" in outcome.malformed[0].reason

    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        with pytest.raises(IngestionError, match="not found"):
            ingest([AllureResultsAdapter(tmp_path / "missing")])


class TestAdapterRegistry:
    """Tests for AdapterRegistry and create_adapter."""

    def test_builtin_adapters_registered(self) -> None:
        assert {"allure", "dict", "junit"} <= set(AdapterRegistry.list_adapters())
        assert AdapterRegistry.is_registered("JUnit")

    def test_get_unknown_adapter(self) -> None:
        with pytest.raises(AdapterNotFoundError, match="Available"):
            AdapterRegistry.get("nunit")

    def test_create_adapter(self, tmp_path: Path) -> None:
        adapter = create_adapter("allure", tmp_path)

        assert isinstance(adapter, AllureResultsAdapter)
        assert adapter.name == "allure"


class TestNormalizer:
    """Tests for the Normalizer."""

    def test_missing_status_is_skipped(self) -> None:
        """Test that 100 records with 3 missing statuses give 97 results."""
        records = [make_record(i) for i in range(100)]
        for i in (5, 50, 99):
            del records[i]["status"]

        outcome = ingest([DictRecordAdapter(records)])

        assert outcome.processed == 97
        assert len(outcome.malformed) == 3
        assert [m.index for m in outcome.malformed] == [5, 50, 99]
        assert all("no status" in m.reason for m in outcome.malformed)

    def test_normalize_is_lazy(self) -> None:
        normalizer = Normalizer([DictRecordAdapter([make_record(0), {"name": "x"}])])
        results = normalizer.normalize()

        assert normalizer.processed == 0

        assert next(results).name == "test_0"
        assert normalizer.processed == 1
        assert list(results) == []
        assert len(normalizer.rejects) == 1

    def test_normalize_single_pass(self) -> None:
        normalizer = Normalizer([DictRecordAdapter([])])
        list(normalizer.normalize())

        with pytest.raises(IngestionError, match="consumed"):
            normalizer.normalize()

    def test_keeps_adapter_order(self) -> None:
        first = DictRecordAdapter([make_record(1), make_record(2)])
        second = DictRecordAdapter([make_record(3)])

        outcome = ingest([first, second])

        assert [r.name for r in outcome.results] == ["test_1", "test_2", "test_3"]

    def test_rejects_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        ingest([DictRecordAdapter([{"name": "t"}])])
        assert "Skipping malformed record 0" in caplog.text


class TestIngestConcurrently:
    """Tests for concurrent ingestion."""

    @pytest.mark.asyncio
    async def test_results_keep_adapter_order(self) -> None:
        adapters = [
            DictRecordAdapter([make_record(i * 10 + j) for j in range(3)]) for i in range(4)
        ]

        outcome = await ingest_concurrently(adapters)

        assert [r.name for r in outcome.results] == [
            f"test_{i * 10 + j}" for i in range(4) for j in range(3)
        ]

    @pytest.mark.asyncio
    async def test_collects_rejects_from_all_adapters(self) -> None:
        adapters = [
            DictRecordAdapter([make_record(0), {"status": "passed"}]),
            DictRecordAdapter([{"name": "x"}]),
        ]

        outcome = await ingest_concurrently(adapters)

        assert outcome.processed == 1
        assert len(outcome.malformed) == 2

    @pytest.mark.asyncio
    async def test_source_error_propagates(self, tmp_path: Path) -> None:
        with pytest.raises(IngestionError):
            await ingest_concurrently([AllureResultsAdapter(tmp_path / "missing")])

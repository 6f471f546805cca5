"""Ingestion of raw test result records."""

from histreport.ingestion.base import RawRecordView, RecordAdapter, build_result
from histreport.ingestion.factory import AdapterRegistry, create_adapter
from histreport.ingestion.junit import JunitXmlAdapter
from histreport.ingestion.mapping import AllureResultsAdapter, DictRecordAdapter
from histreport.ingestion.normalizer import (
    IngestionOutcome,
    Normalizer,
    ingest,
    ingest_concurrently,
)

__all__ = [
    "AdapterRegistry",
    "AllureResultsAdapter",
    "DictRecordAdapter",
    "IngestionOutcome",
    "JunitXmlAdapter",
    "Normalizer",
    "RawRecordView",
    "RecordAdapter",
    "build_result",
    "create_adapter",
    "ingest",
    "ingest_concurrently",
]

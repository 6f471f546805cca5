"""Custom exception hierarchy for histreport.

All exceptions inherit from HistReportError for easy catching at the top level.
Per-record problems are collected and reported; store and configuration errors
propagate immediately.
"""


class HistReportError(Exception):
    """Base exception for all histreport errors."""


class ConfigurationError(HistReportError):
    """Configuration-related errors."""


class IngestionError(HistReportError):
    """Raw record ingestion errors."""


class MalformedRecordError(IngestionError):
    """A raw record cannot be normalized into a test result."""


class AdapterNotFoundError(IngestionError):
    """Requested source adapter is not registered."""


class HistoryStoreUnavailableError(HistReportError):
    """The history store cannot be read or written."""


class EmptyResultSetError(HistReportError):
    """The run produced no test results while at least one was required."""

"""histreport - history-aware test report engine."""

__version__ = "0.1.0"

"""Bank statement ingestion and chunked transaction upload."""

__version__ = "0.1.0"

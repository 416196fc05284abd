"""Utility functions and helpers"""

from .validation import ValidationEngine
from .duplicate_detector import DuplicateDetector
from .csv_writer import CSVWriter
from .config_manager import ConfigManager
from .error_handler import (
    ChunkInsertError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandler,
    ErrorSeverity,
    IngestError,
    StatementParseError,
)
from .repository import (
    InMemoryTransactionRepository,
    JsonFileTransactionRepository,
    TransactionRepository,
)
from .uploader import BatchUploadOrchestrator, chunk_list, classify_upload_status

__all__ = [
    'ValidationEngine',
    'DuplicateDetector',
    'CSVWriter',
    'ConfigManager',
    'ChunkInsertError',
    'ConfigurationError',
    'ErrorCategory',
    'ErrorHandler',
    'ErrorSeverity',
    'IngestError',
    'StatementParseError',
    'InMemoryTransactionRepository',
    'JsonFileTransactionRepository',
    'TransactionRepository',
    'BatchUploadOrchestrator',
    'chunk_list',
    'classify_upload_status',
]

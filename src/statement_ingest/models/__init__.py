"""Data models and structures"""

from .core import (
    AccountType,
    BankLayout,
    ChunkError,
    ColumnMap,
    DuplicateCheckResult,
    IngestConfig,
    LayoutConfig,
    ParsedTransaction,
    ParsingStats,
    ProgressCallback,
    TransactionType,
    UploadBatch,
    UploadOptions,
    UploadOutcome,
    UploadResult,
    UploadStatus,
    ValidationResult,
)

__all__ = [
    'AccountType',
    'BankLayout',
    'ChunkError',
    'ColumnMap',
    'DuplicateCheckResult',
    'IngestConfig',
    'LayoutConfig',
    'ParsedTransaction',
    'ParsingStats',
    'ProgressCallback',
    'TransactionType',
    'UploadBatch',
    'UploadOptions',
    'UploadOutcome',
    'UploadResult',
    'UploadStatus',
    'ValidationResult',
]

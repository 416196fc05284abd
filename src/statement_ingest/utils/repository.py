"""Transaction store interface used by the upload orchestrator, with local implementations."""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..models.core import DuplicateCheckResult, ParsedTransaction, ValidationResult
from .duplicate_detector import DuplicateDetector
from .error_handler import ChunkInsertError, ConfigurationError
from .validation import ValidationEngine


logger = logging.getLogger(__name__)


class TransactionRepository(ABC):
    """The operations the upload pipeline needs from a transaction store"""

    @abstractmethod
    async def validate_transactions(self, transactions: List[ParsedTransaction]) -> ValidationResult:
        """Check a batch before upload"""
        pass

    @abstractmethod
    async def check_duplicates(self, transactions: List[ParsedTransaction], user_id: str) -> DuplicateCheckResult:
        """Report batch transactions that are already stored for the user"""
        pass

    @abstractmethod
    async def insert_chunk(self, records: List[Dict[str, Any]]) -> List[str]:
        """Insert one chunk of records and return the stored ids.

        Raises:
            ChunkInsertError: when the store rejects the chunk
        """
        pass


class InMemoryTransactionRepository(TransactionRepository):
    """Keeps records in a list; used for dry runs and tests.

    Args:
        fail_on_chunks: 1-based insert call numbers that should be rejected
        records: initial stored records
    """

    def __init__(self,
                 fail_on_chunks: Iterable[int] = (),
                 records: Optional[List[Dict[str, Any]]] = None,
                 validation_engine: Optional[ValidationEngine] = None,
                 duplicate_detector: Optional[DuplicateDetector] = None):
        self.records: List[Dict[str, Any]] = list(records or [])
        self.fail_on_chunks = set(fail_on_chunks)
        self.insert_calls = 0
        self.validation_engine = validation_engine or ValidationEngine()
        self.duplicate_detector = duplicate_detector or DuplicateDetector()

    async def validate_transactions(self, transactions: List[ParsedTransaction]) -> ValidationResult:
        return self.validation_engine.validate_batch(transactions)

    async def check_duplicates(self, transactions: List[ParsedTransaction], user_id: str) -> DuplicateCheckResult:
        return self.duplicate_detector.find_duplicates(transactions, self.records, user_id=user_id)

    async def insert_chunk(self, records: List[Dict[str, Any]]) -> List[str]:
        self.insert_calls += 1
        if self.insert_calls in self.fail_on_chunks:
            raise ChunkInsertError(
                f"Insert rejected for chunk {self.insert_calls}",
                details="Simulated failure",
                code="SIMULATED"
            )

        missing = [index for index, record in enumerate(records) if not record.get('source_account_type')]
        if missing:
            raise ChunkInsertError(
                "null value in column \"source_account_type\" violates not-null constraint",
                details=f"Records without source_account_type: {missing}",
                code="23502"
            )

        self.records.extend(records)
        return [record['id'] for record in records]


class JsonFileTransactionRepository(InMemoryTransactionRepository):
    """In-memory repository persisted to a JSON file after every insert"""

    def __init__(self, path: str, **kwargs):
        super().__init__(records=self._load(path), **kwargs)
        self.path = path

    @staticmethod
    def _load(path: str) -> List[Dict[str, Any]]:
        if not os.path.exists(path):
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read transaction store {path}: {e}") from e
        if not isinstance(data, list):
            raise ConfigurationError(f"Transaction store {path} does not contain a list")
        logger.info(f"Loaded {len(data)} stored transactions from {path}")
        return data

    async def insert_chunk(self, records: List[Dict[str, Any]]) -> List[str]:
        inserted_ids = await super().insert_chunk(records)
        try:
            self._save()
        except OSError as e:
            if records:
                del self.records[-len(records):]
            raise ChunkInsertError(f"Could not write transaction store: {e}", details=self.path) from e
        return inserted_ids

    def _save(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.records, f, indent=2, default=str)

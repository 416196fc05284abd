"""Tests for the chunked upload workflow."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from statement_ingest.models.core import (
    AccountType,
    ChunkError,
    IngestConfig,
    ParsedTransaction,
    TransactionType,
    UploadBatch,
    UploadOptions,
    UploadStatus,
)
from statement_ingest.utils.error_handler import ErrorHandler
from statement_ingest.utils.repository import InMemoryTransactionRepository
from statement_ingest.utils.uploader import (
    STAGE_COMPLETE,
    STAGE_DUPLICATES,
    STAGE_UPLOADING,
    STAGE_VALIDATING,
    BatchUploadOrchestrator,
    chunk_list,
    classify_upload_status,
)
from statement_ingest.utils.validation import ValidationEngine


def make_transactions(count, user_id="user-1", name_prefix="Txn"):
    start = datetime(2024, 1, 1)
    return [
        ParsedTransaction(
            user_id=user_id,
            account_id="acc-1",
            name=f"{name_prefix} {i}",
            description=f"{name_prefix} description {i}",
            amount=Decimal('10.00') + i,
            date=start + timedelta(days=i),
            type=TransactionType.EXPENSE,
            source_account_type=AccountType.BANK,
            source_account_id="acc-1",
            destination_account_type=AccountType.OTHER,
        )
        for i in range(count)
    ]


def make_batch(count, **kwargs):
    return UploadBatch(transactions=make_transactions(count, **kwargs), account_id="acc-1", user_id="user-1")


class UnavailableChecksRepository(InMemoryTransactionRepository):
    """Repository whose advisory checks are down"""

    async def validate_transactions(self, transactions):
        raise ConnectionError("validator offline")

    async def check_duplicates(self, transactions, user_id):
        raise TimeoutError("duplicate service timed out")


class BrokenInsertRepository(InMemoryTransactionRepository):
    """Repository that fails inserts with a non-repository exception"""

    async def insert_chunk(self, records):
        raise RuntimeError("connection reset")


class TestChunking:
    """Test cases for chunk splitting and status classification"""

    @pytest.mark.parametrize("count, expected_chunks", [(0, 0), (1, 1), (50, 1), (51, 2), (120, 3)])
    def test_chunk_count(self, count, expected_chunks):
        chunks = chunk_list(list(range(count)), 50)
        assert len(chunks) == expected_chunks
        assert sum(len(chunk) for chunk in chunks) == count

    def test_chunk_order_preserved(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            chunk_list([1, 2], 0)

    def test_status_classification(self):
        assert classify_upload_status(10, 0) == UploadStatus.SUCCESS
        assert classify_upload_status(5, 5) == UploadStatus.PARTIAL_SUCCESS
        assert classify_upload_status(0, 10) == UploadStatus.FAILED
        assert classify_upload_status(0, 0) == UploadStatus.SUCCESS

    def test_chunk_error_dict(self):
        error = ChunkError(chunk=2, message="rejected", record_count=50, details="d", hint="h", code="23502")
        assert error.to_dict() == {
            'chunk': 2,
            'error': "rejected",
            'details': "d",
            'hint': "h",
            'code': "23502",
            'transactions': 50,
        }


class TestUploadTransactions:
    """Test cases for chunked inserts"""

    def setup_method(self):
        self.repository = InMemoryTransactionRepository()
        self.events = []
        self.orchestrator = BatchUploadOrchestrator(
            self.repository,
            IngestConfig(),
            emit_upload_completed=lambda tag, count: self.events.append((tag, count))
        )

    def test_inserts_in_chunks_of_fifty(self):
        result = asyncio.run(self.orchestrator.upload_transactions(make_transactions(120)))

        assert self.repository.insert_calls == 3
        assert result.status == UploadStatus.SUCCESS
        assert result.inserted_count == 120
        assert result.error_count == 0
        assert result.total_processed == 120
        assert len(self.repository.records) == 120

    def test_each_record_gets_unique_id(self):
        result = asyncio.run(self.orchestrator.upload_transactions(make_transactions(60)))

        ids = [record['id'] for record in self.repository.records]
        assert len(set(ids)) == 60
        assert list(result.inserted_ids) == ids

    def test_records_carry_store_fields(self):
        asyncio.run(self.orchestrator.upload_transactions(make_transactions(1)))
        record = self.repository.records[0]

        assert record['user_id'] == "user-1"
        assert record['amount'] == 10.0
        assert record['type'] == "expense"
        assert record['source_account_type'] == "bank"
        assert record['destination_account_type'] == "other"
        assert record['is_recurring'] is False
        assert record['created_at'] == record['updated_at']

    def test_empty_batch(self):
        result = asyncio.run(self.orchestrator.upload_transactions([]))

        assert result.status == UploadStatus.SUCCESS
        assert result.inserted_count == 0
        assert result.error_count == 0
        assert self.repository.insert_calls == 0
        assert self.events == []

    def test_partial_failure_continues_with_later_chunks(self):
        self.repository.fail_on_chunks = {2}
        result = asyncio.run(self.orchestrator.upload_transactions(make_transactions(120)))

        assert self.repository.insert_calls == 3
        assert result.status == UploadStatus.PARTIAL_SUCCESS
        assert result.inserted_count == 70
        assert result.error_count == 50
        assert result.inserted_count + result.error_count == result.total_processed
        assert len(result.errors) == 1
        assert result.errors[0].chunk == 2
        assert result.errors[0].record_count == 50
        assert result.errors[0].code == "SIMULATED"
        assert result.errors[0].details == "Simulated failure"

    def test_all_chunks_fail(self):
        self.repository.fail_on_chunks = {1, 2}
        result = asyncio.run(self.orchestrator.upload_transactions(make_transactions(60)))

        assert result.status == UploadStatus.FAILED
        assert result.inserted_count == 0
        assert result.error_count == 60
        assert [error.chunk for error in result.errors] == [1, 2]
        assert self.events == []

    def test_unexpected_insert_exception_recorded(self):
        orchestrator = BatchUploadOrchestrator(BrokenInsertRepository())
        result = asyncio.run(orchestrator.upload_transactions(make_transactions(3)))

        assert result.status == UploadStatus.FAILED
        assert result.errors[0].message == "connection reset"
        assert result.errors[0].details == "RuntimeError"
        assert orchestrator.error_handler.has_errors()

    def test_completion_event_emitted_once(self):
        self.repository.fail_on_chunks = {1}
        asyncio.run(self.orchestrator.upload_transactions(make_transactions(120)))

        assert self.events == [("bulk-transactions-added", 70)]

    def test_event_failure_does_not_change_result(self):
        def broken_emitter(tag, count):
            raise RuntimeError("event bus down")

        handler = ErrorHandler()
        orchestrator = BatchUploadOrchestrator(
            self.repository,
            emit_upload_completed=broken_emitter,
            error_handler=handler
        )
        result = asyncio.run(orchestrator.upload_transactions(make_transactions(5)))

        assert result.status == UploadStatus.SUCCESS
        assert result.inserted_count == 5
        assert handler.warnings[0].code == ErrorHandler.CODES["EVENT_EMIT_FAILED"]

    def test_custom_chunk_size(self):
        orchestrator = BatchUploadOrchestrator(self.repository, IngestConfig(chunk_size=10))
        asyncio.run(orchestrator.upload_transactions(make_transactions(25)))

        assert self.repository.insert_calls == 3

    def test_chunk_progress(self):
        percents = []
        asyncio.run(self.orchestrator.upload_transactions(make_transactions(120), on_progress=percents.append))

        assert percents == [0, 33, 66, 100]


class TestUploadWithValidation:
    """Test cases for the full validate/check/upload workflow"""

    def setup_method(self):
        self.repository = InMemoryTransactionRepository()
        self.orchestrator = BatchUploadOrchestrator(self.repository)
        self.progress = []

    def run_upload(self, batch, **option_kwargs):
        options = UploadOptions(
            on_progress=lambda stage, percent: self.progress.append((stage, percent)),
            **option_kwargs
        )
        return asyncio.run(self.orchestrator.upload_with_validation(batch, "user-1", options))

    def test_successful_upload(self):
        outcome = self.run_upload(make_batch(3))

        assert outcome.success is True
        assert outcome.result.status == UploadStatus.SUCCESS
        assert outcome.result.inserted_count == 3
        assert outcome.validation.is_valid
        assert outcome.duplicates.duplicate_count == 0
        assert outcome.error is None

    def test_progress_sequence_single_chunk(self):
        self.run_upload(make_batch(3))

        assert self.progress == [
            (STAGE_VALIDATING, 0),
            (STAGE_DUPLICATES, 25),
            (STAGE_UPLOADING, 50),
            (STAGE_UPLOADING, 50),
            (STAGE_UPLOADING, 100),
            (STAGE_COMPLETE, 100),
        ]

    def test_progress_is_monotonic_over_chunks(self):
        self.run_upload(make_batch(120))
        percents = [percent for _, percent in self.progress]

        assert percents == [0, 25, 50, 50, 66, 83, 100, 100]
        assert percents == sorted(percents)
        assert self.progress[-1] == (STAGE_COMPLETE, 100)

    def test_empty_batch_succeeds(self):
        outcome = self.run_upload(make_batch(0))

        assert outcome.success is True
        assert outcome.result.status == UploadStatus.SUCCESS
        assert outcome.result.inserted_count == 0
        assert self.repository.insert_calls == 0

    def test_partial_failure_is_success(self):
        self.repository.fail_on_chunks = {1}
        outcome = self.run_upload(make_batch(60))

        assert outcome.success is True
        assert outcome.result.status == UploadStatus.PARTIAL_SUCCESS

    def test_total_failure_is_not_success(self):
        self.repository.fail_on_chunks = {1}
        outcome = self.run_upload(make_batch(10))

        assert outcome.success is False
        assert outcome.result.status == UploadStatus.FAILED

    def test_failed_validation_does_not_block_upload(self):
        """Advisory check: invalid batches are still uploaded"""
        repository = InMemoryTransactionRepository(validation_engine=ValidationEngine(name_max_length=3))
        self.orchestrator = BatchUploadOrchestrator(repository)
        outcome = self.run_upload(make_batch(4))

        assert outcome.validation.is_valid is False
        assert len(outcome.validation.validation_errors) == 4
        assert outcome.success is True
        assert outcome.result.inserted_count == 4
        assert self.orchestrator.error_handler.has_warnings()

    def test_unavailable_checks_do_not_block_upload(self):
        """Advisory checks: validator and duplicate service outages are tolerated"""
        repository = UnavailableChecksRepository()
        self.orchestrator = BatchUploadOrchestrator(repository)
        outcome = self.run_upload(make_batch(4))

        assert outcome.success is True
        assert outcome.result.inserted_count == 4
        assert outcome.validation.is_valid is False
        assert outcome.validation.validation_errors == [{'error': "validator offline"}]
        assert outcome.duplicates.duplicate_count == 0
        assert len(repository.records) == 4

    def test_duplicates_reported_but_uploaded(self):
        """Advisory check: known duplicates are still inserted"""
        self.run_upload(make_batch(5))
        outcome = self.run_upload(make_batch(5))

        assert outcome.duplicates.duplicate_count == 5
        assert outcome.duplicates.duplicates[0]['reason'] == 'existing'
        assert outcome.result.inserted_count == 5
        assert len(self.repository.records) == 10

    def test_skip_checks(self):
        outcome = self.run_upload(make_batch(2), skip_validation=True, skip_duplicate_check=True)

        assert outcome.validation is None
        assert outcome.duplicates is None
        assert outcome.result.inserted_count == 2
        assert [percent for _, percent in self.progress] == [0, 25, 50, 50, 100, 100]

    def test_workflow_exception_reported(self):
        def broken_progress(stage, percent):
            raise ValueError("progress sink closed")

        options = UploadOptions(on_progress=broken_progress)
        outcome = asyncio.run(self.orchestrator.upload_with_validation(make_batch(2), "user-1", options))

        assert outcome.success is False
        assert outcome.error == "progress sink closed"
        assert outcome.result is None
        assert self.repository.insert_calls == 0

    def test_default_options(self):
        outcome = asyncio.run(self.orchestrator.upload_with_validation(make_batch(2), "user-1"))
        assert outcome.success is True

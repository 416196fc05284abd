"""Batch upload orchestration: validate, check duplicates, insert in chunks."""

import logging
import math
import uuid
from datetime import datetime
from typing import Callable, List, Optional, Sequence, TypeVar

from ..models.core import (
    ChunkError,
    DuplicateCheckResult,
    IngestConfig,
    ParsedTransaction,
    UploadBatch,
    UploadOptions,
    UploadOutcome,
    UploadResult,
    UploadStatus,
    ValidationResult,
)
from .error_handler import ChunkInsertError, ErrorCategory, ErrorHandler
from .repository import TransactionRepository


logger = logging.getLogger(__name__)

T = TypeVar('T')

UploadEventEmitter = Callable[[str, int], None]

STAGE_VALIDATING = "Validating data..."
STAGE_DUPLICATES = "Checking duplicates..."
STAGE_UPLOADING = "Uploading transactions..."
STAGE_COMPLETE = "Complete"


def chunk_list(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive chunks of at most ``size`` elements"""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def classify_upload_status(inserted_count: int, error_count: int) -> UploadStatus:
    """Overall status from the inserted and failed record counts"""
    if error_count == 0:
        return UploadStatus.SUCCESS
    if inserted_count > 0:
        return UploadStatus.PARTIAL_SUCCESS
    return UploadStatus.FAILED


class BatchUploadOrchestrator:
    """Runs the upload workflow for one batch of parsed transactions.

    Validation and duplicate checks are advisory: their failures are logged
    and reported but never stop the upload. Chunks are inserted one after
    another and a failed chunk does not stop the remaining ones.
    """

    def __init__(self,
                 repository: TransactionRepository,
                 config: Optional[IngestConfig] = None,
                 emit_upload_completed: Optional[UploadEventEmitter] = None,
                 error_handler: Optional[ErrorHandler] = None):
        self.repository = repository
        self.config = config or IngestConfig()
        self.emit_upload_completed = emit_upload_completed
        self.error_handler = error_handler or ErrorHandler(logger=logger)

    async def upload_with_validation(self,
                                     batch: UploadBatch,
                                     user_id: str,
                                     options: Optional[UploadOptions] = None) -> UploadOutcome:
        """Validate, check duplicates and upload ``batch``"""
        options = options or UploadOptions()
        on_progress = options.on_progress

        def report(stage: str, percent: int):
            if on_progress:
                on_progress(stage, percent)

        try:
            transactions = batch.transactions

            report(STAGE_VALIDATING, 0)
            validation = None
            if not options.skip_validation:
                validation = await self.validate(transactions)

            report(STAGE_DUPLICATES, 25)
            duplicates = None
            if not options.skip_duplicate_check:
                duplicates = await self.check_duplicates(transactions, user_id)

            report(STAGE_UPLOADING, 50)
            result = await self.upload_transactions(
                transactions,
                on_progress=lambda percent: report(STAGE_UPLOADING, 50 + percent // 2)
            )

            report(STAGE_COMPLETE, 100)

            return UploadOutcome(
                success=result.status in (UploadStatus.SUCCESS, UploadStatus.PARTIAL_SUCCESS),
                result=result,
                validation=validation,
                duplicates=duplicates
            )

        except Exception as e:
            self.error_handler.log_error(
                f"Upload workflow error: {str(e)}",
                "UNEXPECTED_ERROR",
                exception=e
            )
            return UploadOutcome(success=False, error=str(e))

    async def validate(self, transactions: List[ParsedTransaction]) -> ValidationResult:
        """Advisory validation; an unavailable validator yields an invalid result"""
        try:
            validation = await self.repository.validate_transactions(transactions)
        except Exception as e:
            self.error_handler.log_warning(
                f"Validation error, continuing with upload: {str(e)}",
                "VALIDATION_UNAVAILABLE",
                category=ErrorCategory.REMOTE
            )
            return ValidationResult(
                is_valid=False,
                total_count=0,
                validation_errors=[{'error': str(e)}]
            )

        if not validation.is_valid:
            self.error_handler.log_warning(
                f"Validation failed for {len(validation.validation_errors)} issues, continuing with upload",
                "VALIDATION_FAILED",
                category=ErrorCategory.VALIDATION,
                context={'validation_errors': validation.validation_errors[:10]}
            )
        return validation

    async def check_duplicates(self, transactions: List[ParsedTransaction], user_id: str) -> DuplicateCheckResult:
        """Advisory duplicate check; an unavailable checker reports no duplicates"""
        try:
            duplicates = await self.repository.check_duplicates(transactions, user_id)
        except Exception as e:
            self.error_handler.log_warning(
                f"Duplicate check error, continuing with upload: {str(e)}",
                "DUPLICATE_CHECK_UNAVAILABLE",
                category=ErrorCategory.REMOTE
            )
            return DuplicateCheckResult(duplicate_count=0, duplicates=[])

        if duplicates.duplicate_count > 0:
            logger.info(f"Found {duplicates.duplicate_count} potential duplicates, continuing with upload")
        return duplicates

    async def upload_transactions(self,
                                  transactions: List[ParsedTransaction],
                                  on_progress: Optional[Callable[[int], None]] = None) -> UploadResult:
        """Insert ``transactions`` chunk by chunk and aggregate the outcome"""
        chunk_size = self.config.chunk_size
        chunks = chunk_list(transactions, chunk_size)

        total_inserted = 0
        total_errors = 0
        errors: List[ChunkError] = []
        inserted_ids: List[str] = []

        logger.info(f"Starting upload of {len(transactions)} transactions in {len(chunks)} chunks")

        for index, chunk in enumerate(chunks):
            chunk_number = index + 1
            if on_progress:
                on_progress(math.floor(index / len(chunks) * 100))

            logger.debug(f"Processing chunk {chunk_number}/{len(chunks)} ({len(chunk)} transactions)")

            try:
                timestamp = datetime.now()
                records = [transaction.to_record(str(uuid.uuid4()), timestamp) for transaction in chunk]
                chunk_ids = await self.repository.insert_chunk(records)
            except Exception as e:
                total_errors += len(chunk)
                if isinstance(e, ChunkInsertError):
                    errors.append(ChunkError(
                        chunk=chunk_number,
                        message=e.message,
                        record_count=len(chunk),
                        details=e.details,
                        hint=e.hint,
                        code=e.code
                    ))
                else:
                    errors.append(ChunkError(
                        chunk=chunk_number,
                        message=str(e),
                        record_count=len(chunk),
                        details=type(e).__name__
                    ))
                self._log_chunk_failure(chunk_number, e)
                continue

            inserted_ids.extend(chunk_ids)
            total_inserted += len(chunk_ids)
            logger.info(f"Chunk {chunk_number} completed: {len(chunk_ids)} inserted")

        if on_progress:
            on_progress(100)

        status = classify_upload_status(total_inserted, total_errors)
        logger.info(
            f"Upload finished with {status.value}: {total_inserted} inserted, "
            f"{total_errors} failed, {len(transactions)} processed"
        )

        if total_inserted > 0:
            self._notify_upload_completed(total_inserted)

        return UploadResult(
            status=status,
            inserted_count=total_inserted,
            error_count=total_errors,
            errors=tuple(errors),
            total_processed=len(transactions),
            inserted_ids=tuple(inserted_ids)
        )

    def _log_chunk_failure(self, chunk_number: int, error: Exception):
        self.error_handler.log_error(
            f"Chunk {chunk_number} failed: {str(error)}",
            "CHUNK_INSERT_FAILED",
            category=ErrorCategory.REMOTE,
            context={'chunk': chunk_number}
        )

    def _notify_upload_completed(self, count: int):
        if not self.emit_upload_completed:
            return
        try:
            self.emit_upload_completed(self.config.upload_event_tag, count)
        except Exception as e:
            self.error_handler.log_warning(
                f"Could not emit upload completion event: {str(e)}",
                "EVENT_EMIT_FAILED",
                category=ErrorCategory.REMOTE
            )

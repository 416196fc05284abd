"""Exception types and problem collection for the ingestion pipeline.

Parsers and the upload orchestrator never abort on a single bad row or a
flaky advisory check. They record the problem in an ``ErrorHandler`` and
carry on; the handler keeps the records for reporting and mirrors them to
the module logger (and optionally to a JSON-lines file).
"""

import json
import logging
import traceback
from collections import Counter
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any, Sequence


class IngestError(Exception):
    """Base class for all pipeline errors"""


class StatementParseError(IngestError):
    """Raised when a non-empty statement yields no usable transactions"""

    def __init__(self, message: str, supported_layouts: Sequence[str] = ()):
        self.reason = message
        self.supported_layouts = list(supported_layouts)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            f"Statement parsing failed: {self.reason}",
            "",
            "Unable to parse your bank statement.",
            "Please ensure:",
            "  - The file is a bank statement export",
            "  - The statement contains transaction rows with dates and amounts",
        ]
        if self.supported_layouts:
            lines.append("")
            lines.append(f"Supported formats: {', '.join(self.supported_layouts)}.")
        return "\n".join(lines)


class ChunkInsertError(IngestError):
    """Raised by a repository when one chunk insert is rejected"""

    def __init__(self, message: str, details: Optional[str] = None,
                 hint: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.hint = hint
        self.code = code


class ConfigurationError(IngestError):
    """Raised for unusable configuration values"""


class ErrorSeverity(Enum):
    WARNING = "warning"
    ERROR = "error"


class ErrorCategory(Enum):
    """Pipeline stage a recorded problem belongs to"""
    STATEMENT = "statement"
    ROW = "row"
    VALIDATION = "validation"
    REMOTE = "remote"
    INTERNAL = "internal"


@dataclass
class ErrorDetail:
    """One recorded problem"""
    severity: ErrorSeverity
    category: ErrorCategory
    code: str
    message: str
    line_number: Optional[int] = None
    raw_value: Optional[str] = None
    stack_trace: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['severity'] = self.severity.value
        data['category'] = self.category.value
        return data


class JSONLinesFormatter(logging.Formatter):
    """One JSON object per record, including the pipeline fields passed via ``extra``"""

    EXTRA_FIELDS = ('error_code', 'category', 'context')

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        return json.dumps(entry, default=str)


class ErrorHandler:
    """Collects row-level and stage-level problems for later reporting"""

    CODES = {
        # Whole statement
        "EMPTY_STATEMENT": "ST01",
        "NO_TRANSACTIONS": "ST02",

        # Single rows
        "DATE_PARSE_ERROR": "RW01",
        "MALFORMED_ROW": "RW02",

        # Advisory checks
        "VALIDATION_FAILED": "VL01",
        "VALIDATION_UNAVAILABLE": "RM01",
        "DUPLICATE_CHECK_UNAVAILABLE": "RM02",

        # Upload
        "CHUNK_INSERT_FAILED": "RM03",
        "EVENT_EMIT_FAILED": "RM04",

        "UNEXPECTED_ERROR": "IN99",
    }

    def __init__(self, logger: Optional[logging.Logger] = None,
                 log_directory: Optional[str] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.errors: List[ErrorDetail] = []
        self.warnings: List[ErrorDetail] = []

        if log_directory:
            self._attach_file_handler(Path(log_directory))

    def _attach_file_handler(self, log_directory: Path):
        log_directory.mkdir(parents=True, exist_ok=True)
        log_file = (log_directory / f"ingest_{datetime.now():%Y%m%d}.jsonl").resolve()

        already_attached = any(
            isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file
            for handler in self.logger.handlers
        )
        if already_attached:
            return

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONLinesFormatter())
        self.logger.addHandler(file_handler)

    def log_error(self,
                  message: str,
                  error_type: str,
                  category: ErrorCategory = ErrorCategory.INTERNAL,
                  line_number: Optional[int] = None,
                  raw_value: Optional[str] = None,
                  exception: Optional[BaseException] = None,
                  context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        """Record an error; ``exception`` adds its formatted traceback"""
        stack_trace = None
        if exception is not None:
            stack_trace = ''.join(traceback.format_exception(
                type(exception), exception, exception.__traceback__
            ))

        detail = self._record(ErrorSeverity.ERROR, message, error_type, category,
                              line_number, raw_value, context, stack_trace)
        self.errors.append(detail)
        return detail

    def log_warning(self,
                    message: str,
                    warning_type: str,
                    category: ErrorCategory = ErrorCategory.INTERNAL,
                    line_number: Optional[int] = None,
                    raw_value: Optional[str] = None,
                    context: Optional[Dict[str, Any]] = None) -> ErrorDetail:
        detail = self._record(ErrorSeverity.WARNING, message, warning_type, category,
                              line_number, raw_value, context)
        self.warnings.append(detail)
        return detail

    def _record(self, severity, message, problem_type, category,
                line_number, raw_value, context, stack_trace=None) -> ErrorDetail:
        detail = ErrorDetail(
            severity=severity,
            category=category,
            code=self.CODES.get(problem_type, self.CODES["UNEXPECTED_ERROR"]),
            message=message,
            line_number=line_number,
            raw_value=raw_value,
            stack_trace=stack_trace,
            context=dict(context or {})
        )

        level = logging.ERROR if severity is ErrorSeverity.ERROR else logging.WARNING
        self.logger.log(level, message, extra={
            'error_code': detail.code,
            'category': category.value,
            'context': detail.context
        })
        return detail

    def get_error_summary(self) -> Dict[str, Any]:
        """Error and warning counts, plus counts per category"""
        by_category = Counter(detail.category.value for detail in self.errors + self.warnings)
        return {
            'errors': len(self.errors),
            'warnings': len(self.warnings),
            'by_category': dict(by_category),
        }

    def clear(self):
        self.errors.clear()
        self.warnings.clear()

    def has_errors(self) -> bool:
        return bool(self.errors)

    def has_warnings(self) -> bool:
        return bool(self.warnings)

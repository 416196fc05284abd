"""Core data models for the statement ingestion pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Dict, Any, Optional, Callable, Tuple


class BankLayout(Enum):
    """Known bank statement layouts"""
    ICICI = "ICICI"
    HDFC = "HDFC"
    SBI = "SBI"
    AXIS = "AXIS"
    GENERIC = "GENERIC"


class TransactionType(Enum):
    """Direction of a transaction relative to the statement account"""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    LOAN = "loan"
    LOAN_REPAYMENT = "loan_repayment"
    DEBT = "debt"
    DEBT_COLLECTION = "debt_collection"


class AccountType(Enum):
    """Account classifications accepted by the transaction store"""
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    CASH = "cash"
    DIGITAL_WALLET = "digital_wallet"
    INVESTMENT = "investment"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any, default: "AccountType") -> "AccountType":
        """Map a raw value onto the allow-list, falling back to ``default``"""
        if isinstance(value, cls):
            return value
        if value is None:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class UploadStatus(Enum):
    """Overall outcome of a chunked upload"""
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class LayoutConfig:
    """Column structure of one bank's statement export.

    Attributes:
        bank_name: Display name of the bank (e.g., "HDFC Bank")
        date_columns: Header substrings that identify the date column
        description_columns: Header substrings for the narration column
        amount_columns: Header substrings for a single signed amount column
        withdrawal_columns: Header substrings for the debit column
        deposit_columns: Header substrings for the credit column
        balance_columns: Header substrings for the running balance
        date_format: Date format hint as printed by the bank
        skip_rows: Number of leading lines occupied by the header
    """
    bank_name: str
    date_columns: Tuple[str, ...]
    description_columns: Tuple[str, ...]
    amount_columns: Tuple[str, ...] = ()
    withdrawal_columns: Tuple[str, ...] = ()
    deposit_columns: Tuple[str, ...] = ()
    balance_columns: Tuple[str, ...] = ()
    date_format: str = "DD/MM/YYYY"
    skip_rows: int = 1

    def candidates(self, field_name: str) -> Tuple[str, ...]:
        """Return the candidate header names for a logical field"""
        return getattr(self, f"{field_name}_columns")


@dataclass(frozen=True)
class ColumnMap:
    """Resolved column indices for one parsed file (None means absent)"""
    date: Optional[int] = None
    description: Optional[int] = None
    amount: Optional[int] = None
    withdrawal: Optional[int] = None
    deposit: Optional[int] = None
    balance: Optional[int] = None

    FIELDS = ('date', 'description', 'amount', 'withdrawal', 'deposit', 'balance')

    def index_of(self, field_name: str) -> Optional[int]:
        return getattr(self, field_name)

    def detected_fields(self) -> List[str]:
        return [name for name in self.FIELDS if self.index_of(name) is not None]

    def missing_fields(self) -> List[str]:
        return [name for name in self.FIELDS if self.index_of(name) is None]


@dataclass
class ParsedTransaction:
    """Normalized transaction produced from one statement row"""
    user_id: str
    account_id: str
    name: str
    description: str
    amount: Decimal
    date: datetime
    type: TransactionType
    source_account_type: AccountType = AccountType.OTHER
    source_account_id: Optional[str] = None
    source_account_name: Optional[str] = None
    destination_account_type: Optional[AccountType] = None
    destination_account_id: Optional[str] = None
    destination_account_name: Optional[str] = None
    merchant: Optional[str] = None
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_record(self, record_id: str, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """Convert to the flat payload accepted by the transaction store"""
        stamp = (timestamp or datetime.now()).isoformat()
        return {
            'id': record_id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description or "",
            'amount': float(self.amount),
            'date': self.date.isoformat(),
            'type': self.type.value,
            'source_account_type': self.source_account_type.value,
            'source_account_id': self.source_account_id,
            'source_account_name': self.source_account_name,
            'destination_account_type': (
                self.destination_account_type.value if self.destination_account_type else None
            ),
            'destination_account_id': self.destination_account_id,
            'destination_account_name': self.destination_account_name,
            'merchant': self.merchant,
            'category_id': self.category_id,
            'subcategory_id': self.subcategory_id,
            'is_recurring': False,
            'metadata': dict(self.metadata),
            'created_at': stamp,
            'updated_at': stamp,
        }


@dataclass
class UploadBatch:
    """All transactions parsed from one source file or text blob"""
    transactions: List[ParsedTransaction]
    account_id: str
    user_id: str
    source: str = ""

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass
class ParsingStats:
    """Row-level statistics for a delimited statement"""
    bank_name: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    detected_columns: List[str]
    missing_columns: List[str]


@dataclass
class ValidationResult:
    """Outcome of the advisory validation step"""
    is_valid: bool
    total_count: int
    validation_errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DuplicateCheckResult:
    """Outcome of the advisory duplicate check"""
    duplicate_count: int = 0
    duplicates: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ChunkError:
    """Failure of a single chunk insert"""
    chunk: int
    message: str
    record_count: int
    details: Optional[str] = None
    hint: Optional[str] = None
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chunk': self.chunk,
            'error': self.message,
            'details': self.details,
            'hint': self.hint,
            'code': self.code,
            'transactions': self.record_count,
        }


@dataclass(frozen=True)
class UploadResult:
    """Aggregated result of a chunked upload"""
    status: UploadStatus
    inserted_count: int
    error_count: int
    errors: Tuple[ChunkError, ...] = ()
    total_processed: int = 0
    inserted_ids: Tuple[str, ...] = ()


ProgressCallback = Callable[[str, int], None]


@dataclass
class UploadOptions:
    """Caller options for the upload workflow"""
    skip_validation: bool = False
    skip_duplicate_check: bool = False
    on_progress: Optional[ProgressCallback] = None


@dataclass
class UploadOutcome:
    """Result of the complete validate/check/upload workflow"""
    success: bool
    result: Optional[UploadResult] = None
    validation: Optional[ValidationResult] = None
    duplicates: Optional[DuplicateCheckResult] = None
    error: Optional[str] = None


@dataclass
class IngestConfig:
    """Configuration for parsing and upload behavior"""
    chunk_size: int = 50
    name_max_length: int = 50
    default_account_type: str = "bank"
    upload_event_tag: str = "bulk-transactions-added"
    skip_validation: bool = False
    skip_duplicate_check: bool = False
    store_path: str = "transactions.json"
    log_directory: Optional[str] = None

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.name_max_length < 1:
            raise ValueError("name_max_length must be at least 1")

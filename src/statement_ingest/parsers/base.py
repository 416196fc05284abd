"""Abstract base class and shared normalization helpers for statement parsers."""

import io
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Dict, Any, Optional

import pandas as pd

from ..models.core import (
    AccountType,
    IngestConfig,
    ParsedTransaction,
    TransactionType,
)
from ..utils.error_handler import ErrorHandler


logger = logging.getLogger(__name__)

ZERO = Decimal('0')

EXTERNAL_ACCOUNT_NAME = "External"


class DataTransformer:
    """Splits statement lines and normalizes raw field values"""

    CURRENCY_NOISE = re.compile(r'[₹$€£,\s]')
    CURRENCY_PREFIX = re.compile(r'^(INR|RS\.?)', re.IGNORECASE)
    NUMBER = re.compile(r'\d+(\.\d*)?|\.\d+')

    # (pattern, group order as year/month/day positions), tried in order
    DATE_PATTERNS = [
        (re.compile(r'(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)'), (3, 2, 1)),  # DD/MM/YYYY
        (re.compile(r'(?<!\d)(\d{1,2})/(\d{1,2})/(\d{2})(?!\d)'), (3, 2, 1)),  # DD/MM/YY
        (re.compile(r'(?<!\d)(\d{1,2})-(\d{1,2})-(\d{4})(?!\d)'), (3, 2, 1)),  # DD-MM-YYYY
        (re.compile(r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)'), (1, 2, 3)),  # YYYY-MM-DD
    ]

    # Month-name dates as printed by some banks (e.g., "05 Mar 2024")
    TEXT_DATE_FORMATS = ["%d %b %Y", "%d %B %Y", "%d-%b-%Y", "%d-%b-%y"]

    def read_rows(self, content: str, delimiter: str = ',') -> List[List[str]]:
        """Tokenize delimited text into rows of stripped string fields.

        Column positions come from the first row, so every row is padded or
        cut to its width.

        Raises:
            pd.errors.ParserError: if the text cannot be tokenized
        """
        if not content or not content.strip():
            return []

        options = dict(
            sep=delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
            engine='python',
        )
        width = pd.read_csv(io.StringIO(content), nrows=1, **options).shape[1]
        df = pd.read_csv(
            io.StringIO(content),
            names=list(range(width)),
            index_col=False,
            on_bad_lines=lambda fields: fields[:width],
            **options
        )
        return [[str(value).strip() for value in row] for row in df.fillna('').values.tolist()]

    def split_fields(self, line: str, delimiter: str = ',') -> List[str]:
        """Fields of a single delimited line"""
        rows = self.read_rows(line.rstrip('\r\n'), delimiter)
        return rows[0] if rows else []

    def read_amount(self, amount_str: Optional[str]) -> Optional[Decimal]:
        """Convert a raw amount to a signed Decimal, None when no number leads the text.

        Trailing text after the number ("15,000.00 Dr", "500 INR") is ignored.
        """
        if amount_str is None:
            return None

        cleaned = self.CURRENCY_NOISE.sub('', str(amount_str))
        cleaned = self.CURRENCY_PREFIX.sub('', cleaned)

        is_negative = False
        if cleaned.startswith('(') and ')' in cleaned:
            cleaned = cleaned[1:cleaned.index(')')]
            is_negative = True

        if cleaned.startswith('-'):
            is_negative = not is_negative
            cleaned = cleaned[1:]
        elif cleaned.startswith('+'):
            cleaned = cleaned[1:]

        match = self.NUMBER.match(cleaned)
        if not match:
            return None

        try:
            amount = Decimal(match.group()).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None

        return -amount if is_negative else amount

    def parse_amount(self, amount_str: Optional[str]) -> Decimal:
        """Convert a raw amount to a signed Decimal, 0 when not numeric"""
        amount = self.read_amount(amount_str)
        if amount is None:
            if amount_str and str(amount_str).strip():
                logger.debug(f"Non-numeric amount treated as zero: {amount_str!r}")
            return ZERO
        return amount

    def match_date(self, date_str: Optional[str]) -> Optional[datetime]:
        """Parse a statement date, returning None when no supported format matches"""
        if not date_str or not str(date_str).strip():
            return None

        date_str = str(date_str).strip()

        for pattern, order in self.DATE_PATTERNS:
            match = pattern.search(date_str)
            if not match:
                continue
            year, month, day = (int(match.group(position)) for position in order)
            if year < 100:
                year = 1900 + year if year > 50 else 2000 + year
            try:
                return datetime(year, month, day)
            except ValueError:
                continue

        for fmt in self.TEXT_DATE_FORMATS:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue

        return None

    def parse_date(self, date_str: Optional[str]) -> datetime:
        """Parse a statement date, falling back to the current time"""
        parsed = self.match_date(date_str)
        if parsed is None:
            logger.warning(f"Unrecognized date {date_str!r}, using current date")
            return datetime.now()
        return parsed

    def clean_description(self, description: Optional[str]) -> str:
        """Collapse runs of whitespace in a description"""
        if not description:
            return ""
        return ' '.join(str(description).split())


class StatementParser(ABC):
    """Abstract base class for statement parsers"""

    def __init__(self, config: Optional[IngestConfig] = None):
        self.config = config or IngestConfig()
        self.transformer = DataTransformer()
        self.error_handler = ErrorHandler(logger=logger)

    @abstractmethod
    def parse(self, content: str, account_id: str, user_id: str) -> List[ParsedTransaction]:
        """Parse statement content and return normalized transactions"""
        pass

    def map_account_fields(self,
                           transaction_type: TransactionType,
                           account_id: str,
                           account_name: str,
                           account_type: Any = None) -> Dict[str, Any]:
        """Source/destination fields for a transaction on the statement account.

        Expenses move money from the statement account to an external party,
        income moves it the other way.
        """
        default_type = AccountType.coerce(self.config.default_account_type, AccountType.BANK)
        own_type = AccountType.coerce(account_type, default_type)

        if transaction_type == TransactionType.EXPENSE:
            return {
                'source_account_id': account_id,
                'source_account_type': own_type,
                'source_account_name': account_name,
                'destination_account_type': AccountType.OTHER,
                'destination_account_name': EXTERNAL_ACCOUNT_NAME,
            }
        return {
            'destination_account_id': account_id,
            'destination_account_type': own_type,
            'destination_account_name': account_name,
            'source_account_type': AccountType.OTHER,
            'source_account_name': EXTERNAL_ACCOUNT_NAME,
        }

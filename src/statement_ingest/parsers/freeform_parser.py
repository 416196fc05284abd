"""Line-oriented parser for OCR output and manually pasted statement text."""

import logging
import re
from typing import List, Optional

from .base import StatementParser
from .extractors import extract_merchant
from .layouts import supported_bank_names
from ..models.core import IngestConfig, ParsedTransaction, TransactionType
from ..utils.error_handler import ErrorCategory, StatementParseError


logger = logging.getLogger(__name__)

STATEMENT_ACCOUNT_NAME = "Bank Account"

LINE_PATTERNS = [
    # Date Description Amount Balance
    ('date_description_amount_balance', re.compile(
        r'(?P<date>\d{2}/\d{2}/\d{4})\s+(?P<description>.+?)\s+'
        r'(?P<amount>[\d,]+\.?\d*)\s+(?P<balance>[\d,]+\.?\d*)$'
    )),
    # Date Amount Description
    ('date_amount_description', re.compile(
        r'(?P<date>\d{2}[/\-]\d{2}[/\-]\d{4})\s*(?P<amount>[+\-]?[\d,]*\d\.?\d*)\s+(?P<description>.+)'
    )),
]


class FreeformStatementParser(StatementParser):
    """Extracts transactions from unstructured statement text, one per line"""

    def parse(self, content: str, account_id: str, user_id: str) -> List[ParsedTransaction]:
        """Parse statement text into transactions.

        Raises:
            StatementParseError: if non-empty text yields no transactions
        """
        self.error_handler.clear()

        lines = [line.strip() for line in (content or "").splitlines() if line.strip()]
        if not lines:
            raise StatementParseError("Statement text is empty", supported_bank_names())

        transactions = []
        for line_number, line in enumerate(lines, start=1):
            try:
                transaction = self.parse_line(line, account_id, user_id)
                if transaction:
                    transactions.append(transaction)
            except Exception as e:
                self.error_handler.log_warning(
                    f"Skipping line {line_number}: {str(e)}",
                    "MALFORMED_ROW",
                    category=ErrorCategory.ROW,
                    line_number=line_number,
                    raw_value=line
                )

        if not transactions:
            self.error_handler.log_error(
                "No transaction lines recognized in statement text",
                "NO_TRANSACTIONS",
                category=ErrorCategory.STATEMENT
            )
            raise StatementParseError(
                "No transaction lines recognized in statement text",
                supported_bank_names()
            )

        logger.info(f"Parsed {len(transactions)} transactions from {len(lines)} lines of text")
        return transactions

    def parse_line(self, line: str, account_id: str, user_id: str) -> Optional[ParsedTransaction]:
        """Match one line against the known patterns, first match wins"""
        for pattern_name, pattern in LINE_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue

            amount = self.transformer.parse_amount(match.group('amount'))
            if amount == 0:
                return None

            description = self.transformer.clean_description(match.group('description'))
            transaction_type = TransactionType.INCOME if amount > 0 else TransactionType.EXPENSE
            max_length = self.config.name_max_length

            metadata = {'pattern': pattern_name}
            if 'balance' in pattern.groupindex:
                metadata['balance'] = str(self.transformer.parse_amount(match.group('balance')))

            return ParsedTransaction(
                user_id=user_id,
                account_id=account_id,
                name=description[:max_length],
                description=description,
                amount=abs(amount),
                date=self.transformer.parse_date(match.group('date')),
                type=transaction_type,
                merchant=extract_merchant(description, max_length),
                metadata=metadata,
                **self.map_account_fields(transaction_type, account_id, STATEMENT_ACCOUNT_NAME)
            )

        return None


def parse_freeform_statement_text(content: str,
                                  account_id: str,
                                  user_id: str,
                                  config: Optional[IngestConfig] = None) -> List[ParsedTransaction]:
    """Parse OCR or pasted statement text into transactions"""
    return FreeformStatementParser(config).parse(content, account_id, user_id)

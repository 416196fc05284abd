"""Parser for delimited bank statement exports with layout detection."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

import pandas as pd

from .base import StatementParser
from .column_mapper import build_column_map
from .extractors import extract_merchant, extract_title
from .layouts import detect_bank, get_layout, supported_bank_names
from ..models.core import (
    BankLayout,
    ColumnMap,
    IngestConfig,
    LayoutConfig,
    ParsedTransaction,
    ParsingStats,
    TransactionType,
)
from ..utils.error_handler import ErrorCategory, StatementParseError


logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ('withdrawal', 'deposit', 'amount')


class DelimitedStatementParser(StatementParser):
    """Parses comma-delimited statements using a known or detected layout"""

    def resolve_layout(self, content: str, layout: Optional[BankLayout] = None) -> LayoutConfig:
        """Pick the layout for ``content``, detecting the bank when none is given"""
        if layout is None:
            layout = detect_bank(content)
            if layout:
                logger.info(f"Detected statement layout: {layout.value}")
            else:
                logger.info("No bank signature found, using generic layout")
        return get_layout(layout)

    def parse(self,
              content: str,
              account_id: str,
              user_id: str,
              layout: Optional[BankLayout] = None) -> List[ParsedTransaction]:
        """Parse a delimited statement into transactions.

        ``error_handler`` holds the problems of this call only.

        Raises:
            StatementParseError: if the statement has no data rows, cannot be
                tokenized, or none of its rows yields a transaction
        """
        self.error_handler.clear()

        rows = self._read_rows(content)
        if len(rows) < 2:
            self.error_handler.log_error(
                "Statement has no data rows", "EMPTY_STATEMENT",
                category=ErrorCategory.STATEMENT
            )
            raise StatementParseError("Not enough data rows", supported_bank_names())

        layout_config = self.resolve_layout(content, layout)
        column_map = build_column_map(rows[0], layout_config)

        transactions = []
        start_row = max(layout_config.skip_rows, 1)

        for line_number, values in enumerate(rows[start_row:], start=start_row + 1):
            try:
                transaction = self.parse_fields(values, column_map, account_id, user_id,
                                                layout_config, line_number)
                if transaction:
                    transactions.append(transaction)
            except Exception as e:
                self.error_handler.log_warning(
                    f"Skipping row {line_number}: {str(e)}",
                    "MALFORMED_ROW",
                    category=ErrorCategory.ROW,
                    line_number=line_number,
                    raw_value=','.join(values)
                )
                continue

        if not transactions:
            self.error_handler.log_error(
                f"No transactions found using {layout_config.bank_name} layout",
                "NO_TRANSACTIONS",
                category=ErrorCategory.STATEMENT,
                context={'missing_columns': column_map.missing_fields()}
            )
            raise StatementParseError(
                f"No valid transactions found using the {layout_config.bank_name} layout",
                supported_bank_names()
            )

        logger.info(
            f"Parsed {len(transactions)} transactions from {len(rows) - start_row} rows "
            f"using {layout_config.bank_name} layout"
        )
        return transactions

    def parse_row(self,
                  raw_line: str,
                  column_map: ColumnMap,
                  account_id: str,
                  user_id: str,
                  layout: Optional[LayoutConfig] = None) -> Optional[ParsedTransaction]:
        """Convert one statement line to a transaction, None when the row is not a transaction"""
        values = self.transformer.split_fields(raw_line)
        return self.parse_fields(values, column_map, account_id, user_id, layout)

    def parse_fields(self,
                     values: List[str],
                     column_map: ColumnMap,
                     account_id: str,
                     user_id: str,
                     layout: Optional[LayoutConfig] = None,
                     line_number: Optional[int] = None) -> Optional[ParsedTransaction]:
        """Convert the tokenized fields of one row to a transaction"""
        layout = layout or get_layout(None)
        if not any(values):
            return None

        date_str = self._column_value(values, column_map, 'date')
        description = self._column_value(values, column_map, 'description')

        # Footers and section headers usually lack one of these.
        if not date_str or not description:
            return None

        amount, transaction_type = self.extract_amount_and_type(values, column_map)
        if amount == 0:
            unreadable = [
                text for text in (self._column_value(values, column_map, name)
                                  for name in AMOUNT_FIELDS)
                if text and self.transformer.read_amount(text) is None
            ]
            if unreadable:
                self.error_handler.log_warning(
                    f"Skipping row with unreadable amount {unreadable[0]!r}",
                    "MALFORMED_ROW",
                    category=ErrorCategory.ROW,
                    line_number=line_number,
                    raw_value=','.join(values)
                )
            return None

        description = self.transformer.clean_description(description)
        max_length = self.config.name_max_length

        metadata = {'bank': layout.bank_name}
        balance_str = self._column_value(values, column_map, 'balance')
        if balance_str:
            metadata['balance'] = str(self.transformer.parse_amount(balance_str))

        transaction_date = self.transformer.match_date(date_str)
        if transaction_date is None:
            self.error_handler.log_warning(
                f"Unrecognized date {date_str!r}, using current date",
                "DATE_PARSE_ERROR",
                category=ErrorCategory.ROW,
                line_number=line_number,
                raw_value=','.join(values)
            )
            transaction_date = datetime.now()
            metadata['date_fallback'] = True
            metadata['raw_date'] = date_str

        return ParsedTransaction(
            user_id=user_id,
            account_id=account_id,
            name=extract_title(description, max_length),
            description=description,
            amount=abs(amount),
            date=transaction_date,
            type=transaction_type,
            merchant=extract_merchant(description, max_length),
            metadata=metadata,
            **self.map_account_fields(transaction_type, account_id, layout.bank_name)
        )

    def extract_amount_and_type(self, values: List[str], column_map: ColumnMap) -> Tuple[Decimal, TransactionType]:
        """Amount and direction, preferring dedicated withdrawal/deposit columns"""
        withdrawal = self.transformer.parse_amount(self._column_value(values, column_map, 'withdrawal'))
        deposit = self.transformer.parse_amount(self._column_value(values, column_map, 'deposit'))

        if withdrawal > 0:
            return withdrawal, TransactionType.EXPENSE
        if deposit > 0:
            return deposit, TransactionType.INCOME

        amount = self.transformer.parse_amount(self._column_value(values, column_map, 'amount'))
        if amount < 0:
            return abs(amount), TransactionType.EXPENSE
        return amount, TransactionType.INCOME

    def get_parsing_stats(self, content: str, layout: Optional[BankLayout] = None) -> ParsingStats:
        """Count rows with and without the required date and description"""
        rows = self._read_rows(content)
        layout_config = self.resolve_layout(content, layout)

        if not rows:
            empty_map = ColumnMap()
            return ParsingStats(
                bank_name=layout_config.bank_name,
                total_rows=0,
                valid_rows=0,
                invalid_rows=0,
                detected_columns=empty_map.detected_fields(),
                missing_columns=empty_map.missing_fields()
            )

        column_map = build_column_map(rows[0], layout_config)
        start_row = max(layout_config.skip_rows, 1)

        valid_rows = 0
        invalid_rows = 0
        for values in rows[start_row:]:
            if self._column_value(values, column_map, 'date') and \
                    self._column_value(values, column_map, 'description'):
                valid_rows += 1
            else:
                invalid_rows += 1

        return ParsingStats(
            bank_name=layout_config.bank_name,
            total_rows=max(len(rows) - start_row, 0),
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            detected_columns=column_map.detected_fields(),
            missing_columns=column_map.missing_fields()
        )

    def _read_rows(self, content: str) -> List[List[str]]:
        try:
            return self.transformer.read_rows(content)
        except pd.errors.ParserError as e:
            self.error_handler.log_error(
                f"Statement is not valid delimited text: {e}", "MALFORMED_ROW",
                category=ErrorCategory.STATEMENT
            )
            raise StatementParseError("Statement is not valid delimited text", supported_bank_names()) from e

    @staticmethod
    def _column_value(values: List[str], column_map: ColumnMap, field_name: str) -> str:
        index = column_map.index_of(field_name)
        if index is None or index >= len(values):
            return ""
        return values[index].strip()


def parse_delimited_statement(content: str,
                              account_id: str,
                              user_id: str,
                              layout: Optional[BankLayout] = None,
                              config: Optional[IngestConfig] = None) -> List[ParsedTransaction]:
    """Detect the layout of a delimited statement and parse it"""
    return DelimitedStatementParser(config).parse(content, account_id, user_id, layout)

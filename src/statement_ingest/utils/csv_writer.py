"""CSV export and summaries of parsed transaction batches."""

import logging
import os
from typing import Any, Dict, List

import pandas as pd

from ..models.core import ParsedTransaction, TransactionType


logger = logging.getLogger(__name__)


class CSVWriter:
    """Writes parsed transactions to CSV in a fixed column order"""

    STANDARD_HEADERS = [
        'date',
        'name',
        'description',
        'amount',
        'type',
        'merchant',
        'source_account_type',
        'source_account_name',
        'destination_account_type',
        'destination_account_name',
    ]

    def to_dataframe(self, transactions: List[ParsedTransaction]) -> pd.DataFrame:
        """Build a DataFrame with one row per transaction"""
        rows = [self._transaction_to_dict(transaction) for transaction in transactions]
        return pd.DataFrame(rows, columns=self.STANDARD_HEADERS)

    def write_transactions(self, transactions: List[ParsedTransaction], output_path: str) -> bool:
        """Write transactions to ``output_path``, returning False when there is nothing to write"""
        if not transactions:
            logger.warning("No transactions to write")
            return False

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        self.to_dataframe(transactions).to_csv(output_path, index=False)
        logger.info(f"Wrote {len(transactions)} transactions to {output_path}")
        return True

    def summarize(self, transactions: List[ParsedTransaction]) -> Dict[str, Any]:
        """Counts and totals per direction plus the covered date range"""
        if not transactions:
            return {
                'total_transactions': 0,
                'income_count': 0,
                'expense_count': 0,
                'total_income': 0.0,
                'total_expense': 0.0,
                'start_date': None,
                'end_date': None,
            }

        df = self.to_dataframe(transactions)
        df['amount'] = df['amount'].astype(float)
        by_type = df.groupby('type')['amount'].agg(['count', 'sum'])

        def stat(transaction_type: TransactionType, column: str):
            if transaction_type.value in by_type.index:
                return by_type.loc[transaction_type.value, column]
            return 0

        dates = pd.to_datetime(df['date'])
        return {
            'total_transactions': len(df),
            'income_count': int(stat(TransactionType.INCOME, 'count')),
            'expense_count': int(stat(TransactionType.EXPENSE, 'count')),
            'total_income': round(float(stat(TransactionType.INCOME, 'sum')), 2),
            'total_expense': round(float(stat(TransactionType.EXPENSE, 'sum')), 2),
            'start_date': dates.min().date().isoformat(),
            'end_date': dates.max().date().isoformat(),
        }

    @staticmethod
    def _transaction_to_dict(transaction: ParsedTransaction) -> Dict[str, Any]:
        return {
            'date': transaction.date.date().isoformat(),
            'name': transaction.name,
            'description': transaction.description,
            'amount': f"{transaction.amount:.2f}",
            'type': transaction.type.value,
            'merchant': transaction.merchant or "",
            'source_account_type': transaction.source_account_type.value,
            'source_account_name': transaction.source_account_name or "",
            'destination_account_type': (
                transaction.destination_account_type.value if transaction.destination_account_type else ""
            ),
            'destination_account_name': transaction.destination_account_name or "",
        }

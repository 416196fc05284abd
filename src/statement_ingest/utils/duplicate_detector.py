"""Signature-based duplicate detection for parsed transactions."""

import hashlib
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..models.core import DuplicateCheckResult, ParsedTransaction


class DuplicateDetector:
    """Detects transactions that already exist in a store or repeat within a batch"""

    # Reference numbers and noise that differ between exports of the same transaction
    DESCRIPTION_REPLACEMENTS = [
        (r'\s+\d{6,}\s*$', ''),  # Trailing reference numbers
        (r'/\d{6,}', '/'),  # UPI/IMPS reference segments
        (r'\s+#\d+', ''),  # Store numbers like "#0658"
        (r'\*[a-z0-9]+', ''),  # Reference codes like "*NK9M63AJ1"
        (r'\s+&\s+', ' and '),
        (r'\s+(pvt\s+)?ltd\.?\s*$', ''),
    ]

    def signature(self, user_id: str, date: Any, amount: Any, description: str, transaction_type: str) -> str:
        """Hash of the fields that identify a transaction across uploads"""
        if isinstance(date, datetime):
            day = date.date().isoformat()
        else:
            day = str(date or "")[:10]

        amount_str = f"{abs(Decimal(str(amount))):.2f}"
        normalized = self.normalize_description(description)

        signature_data = f"{user_id}|{day}|{amount_str}|{normalized}|{transaction_type}"
        return hashlib.md5(signature_data.encode('utf-8')).hexdigest()[:16]

    def signature_for_transaction(self, transaction: ParsedTransaction) -> str:
        return self.signature(
            transaction.user_id,
            transaction.date,
            transaction.amount,
            transaction.description,
            transaction.type.value
        )

    def signature_for_record(self, record: Dict[str, Any]) -> str:
        return self.signature(
            record.get('user_id', ''),
            record.get('date'),
            record.get('amount', 0),
            record.get('description', ''),
            record.get('type', '')
        )

    def normalize_description(self, description: Optional[str]) -> str:
        """Normalize a description for matching"""
        if not description:
            return ""

        normalized = description.lower().strip()
        for pattern, replacement in self.DESCRIPTION_REPLACEMENTS:
            normalized = re.sub(pattern, replacement, normalized)

        return ' '.join(normalized.split())

    def find_duplicates(self,
                        transactions: List[ParsedTransaction],
                        existing_records: Iterable[Dict[str, Any]] = (),
                        user_id: Optional[str] = None) -> DuplicateCheckResult:
        """Flag transactions already stored for the user or repeated earlier in the batch"""
        existing = {
            self.signature_for_record(record)
            for record in existing_records
            if user_id is None or record.get('user_id') == user_id
        }

        seen_in_batch: Dict[str, int] = {}
        duplicates = []

        for index, transaction in enumerate(transactions):
            signature = self.signature_for_transaction(transaction)

            if signature in existing:
                duplicates.append(self._describe(index, transaction, 'existing'))
            elif signature in seen_in_batch:
                duplicate = self._describe(index, transaction, 'batch')
                duplicate['first_index'] = seen_in_batch[signature]
                duplicates.append(duplicate)
            else:
                seen_in_batch[signature] = index

        return DuplicateCheckResult(duplicate_count=len(duplicates), duplicates=duplicates)

    @staticmethod
    def _describe(index: int, transaction: ParsedTransaction, reason: str) -> Dict[str, Any]:
        return {
            'index': index,
            'name': transaction.name,
            'amount': float(transaction.amount),
            'date': transaction.date.isoformat(),
            'type': transaction.type.value,
            'reason': reason,
        }

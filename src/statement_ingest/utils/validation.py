"""Validation engine for parsed transaction batches."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from ..models.core import AccountType, ParsedTransaction, TransactionType, ValidationResult


class ValidationEngine:
    """Validates parsed transactions before upload"""

    def __init__(self, name_max_length: int = 50, max_amount: Decimal = Decimal('100000000')):
        self.name_max_length = name_max_length
        self.max_amount = max_amount

    def validate_transaction(self, transaction: ParsedTransaction) -> List[str]:
        """Validate individual transaction and return list of errors"""
        errors = []

        if not transaction.user_id or not str(transaction.user_id).strip():
            errors.append("User id cannot be empty")

        if not transaction.name or not transaction.name.strip():
            errors.append("Name cannot be empty")
        elif len(transaction.name) > self.name_max_length:
            errors.append(f"Name longer than {self.name_max_length} characters")

        if not isinstance(transaction.amount, Decimal):
            errors.append("Invalid amount: must be Decimal object")
        elif transaction.amount <= 0:
            errors.append("Amount must be greater than zero")
        elif transaction.amount > self.max_amount:
            errors.append("Amount is unreasonably large")

        if not isinstance(transaction.date, datetime):
            errors.append("Invalid date: must be datetime object")
        else:
            current_year = datetime.now().year
            if transaction.date.year < 1900 or transaction.date.year > current_year + 1:
                errors.append(f"Date year {transaction.date.year} seems unreasonable")

        if not isinstance(transaction.type, TransactionType):
            errors.append(f"Invalid transaction type: {transaction.type!r}")

        if not isinstance(transaction.source_account_type, AccountType):
            errors.append("Source account type is required")

        if transaction.destination_account_type is not None and \
                not isinstance(transaction.destination_account_type, AccountType):
            errors.append(f"Invalid destination account type: {transaction.destination_account_type!r}")

        return errors

    def validate_batch(self, transactions: List[ParsedTransaction]) -> ValidationResult:
        """Validate every transaction, collecting errors with their batch index"""
        validation_errors: List[Dict[str, Any]] = []

        for index, transaction in enumerate(transactions):
            for error in self.validate_transaction(transaction):
                validation_errors.append({
                    'index': index,
                    'name': transaction.name,
                    'error': error,
                })

        return ValidationResult(
            is_valid=not validation_errors,
            total_count=len(transactions),
            validation_errors=validation_errors
        )

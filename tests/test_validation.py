"""Tests for transaction validation."""

from datetime import datetime
from decimal import Decimal

from statement_ingest.models.core import AccountType, ParsedTransaction, TransactionType
from statement_ingest.utils.validation import ValidationEngine


def make_transaction(**overrides):
    fields = dict(
        user_id="user-1",
        account_id="acc-1",
        name="Coffee",
        description="Coffee shop",
        amount=Decimal('4.50'),
        date=datetime(2024, 1, 5),
        type=TransactionType.EXPENSE,
        source_account_type=AccountType.BANK,
    )
    fields.update(overrides)
    return ParsedTransaction(**fields)


class TestValidationEngine:
    """Test cases for ValidationEngine"""

    def setup_method(self):
        self.engine = ValidationEngine()

    def test_valid_transaction(self):
        assert self.engine.validate_transaction(make_transaction()) == []

    def test_empty_name(self):
        errors = self.engine.validate_transaction(make_transaction(name="  "))
        assert "Name cannot be empty" in errors

    def test_name_too_long(self):
        errors = self.engine.validate_transaction(make_transaction(name="x" * 51))
        assert "Name longer than 50 characters" in errors

    def test_non_positive_amount(self):
        errors = self.engine.validate_transaction(make_transaction(amount=Decimal('0')))
        assert "Amount must be greater than zero" in errors

    def test_amount_must_be_decimal(self):
        errors = self.engine.validate_transaction(make_transaction(amount=4.5))
        assert "Invalid amount: must be Decimal object" in errors

    def test_unreasonable_year(self):
        errors = self.engine.validate_transaction(make_transaction(date=datetime(1850, 1, 1)))
        assert any("seems unreasonable" in error for error in errors)

    def test_missing_source_account_type(self):
        errors = self.engine.validate_transaction(make_transaction(source_account_type=None))
        assert "Source account type is required" in errors

    def test_batch_result(self):
        result = self.engine.validate_batch([make_transaction(), make_transaction(name="")])

        assert result.is_valid is False
        assert result.total_count == 2
        assert result.validation_errors == [{'index': 1, 'name': "", 'error': "Name cannot be empty"}]

    def test_empty_batch_is_valid(self):
        result = self.engine.validate_batch([])
        assert result.is_valid is True
        assert result.total_count == 0

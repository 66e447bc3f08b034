"""
Test suite for transaction records
"""

import pytest
from dataclasses import FrozenInstanceError
from datetime import datetime
from decimal import Decimal

from retail_ledger.transactions import Transaction, TransactionKind


class TestTransaction:
    """Test Transaction records"""

    def test_kind_enum_is_stored_as_tag(self):
        transaction = Transaction("C001", "A001", TransactionKind.CREDIT_REPAY, Decimal('-10'), "Repay")

        assert transaction.kind == "CREDIT_REPAY"
        assert type(transaction.kind) is str

    def test_free_form_kind_kept(self):
        transaction = Transaction("C001", "A001", "BONUS", Decimal('5'), "Loyalty")
        assert transaction.kind == "BONUS"

    def test_amount_coerced_to_decimal(self):
        transaction = Transaction("C001", "A001", "DEPOSIT", 12.5, "cash")
        assert transaction.amount == Decimal('12.5')

    def test_missing_description_becomes_empty(self):
        transaction = Transaction("C001", "A001", "DEPOSIT", Decimal('1'), None)
        assert transaction.description == ""

    def test_timestamp_defaults_to_now(self):
        before = datetime.now()
        transaction = Transaction("C001", "A001", "DEPOSIT", Decimal('1'), "x")
        assert before <= transaction.timestamp <= datetime.now()

    def test_records_are_immutable(self):
        transaction = Transaction("C001", "A001", "DEPOSIT", Decimal('1'), "x")
        with pytest.raises(FrozenInstanceError):
            transaction.amount = Decimal('2')

    def test_string_form(self):
        transaction = Transaction(
            "C001", "A001", "WITHDRAW", Decimal('-7.5'), "ATM",
            timestamp=datetime(2024, 1, 31, 9, 30)
        )
        assert str(transaction) == "[2024-01-31T09:30:00] C001 | WITHDRAW | -7.50 | ATM"

"""
Ledger Operations Module

Multi-account operations: internal and external transfers, savings and credit
funding flows, and monthly accrual. Every operation that touches two accounts
converts the amount and validates both legs before mutating either account,
then applies both balance changes and both transaction records together.

Settlement rule: the debit leg is always the native amount in the source
account's currency; the credit leg is the converted amount in the destination
account's currency. The two recorded amounts therefore differ by the rate.
"""

from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
import threading

from .accounts import Account
from .currency import CurrencyConverter, Money, Number, round_to_currency, to_decimal
from .errors import (
    AccountTypeError, CrossOwnershipError, InvalidAmountError, MissingAccountError,
    SourceTypeError
)
from .logging_config import get_logger, log_action
from .transactions import Transaction, TransactionKind


def _with_note(text: str, note: Optional[str]) -> str:
    note = (note or "").strip()
    return f"{text} / {note}" if note else text


class LedgerOperations:
    """
    Orchestrates ledger operations over in-memory accounts.

    Mutations are serialised by one re-entrant lock, so the ledger acts as a
    single writer when shared between threads.
    """

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self.converter = converter or CurrencyConverter.with_static_rates()
        self._lock = threading.RLock()
        self.logger = get_logger("retail_ledger.ledger")

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _require_same_owner(first: Account, second: Account, message: str) -> None:
        if first.customer_id != second.customer_id:
            raise CrossOwnershipError(message)

    @staticmethod
    def _require_positive(amount: Number, message: str) -> Decimal:
        value = to_decimal(amount)
        if value <= Decimal('0'):
            raise InvalidAmountError(message)
        return value

    def _settle(self, source: Account, destination: Account, native: Decimal) -> Decimal:
        """Destination-currency amount for a native amount, rounded to minor units"""
        credited = self.converter.convert_money(Money(native, source.currency), destination.currency).amount
        if credited <= Decimal('0'):
            raise InvalidAmountError(
                f"Amount too small to convert from {source.currency.code} to {destination.currency.code}."
            )
        return credited

    def _move(
        self,
        source: Account,
        destination: Account,
        amount: Number,
        debit_kind: TransactionKind,
        debit_description: str,
        credit_kind: TransactionKind,
        credit_description: str
    ) -> Tuple[Transaction, Transaction]:
        """
        Withdraw from source, deposit the converted amount into destination
        and record one transaction on each. Nothing changes if any check fails.
        """
        with self._lock:
            native = source.check_withdrawal(amount)
            credited = self._settle(source, destination, native)

            source.withdraw(native)
            destination.deposit(credited)

            sent = source.record_transaction(debit_kind, -native, debit_description)
            received = destination.record_transaction(credit_kind, credited, credit_description)
            return sent, received

    # -- single-account operations -------------------------------------------

    def deposit(self, account: Account, amount: Number,
                description: Optional[str] = None) -> Transaction:
        """Deposit into an account and record a DEPOSIT transaction"""
        with self._lock:
            account.deposit(amount)
            value = round_to_currency(to_decimal(amount), account.currency)
            return account.record_transaction(
                TransactionKind.DEPOSIT, value,
                description or f"Money deposited successfully. | {account.account_type.name.title()} Account"
            )

    def withdraw(self, account: Account, amount: Number,
                 description: Optional[str] = None) -> Transaction:
        """Withdraw from an account and record a negative WITHDRAW transaction"""
        with self._lock:
            value = account.check_withdrawal(amount)
            account.withdraw(value)
            return account.record_transaction(
                TransactionKind.WITHDRAW, -value,
                description or f"Withdrew {value} {account.currency.code}."
            )

    # -- transfers ------------------------------------------------------------

    def transfer_internal(self, from_account: Account, to_account: Account, amount: Number,
                          description: Optional[str] = None) -> Tuple[Transaction, Transaction]:
        """
        Move money between two accounts of the same customer.

        Raises:
            CrossOwnershipError: If the accounts belong to different customers
            SourceTypeError: If the source is not a debit account
            InvalidAmountError: If amount is not positive
            InsufficientFundsError: If the source balance is too low
        """
        self._require_same_owner(
            from_account, to_account, "Internal transfer allowed only within same customer."
        )
        if not from_account.is_debit:
            raise SourceTypeError("Transfers must originate from a Debit account.")
        self._require_positive(amount, "Transfer amount must be positive.")

        source_label = f"{from_account.currency.code} {from_account.account_type.name.lower()}"
        target_label = f"{to_account.currency.code} {to_account.account_type.name.lower()}"
        transactions = self._move(
            from_account, to_account, amount,
            TransactionKind.WITHDRAW, _with_note(f"Transferred to {target_label} account.", description),
            TransactionKind.DEPOSIT, _with_note(f"Received from {source_label} account.", description)
        )

        log_action(
            self.logger, "info", "Internal transfer completed",
            customer_id=from_account.customer_id, action="transfer_internal",
            resource=from_account.account_id,
            extra={
                "to_account_id": to_account.account_id,
                "sent": str(-transactions[0].amount),
                "received": str(transactions[1].amount),
            }
        )
        return transactions

    def transfer_external(self, from_account: Optional[Account], to_account: Optional[Account],
                          amount: Number, description: Optional[str] = None) -> Tuple[Transaction, Transaction]:
        """
        Send money from a debit account to any account, possibly owned by
        another customer.

        Records TRANSFER_SENT (negative native amount) on the sender and
        TRANSFER_RECEIVED (positive converted amount) on the receiver.

        Raises:
            MissingAccountError: If either account is None
            InvalidAmountError: If amount is not positive
            SourceTypeError: If the sender is not a debit account
        """
        if from_account is None or to_account is None:
            raise MissingAccountError("Both accounts must exist.")
        self._require_positive(amount, "Transfer amount must be positive.")
        if not from_account.is_debit:
            raise SourceTypeError("Only Debit accounts can send external transfers.")

        sent, received = self._move(
            from_account, to_account, amount,
            TransactionKind.TRANSFER_SENT, _with_note(f"To: {to_account.account_holder}", description),
            TransactionKind.TRANSFER_RECEIVED, _with_note(f"From: {from_account.account_holder}", description)
        )

        log_action(
            self.logger, "info",
            f"External transfer completed: {-sent.amount} {from_account.currency.code} -> "
            f"{received.amount} {to_account.currency.code}",
            customer_id=from_account.customer_id, action="transfer_external",
            resource=from_account.account_id,
            extra={"to_account_id": to_account.account_id, "to_customer_id": to_account.customer_id}
        )
        return sent, received

    # -- savings and credit flows ---------------------------------------------

    def fund_savings(self, debit: Account, savings: Account,
                     amount: Number) -> Tuple[Transaction, Transaction]:
        """Move money from a customer's debit account into their savings account"""
        self._require_same_owner(debit, savings, "Savings can only be funded from the owner's accounts.")
        if not debit.is_debit:
            raise SourceTypeError("Savings must be funded from a Debit account.")
        if not savings.is_savings:
            raise AccountTypeError("Destination must be a Savings account.")

        return self._move(
            debit, savings, amount,
            TransactionKind.WITHDRAW, "Money transferred to Savings Account | Debit Account",
            TransactionKind.DEPOSIT, "Money deposited from Debit Account | Savings Account"
        )

    def withdraw_savings(self, savings: Account, debit: Account,
                         amount: Number) -> Tuple[Transaction, Transaction]:
        """Move money from a savings account back to the owner's debit account"""
        self._require_same_owner(savings, debit, "Savings can only be withdrawn to the owner's accounts.")
        if not savings.is_savings:
            raise SourceTypeError("Source must be a Savings account.")
        if not debit.is_debit:
            raise AccountTypeError("Savings can only be withdrawn to a Debit account.")

        return self._move(
            savings, debit, amount,
            TransactionKind.WITHDRAW, "Withdrawn from Savings to Debit | Savings Account",
            TransactionKind.DEPOSIT, "Deposit from Savings account | Debit Account"
        )

    def take_credit(self, credit: Account, debit: Account,
                    amount: Number) -> Tuple[Transaction, Transaction]:
        """
        Draw on a credit account into the owner's debit account.

        Raises:
            CreditLimitExceededError: If the draw would pass the credit limit
        """
        self._require_same_owner(credit, debit, "Credit can only be paid out to the owner's accounts.")
        if not credit.is_credit:
            raise SourceTypeError("Source must be a Credit account.")
        if not debit.is_debit:
            raise AccountTypeError("Credit can only be paid out to a Debit account.")

        transactions = self._move(
            credit, debit, amount,
            TransactionKind.CREDIT_TAKEN, "New Credit taken | Credit Account",
            TransactionKind.CREDIT_INCOMING, "Funds received from Credit | Debit Account"
        )
        log_action(
            self.logger, "info", "Credit taken",
            customer_id=credit.customer_id, action="take_credit", resource=credit.account_id,
            extra={"amount": str(-transactions[0].amount), "balance": str(credit.balance.amount)}
        )
        return transactions

    def repay_credit(self, debit: Account, credit: Account,
                     amount: Number) -> Tuple[Transaction, Transaction]:
        """
        Repay outstanding credit from the owner's debit account.

        Raises:
            InvalidAmountError: If there is no debt, or the converted amount
                exceeds what is owed
        """
        self._require_same_owner(debit, credit, "Credit can only be repaid from the owner's accounts.")
        if not debit.is_debit:
            raise SourceTypeError("Credit must be repaid from a Debit account.")
        if not credit.is_credit:
            raise AccountTypeError("Destination must be a Credit account.")

        with self._lock:
            if not credit.balance.is_negative():
                raise InvalidAmountError("No active credit to repay.")
            native = self._require_positive(amount, "Repayment amount must be positive.")
            owed = abs(credit.balance.amount)
            if self._settle(debit, credit, native) > owed:
                raise InvalidAmountError("Amount exceeds owed credit")

            return self._move(
                debit, credit, amount,
                TransactionKind.CREDIT_REPAY, "Credit Repayment | Debit Account",
                TransactionKind.DEPOSIT, "Money deposited | Credit Account"
            )

    # -- monthly accrual ------------------------------------------------------

    def apply_monthly_update(self, account: Account) -> Optional[Transaction]:
        """Accrue one month on an account, recording INTEREST_APPLIED when the balance moved"""
        with self._lock:
            delta = account.apply_monthly_update()
            if delta == Decimal('0'):
                return None
            label = "credit" if account.is_credit else "savings"
            return account.record_transaction(
                TransactionKind.INTEREST_APPLIED, delta, f"Monthly {label} interest applied."
            )

    def apply_monthly_processing(self, accounts: Iterable[Account]) -> List[Transaction]:
        """
        Apply the monthly update to every account, independently.

        Returns:
            The INTEREST_APPLIED transactions recorded, one per changed account
        """
        recorded = []
        processed = 0
        for account in accounts:
            processed += 1
            transaction = self.apply_monthly_update(account)
            if transaction is not None:
                recorded.append(transaction)

        log_action(
            self.logger, "info", "Monthly processing completed",
            action="monthly_processing",
            extra={"accounts": processed, "changed": len(recorded)}
        )
        return recorded

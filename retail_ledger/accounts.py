"""
Account Management Module

Debit, savings and credit accounts and the in-memory account index.

An Account carries one "terms" value describing its variant: DebitTerms,
SavingsTerms (interest rate) or CreditTerms (interest rate and credit limit).
Withdrawal limits and monthly accrual dispatch on that value, so fields such
as the credit limit only exist on the variant that uses them.
"""

from decimal import Decimal
from datetime import date
from dataclasses import InitVar, dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union
from enum import Enum
import random

from .config import LedgerConfig, get_config
from .currency import Currency, Money, Number, round_to_currency, to_decimal
from .customers import Customer
from .errors import (
    ConstructionValidationError, CreditLimitExceededError, InsufficientFundsError,
    InvalidAmountError, MissingAccountError
)
from .identifiers import IdGenerator
from .logging_config import get_logger
from .transactions import Transaction, TransactionKind


class AccountType(Enum):
    """Account variants, valued by their single-letter storage tag"""
    DEBIT = "D"
    SAVINGS = "S"
    CREDIT = "C"

    @classmethod
    def from_tag(cls, tag: str) -> "AccountType":
        try:
            return cls((tag or "").strip().upper())
        except ValueError:
            raise ConstructionValidationError(
                "Invalid account type. Must be 'D', 'S', or 'C'."
            ) from None


@dataclass(frozen=True)
class DebitTerms:
    """Everyday account: no interest, balance never negative"""

    @property
    def account_type(self) -> AccountType:
        return AccountType.DEBIT


@dataclass(frozen=True)
class SavingsTerms:
    """Savings account earning interest_rate percent per month"""
    interest_rate: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'interest_rate', to_decimal(self.interest_rate))
        if self.interest_rate < Decimal('0'):
            raise ConstructionValidationError("Interest rate must be positive.")

    @property
    def account_type(self) -> AccountType:
        return AccountType.SAVINGS


@dataclass(frozen=True)
class CreditTerms:
    """Credit account: balance may go down to credit_limit (< 0); debt accrues interest_rate percent per month"""
    interest_rate: Decimal
    credit_limit: Decimal

    def __post_init__(self):
        object.__setattr__(self, 'interest_rate', to_decimal(self.interest_rate))
        object.__setattr__(self, 'credit_limit', to_decimal(self.credit_limit))
        if self.interest_rate < Decimal('0'):
            raise ConstructionValidationError("Interest rate must be positive.")
        if self.credit_limit >= Decimal('0'):
            raise ConstructionValidationError("Credit limit must be negative.")

    @property
    def account_type(self) -> AccountType:
        return AccountType.CREDIT


AccountTerms = Union[DebitTerms, SavingsTerms, CreditTerms]

IBAN_MIN_LENGTH = 13
DEFAULT_BANK_CODE = "SMTB"
DEFAULT_COUNTRY = "RO"

_IMMUTABLE_FIELDS = frozenset({
    "account_id", "customer_id", "currency", "terms", "iban", "creation_date"
})


def generate_iban(account_id: str, country: str, bank_code: str = DEFAULT_BANK_CODE,
                  rng: Optional[random.Random] = None) -> str:
    """
    Synthesize an IBAN-shaped string: CC kk BBBB SSSS <account id> xx

    Check digits, branch and suffix are random, so the result is cosmetic and
    only best-effort unique.
    """
    rng = rng or random
    check_digits = rng.randint(10, 99)
    branch_code = rng.randint(1000, 9999)
    suffix = rng.randint(10, 99)
    return f"{country.upper()}{check_digits}{bank_code}{branch_code}{account_id}{suffix}"


@dataclass
class Account:
    """
    Bank account with a balance in its own currency and an append-only
    transaction history.

    Pass restored=True when rebuilding a stored account: the initial credit
    limit check is skipped because monthly interest can leave debt below it.
    """
    account_id: str
    customer_id: str
    currency: Currency
    terms: AccountTerms
    balance: Money = None
    iban: Optional[str] = None
    country: str = DEFAULT_COUNTRY
    account_holder: str = ""
    creation_date: date = field(default_factory=date.today)
    bank_code: str = field(default=DEFAULT_BANK_CODE, repr=False)
    restored: InitVar[bool] = False
    _transactions: List[Transaction] = field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self, restored: bool):
        if not self.account_id or not str(self.account_id).strip():
            raise ConstructionValidationError("Account ID cannot be blank.")
        if not self.customer_id or not str(self.customer_id).strip():
            raise ConstructionValidationError("Customer ID cannot be blank.")
        if not isinstance(self.terms, (DebitTerms, SavingsTerms, CreditTerms)):
            raise ConstructionValidationError("Invalid account type. Must be 'D', 'S', or 'C'.")

        if not isinstance(self.currency, Currency) and not str(self.currency or "").strip():
            raise ConstructionValidationError("Currency cannot be blank.")
        currency = Currency.from_code(self.currency)
        object.__setattr__(self, 'currency', currency)

        balance = self.balance
        if balance is None:
            balance = Money.zero(currency)
        elif isinstance(balance, Money):
            if balance.currency != currency:
                raise ConstructionValidationError("Balance currency must match account currency")
        else:
            balance = Money(to_decimal(balance), currency)

        if balance.is_negative() and not self.is_credit:
            raise ConstructionValidationError("Negative balance allowed only for Credit accounts.")
        if self.is_credit and not restored and balance.amount < self.terms.credit_limit:
            raise ConstructionValidationError("Initial balance exceeds credit limit.")
        self.balance = balance

        self.country = (self.country or DEFAULT_COUNTRY).strip().upper()

        iban = (self.iban or "").strip()
        if not iban:
            iban = generate_iban(self.account_id, self.country, self.bank_code)
        if len(iban) < IBAN_MIN_LENGTH:
            raise ConstructionValidationError(f"IBAN too short: {iban!r}")
        object.__setattr__(self, 'iban', iban)

    def __setattr__(self, name, value):
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"{name} cannot be changed once assigned")
        super().__setattr__(name, value)

    # -- derived attributes -------------------------------------------------

    @property
    def account_type(self) -> AccountType:
        return self.terms.account_type

    @property
    def is_debit(self) -> bool:
        return isinstance(self.terms, DebitTerms)

    @property
    def is_savings(self) -> bool:
        return isinstance(self.terms, SavingsTerms)

    @property
    def is_credit(self) -> bool:
        return isinstance(self.terms, CreditTerms)

    @property
    def bank_key(self) -> str:
        """Bank and branch segment of the IBAN"""
        return self.iban[4:12]

    @property
    def bank_account(self) -> str:
        """Account-number segment of the IBAN"""
        return self.iban[12:]

    @property
    def interest_rate(self) -> Optional[Decimal]:
        """Monthly rate in percent; None for debit accounts"""
        if isinstance(self.terms, (SavingsTerms, CreditTerms)):
            return self.terms.interest_rate
        return None

    @property
    def credit_limit(self) -> Optional[Decimal]:
        """Lowest allowed balance; None for non-credit accounts"""
        if isinstance(self.terms, CreditTerms):
            return self.terms.credit_limit
        return None

    @property
    def floor(self) -> Decimal:
        """Lowest balance this account may reach"""
        if isinstance(self.terms, CreditTerms):
            return self.terms.credit_limit
        return Decimal('0')

    @property
    def available_to_withdraw(self) -> Money:
        return self.balance - Money(self.floor, self.currency)

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        """Read-only view of the transaction history in insertion order"""
        return tuple(self._transactions)

    # -- balance operations -------------------------------------------------

    def _normalize_amount(self, amount: Number, operation: str) -> Decimal:
        value = round_to_currency(to_decimal(amount), self.currency)
        if value <= Decimal('0'):
            raise InvalidAmountError(f"{operation} amount must be positive.")
        return value

    def deposit(self, amount: Number) -> Money:
        """
        Add a positive amount to the balance. Records no transaction.

        The amount is rounded to the currency's minor unit first, so a
        positive sub-cent amount such as 0.004 is rejected.

        Raises:
            InvalidAmountError: If the rounded amount is not positive
        """
        value = self._normalize_amount(amount, "Deposit")
        self.balance = self.balance + Money(value, self.currency)
        return self.balance

    def check_withdrawal(self, amount: Number) -> Decimal:
        """
        Validate a withdrawal without changing the balance.

        Returns:
            The withdrawal amount rounded to the account currency

        Raises:
            InvalidAmountError: If the rounded amount is not positive
            InsufficientFundsError: Debit/savings amount exceeds the balance
            CreditLimitExceededError: Credit balance would drop below the limit
        """
        value = self._normalize_amount(amount, "Withdrawal")

        if Money(value, self.currency) > self.available_to_withdraw:
            if isinstance(self.terms, CreditTerms):
                raise CreditLimitExceededError("Withdrawal exceeds the credit limit.")
            raise InsufficientFundsError("Insufficient funds.")

        return value

    def withdraw(self, amount: Number) -> Money:
        """
        Remove amount from the balance within the variant's limit. Records no
        transaction. Sub-cent amounts round to zero and are rejected.
        """
        value = self.check_withdrawal(amount)
        self.balance = self.balance - Money(value, self.currency)
        return self.balance

    def apply_monthly_update(self) -> Decimal:
        """
        Apply one month of accrual and return the signed balance change.

        Debit accounts are unchanged. Savings balances grow by
        balance * rate / 100. Credit balances below zero drop by
        |balance| * rate / 100; this penalty may take the balance past the
        credit limit.
        """
        before = self.balance
        terms = self.terms

        if isinstance(terms, SavingsTerms):
            self.balance = before + before * (terms.interest_rate / Decimal('100'))
        elif isinstance(terms, CreditTerms) and before.is_negative():
            self.balance = before - abs(before) * (terms.interest_rate / Decimal('100'))
        else:
            return Decimal('0')

        return (self.balance - before).amount

    # -- history ------------------------------------------------------------

    def record_transaction(self, kind: Union[str, TransactionKind], amount: Number,
                           description: str) -> Transaction:
        """Append a transaction stamped with this account's ids and the current time"""
        transaction = Transaction(
            customer_id=self.customer_id,
            account_id=self.account_id,
            kind=kind,
            amount=to_decimal(amount),
            description=description
        )
        self._transactions.append(transaction)
        return transaction

    def restore_transactions(self, transactions: Iterable[Transaction]) -> None:
        """Attach previously persisted transactions, keeping their timestamps"""
        for transaction in transactions:
            if transaction.account_id != self.account_id:
                raise ValueError(
                    f"Transaction for {transaction.account_id} cannot be attached to {self.account_id}"
                )
            self._transactions.append(transaction)

    def __str__(self) -> str:
        text = (
            f"Account{{type={self.account_type.value}, accountId='{self.account_id}', "
            f"customerId='{self.customer_id}', iban='{self.iban}', holder='{self.account_holder}', "
            f"balance={self.balance.to_string()}, created={self.creation_date.isoformat()}}}"
        )
        if self.interest_rate is not None:
            text += f" | interestRate={self.interest_rate}%"
        if self.credit_limit is not None:
            text += f" | creditLimit={self.credit_limit}"
        return text


class AccountManager:
    """
    Opens accounts and keeps the id and IBAN indexes used to resolve them
    """

    def __init__(self, id_generator: IdGenerator, config: Optional[LedgerConfig] = None):
        self.id_generator = id_generator
        self.config = config or get_config()
        self._accounts: Dict[str, Account] = {}
        self._by_iban: Dict[str, str] = {}
        self.logger = get_logger("retail_ledger.accounts")

    def _open(self, customer: Customer, currency: Union[str, Currency], terms: AccountTerms,
              balance: Number, iban: Optional[str]) -> Account:
        account = Account(
            account_id=self.id_generator.next_account_id(),
            customer_id=customer.customer_id,
            currency=currency,
            terms=terms,
            balance=balance,
            iban=iban,
            country=customer.country,
            account_holder=customer.full_name,
            bank_code=self.config.bank_code
        )
        self.add(account)
        self.logger.info(
            f"Opened {account.account_type.name.lower()} account {account.account_id} "
            f"({account.currency.code}) for customer {customer.customer_id}"
        )
        return account

    def open_debit_account(self, customer: Customer, currency: Union[str, Currency, None] = None,
                           balance: Number = Decimal('0'), iban: Optional[str] = None) -> Account:
        return self._open(customer, currency or self.config.default_currency, DebitTerms(), balance, iban)

    def open_savings_account(self, customer: Customer, currency: Union[str, Currency, None] = None,
                             balance: Number = Decimal('0'), interest_rate: Optional[Number] = None,
                             iban: Optional[str] = None) -> Account:
        if interest_rate is None:
            interest_rate = self.config.savings_interest_rate
        terms = SavingsTerms(interest_rate=to_decimal(interest_rate))
        return self._open(customer, currency or self.config.default_currency, terms, balance, iban)

    def open_credit_account(self, customer: Customer, currency: Union[str, Currency, None] = None,
                            balance: Number = Decimal('0'), interest_rate: Optional[Number] = None,
                            credit_limit: Optional[Number] = None,
                            iban: Optional[str] = None) -> Account:
        if interest_rate is None:
            interest_rate = self.config.credit_interest_rate
        if credit_limit is None:
            credit_limit = self.config.credit_limit
        terms = CreditTerms(interest_rate=to_decimal(interest_rate), credit_limit=to_decimal(credit_limit))
        return self._open(customer, currency or self.config.default_currency, terms, balance, iban)

    def ensure_debit_account(self, customer: Customer) -> Account:
        """Return the customer's first debit account, opening a zero-balance one when none exists"""
        debits = self.get_customer_accounts(customer.customer_id, AccountType.DEBIT)
        if debits:
            return debits[0]
        return self.open_debit_account(customer)

    def add(self, account: Account) -> Account:
        """Index an account built elsewhere"""
        if account.account_id in self._accounts:
            raise ConstructionValidationError(f"Account {account.account_id} already exists")
        if account.iban in self._by_iban:
            raise ConstructionValidationError(f"IBAN {account.iban} already in use")
        self._accounts[account.account_id] = account
        self._by_iban[account.iban] = account.account_id
        return account

    def load(self, accounts: Iterable[Account]) -> None:
        """Replace the index with loaded accounts and continue id numbering"""
        self._accounts = {}
        self._by_iban = {}
        for account in accounts:
            self.add(account)
        self.id_generator.reseed_accounts(self._accounts.keys())

    def get_account(self, account_id: str) -> Account:
        """
        Resolve an account id

        Raises:
            MissingAccountError: If no such account exists
        """
        account = self._accounts.get(account_id)
        if account is None:
            raise MissingAccountError(f"Account {account_id} not found")
        return account

    def find_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def get_account_by_iban(self, iban: str) -> Optional[Account]:
        account_id = self._by_iban.get((iban or "").strip())
        if account_id is None:
            return None
        return self._accounts.get(account_id)

    def get_customer_accounts(self, customer_id: str,
                              account_type: Optional[AccountType] = None) -> List[Account]:
        """Accounts owned by a customer, in opening order"""
        return [
            account for account in self._accounts.values()
            if account.customer_id == customer_id
            and (account_type is None or account.account_type == account_type)
        ]

    def find_debit_account(self, customer_id: str, currency: Union[str, Currency]) -> Optional[Account]:
        """The customer's debit account in the given currency, if any"""
        target = Currency.from_code(currency)
        for account in self.get_customer_accounts(customer_id, AccountType.DEBIT):
            if account.currency == target:
                return account
        return None

    def all(self) -> List[Account]:
        return list(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

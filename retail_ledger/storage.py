"""
File Storage Module

Persists customers, accounts and transactions as pipe-delimited text files,
one record per line after a '#' header. Loading is lenient: a malformed or
invalid line is logged and skipped, never raised into the ledger core.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .accounts import Account, AccountTerms, AccountType, CreditTerms, DebitTerms, SavingsTerms
from .config import LedgerConfig, get_config
from .currency import to_decimal
from .customers import Customer, MINIMUM_AGE
from .logging_config import get_logger
from .transactions import Transaction


CUSTOMER_HEADER = (
    "# customerId|firstName|lastName|age|gender|email|phone|cnp|"
    "addressLine1|addressLine2|city|postalCode|country"
)
ACCOUNT_HEADER = "# type|accountId|customerId|iban|balance|currency|creationDate|interestRate|creditLimit"
TRANSACTION_HEADER = "# customerId|accountId|timestamp|type|amount|description"

CUSTOMER_FIELDS = 13
ACCOUNT_FIELDS = 9
TRANSACTION_FIELDS = 6
EMPTY = "-"
SEPARATOR = "|"


def _clean(value: Optional[str]) -> str:
    """Make a value safe to embed in a pipe-delimited line"""
    return (value or "").replace(SEPARATOR, "/").replace("\n", " ").replace("\r", " ")


class LedgerFileStore:
    """
    Reads and writes the ledger's text files inside one data directory
    """

    def __init__(self, data_dir: Union[str, Path, None] = None, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        self.data_dir = Path(data_dir if data_dir is not None else self.config.data_dir)
        self.customers_path = self.data_dir / self.config.customers_file
        self.accounts_path = self.data_dir / self.config.accounts_file
        self.transactions_path = self.data_dir / self.config.transactions_file
        self.logger = get_logger("retail_ledger.storage")

    def _write_lines(self, path: Path, header: str, lines: Iterable[str]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(header + "\n")
            for line in lines:
                handle.write(line + "\n")

    def _read_records(self, path: Path) -> List[Tuple[int, List[str]]]:
        """Split non-blank, non-comment lines into fields; empty list when the file is missing"""
        if not path.exists():
            self.logger.info(f"No {path.name} found, starting fresh")
            return []
        records = []
        with open(path, "r", encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                line = line.rstrip("\r\n")
                if not line.strip() or line.startswith("#"):
                    continue
                records.append((number, line.split(SEPARATOR)))
        return records

    def _skip(self, path: Path, number: int, reason: str) -> None:
        self.logger.warning(f"Skipping {path.name} line {number}: {reason}")

    # -- customers ------------------------------------------------------------

    def save_customers(self, customers: Iterable[Customer]) -> None:
        lines = (
            SEPARATOR.join([
                c.customer_id, _clean(c.first_name), _clean(c.last_name), str(c.age),
                _clean(c.gender), _clean(c.email), _clean(c.phone), c.cnp,
                _clean(c.address_line1), _clean(c.address_line2), _clean(c.city),
                _clean(c.postal_code), c.country
            ])
            for c in customers
        )
        self._write_lines(self.customers_path, CUSTOMER_HEADER, lines)

    def load_customers(self) -> List[Customer]:
        customers = []
        for number, parts in self._read_records(self.customers_path):
            if len(parts) != CUSTOMER_FIELDS:
                self._skip(self.customers_path, number, f"expected {CUSTOMER_FIELDS} fields, got {len(parts)}")
                continue
            parts = [part.strip() for part in parts]
            try:
                age = int(parts[3])
            except ValueError:
                self.logger.warning(f"Invalid age for customerId={parts[0]}, defaulting to {MINIMUM_AGE}")
                age = MINIMUM_AGE
            try:
                customers.append(Customer(
                    customer_id=parts[0],
                    first_name=parts[1],
                    last_name=parts[2],
                    age=age,
                    gender=parts[4],
                    email=parts[5],
                    phone=parts[6],
                    cnp=parts[7],
                    address_line1=parts[8],
                    address_line2=parts[9] or None,
                    city=parts[10],
                    postal_code=parts[11],
                    country=parts[12]
                ))
            except ValueError as e:
                self._skip(self.customers_path, number, str(e))
        self.logger.info(f"Customers loaded: {len(customers)}")
        return customers

    # -- accounts -------------------------------------------------------------

    def save_accounts(self, accounts: Iterable[Account]) -> None:
        def line(account: Account) -> str:
            rate = account.interest_rate
            limit = account.credit_limit
            return SEPARATOR.join([
                account.account_type.value,
                account.account_id,
                account.customer_id,
                account.iban,
                str(account.balance.amount),
                account.currency.code,
                account.creation_date.isoformat(),
                str(rate) if rate is not None else EMPTY,
                str(limit) if limit is not None else EMPTY,
            ])

        self._write_lines(self.accounts_path, ACCOUNT_HEADER, (line(a) for a in accounts))

    def _terms_from_fields(self, account_type: AccountType, rate: str, limit: str) -> AccountTerms:
        interest = to_decimal(rate) if rate != EMPTY else Decimal('0')
        if account_type == AccountType.SAVINGS:
            return SavingsTerms(interest_rate=interest)
        if account_type == AccountType.CREDIT:
            credit_limit = to_decimal(limit) if limit != EMPTY else to_decimal(self.config.loaded_credit_limit)
            return CreditTerms(interest_rate=interest, credit_limit=credit_limit)
        return DebitTerms()

    def load_accounts(self, customers: Iterable[Customer]) -> List[Account]:
        """Load accounts, skipping rows whose owner is not among customers"""
        owners: Dict[str, Customer] = {c.customer_id: c for c in customers}
        accounts = []
        seen_ids: Set[str] = set()
        seen_ibans: Set[str] = set()
        for number, parts in self._read_records(self.accounts_path):
            if len(parts) != ACCOUNT_FIELDS:
                self._skip(self.accounts_path, number, f"expected {ACCOUNT_FIELDS} fields, got {len(parts)}")
                continue
            parts = [part.strip() for part in parts]
            owner = owners.get(parts[2])
            if owner is None:
                self._skip(self.accounts_path, number, f"missing customer {parts[2]}")
                continue
            if parts[1] in seen_ids or parts[3] in seen_ibans:
                self._skip(self.accounts_path, number, f"duplicate account {parts[1]} / {parts[3]}")
                continue
            try:
                account_type = AccountType.from_tag(parts[0])
                accounts.append(Account(
                    account_id=parts[1],
                    customer_id=owner.customer_id,
                    currency=parts[5],
                    terms=self._terms_from_fields(account_type, parts[7], parts[8]),
                    balance=to_decimal(parts[4]),
                    iban=parts[3],
                    country=owner.country,
                    account_holder=owner.full_name,
                    creation_date=date.fromisoformat(parts[6]),
                    bank_code=self.config.bank_code,
                    restored=True
                ))
            except ValueError as e:
                self._skip(self.accounts_path, number, str(e))
                continue
            seen_ids.add(parts[1])
            seen_ibans.add(parts[3])
        self.logger.info(f"Accounts loaded: {len(accounts)}")
        return accounts

    # -- transactions ---------------------------------------------------------

    def save_transactions(self, accounts: Iterable[Account]) -> None:
        """Write every account's history as one file ordered by timestamp"""
        history = [t for account in accounts for t in account.transactions]
        history.sort(key=lambda t: t.timestamp)
        lines = (
            SEPARATOR.join([
                t.customer_id, t.account_id, t.timestamp.isoformat(), _clean(t.kind),
                str(t.amount), _clean(t.description)
            ])
            for t in history
        )
        self._write_lines(self.transactions_path, TRANSACTION_HEADER, lines)

    def load_transactions(self, accounts: Iterable[Account]) -> int:
        """
        Attach stored transactions to their accounts.

        Returns:
            Number of transactions attached; records for unknown accounts are skipped
        """
        by_id = {account.account_id: account for account in accounts}
        attached = 0
        for number, parts in self._read_records(self.transactions_path):
            if len(parts) != TRANSACTION_FIELDS:
                self._skip(self.transactions_path, number, f"expected {TRANSACTION_FIELDS} fields, got {len(parts)}")
                continue
            account = by_id.get(parts[1])
            if account is None:
                self._skip(self.transactions_path, number, f"unknown account {parts[1]}")
                continue
            try:
                transaction = Transaction(
                    customer_id=parts[0],
                    account_id=parts[1],
                    timestamp=datetime.fromisoformat(parts[2]),
                    kind=parts[3],
                    amount=to_decimal(parts[4]),
                    description=parts[5]
                )
            except ValueError as e:
                self._skip(self.transactions_path, number, str(e))
                continue
            account.restore_transactions([transaction])
            attached += 1
        self.logger.info(f"Transactions loaded: {attached}")
        return attached

    # -- whole ledger ---------------------------------------------------------

    def load_all(self) -> Tuple[List[Customer], List[Account]]:
        customers = self.load_customers()
        accounts = self.load_accounts(customers)
        self.load_transactions(accounts)
        return customers, accounts

    def save_all(self, customers: Iterable[Customer], accounts: Iterable[Account]) -> None:
        accounts = list(accounts)
        self.save_customers(customers)
        self.save_accounts(accounts)
        self.save_transactions(accounts)

"""
Bank Facade Module

Wires the ledger components together for a host application: one
IdGenerator, the customer and account indexes, the ledger operations and an
optional file store. Operations take ids (or an IBAN for external transfers)
and resolve them through the indexes on every call.
"""

from decimal import Decimal
from typing import List, Optional, Tuple, Union

from .accounts import Account, AccountManager, AccountType
from .config import LedgerConfig, get_config
from .currency import Currency, CurrencyConverter, Number
from .customers import Customer, CustomerManager
from .errors import MissingAccountError
from .identifiers import IdGenerator
from .ledger import LedgerOperations
from .logging_config import get_logger
from .storage import LedgerFileStore
from .transactions import Transaction


class Bank:
    """
    In-memory bank: customers, accounts and the operations on them
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        store: Optional[LedgerFileStore] = None,
        converter: Optional[CurrencyConverter] = None,
        id_generator: Optional[IdGenerator] = None
    ):
        self.config = config or get_config()
        self.store = store
        self.id_generator = id_generator or IdGenerator()
        self.customers = CustomerManager(self.id_generator)
        self.accounts = AccountManager(self.id_generator, self.config)
        self.ledger = LedgerOperations(converter)
        self.logger = get_logger("retail_ledger.bank")

    # -- persistence ------------------------------------------------------------

    def load(self) -> None:
        """Replace in-memory state with the store's contents and resync id counters"""
        if self.store is None:
            raise RuntimeError("Bank has no file store configured")
        customers, accounts = self.store.load_all()
        self.customers.load(customers)
        self.accounts.load(accounts)
        self.logger.info(
            f"Loaded {len(self.customers)} customers and {len(self.accounts)} accounts; "
            f"next ids {self.id_generator.customer_counter}/{self.id_generator.account_counter}"
        )

    def save(self) -> None:
        if self.store is None:
            raise RuntimeError("Bank has no file store configured")
        self.store.save_all(self.customers.all(), self.accounts.all())

    # -- customers and accounts ---------------------------------------------------

    def register_customer(self, **fields) -> Customer:
        """Register a customer; see CustomerManager.register for the fields"""
        return self.customers.register(**fields)

    def open_account(
        self,
        customer_id: str,
        account_type: Union[AccountType, str],
        currency: Union[str, Currency, None] = None,
        balance: Number = Decimal('0'),
        interest_rate: Optional[Number] = None,
        credit_limit: Optional[Number] = None,
        iban: Optional[str] = None
    ) -> Account:
        """
        Open an account of the given type for an existing customer.

        Raises:
            MissingCustomerError: If the customer does not exist
            ConstructionValidationError: If the account fields are invalid
        """
        customer = self.customers.get_customer(customer_id)
        if not isinstance(account_type, AccountType):
            account_type = AccountType.from_tag(account_type)

        if account_type == AccountType.SAVINGS:
            return self.accounts.open_savings_account(
                customer, currency, balance, interest_rate=interest_rate, iban=iban
            )
        if account_type == AccountType.CREDIT:
            return self.accounts.open_credit_account(
                customer, currency, balance, interest_rate=interest_rate,
                credit_limit=credit_limit, iban=iban
            )
        return self.accounts.open_debit_account(customer, currency, balance, iban=iban)

    def ensure_debit_account(self, customer_id: str) -> Account:
        """The customer's first debit account, auto-provisioned when missing"""
        return self.accounts.ensure_debit_account(self.customers.get_customer(customer_id))

    def customer_accounts(self, customer_id: str,
                          account_type: Optional[AccountType] = None) -> List[Account]:
        self.customers.get_customer(customer_id)
        return self.accounts.get_customer_accounts(customer_id, account_type)

    def account_holder(self, account_id: str) -> Customer:
        """Resolve the owner of an account through the customer index"""
        account = self.accounts.get_account(account_id)
        return self.customers.get_customer(account.customer_id)

    # -- operations by id -----------------------------------------------------------

    def deposit(self, account_id: str, amount: Number,
                description: Optional[str] = None) -> Transaction:
        return self.ledger.deposit(self.accounts.get_account(account_id), amount, description)

    def withdraw(self, account_id: str, amount: Number,
                 description: Optional[str] = None) -> Transaction:
        return self.ledger.withdraw(self.accounts.get_account(account_id), amount, description)

    def transfer_internal(self, from_account_id: str, to_account_id: str, amount: Number,
                          description: Optional[str] = None) -> Tuple[Transaction, Transaction]:
        return self.ledger.transfer_internal(
            self.accounts.get_account(from_account_id),
            self.accounts.get_account(to_account_id),
            amount, description
        )

    def transfer_to_iban(self, from_account_id: str, iban: str, amount: Number,
                         description: Optional[str] = None) -> Tuple[Transaction, Transaction]:
        """
        External transfer addressed by the receiver's IBAN.

        Raises:
            MissingAccountError: If the sender or the IBAN is unknown
        """
        sender = self.accounts.find_account(from_account_id)
        receiver = self.accounts.get_account_by_iban(iban)
        if sender is None:
            raise MissingAccountError(f"Account {from_account_id} not found")
        if receiver is None:
            raise MissingAccountError(f"No account with IBAN {iban}")
        return self.ledger.transfer_external(sender, receiver, amount, description)

    def fund_savings(self, savings_account_id: str, amount: Number) -> Tuple[Transaction, Transaction]:
        """Fund a savings account from the owner's debit account in the same currency"""
        savings = self.accounts.get_account(savings_account_id)
        debit = self._matching_debit(savings)
        return self.ledger.fund_savings(debit, savings, amount)

    def withdraw_savings(self, savings_account_id: str, amount: Number) -> Tuple[Transaction, Transaction]:
        """Withdraw from a savings account into the owner's debit account in the same currency"""
        savings = self.accounts.get_account(savings_account_id)
        debit = self._matching_debit(savings)
        return self.ledger.withdraw_savings(savings, debit, amount)

    def take_credit(self, credit_account_id: str, amount: Number) -> Tuple[Transaction, Transaction]:
        credit = self.accounts.get_account(credit_account_id)
        return self.ledger.take_credit(credit, self._matching_debit(credit), amount)

    def repay_credit(self, credit_account_id: str, amount: Number) -> Tuple[Transaction, Transaction]:
        credit = self.accounts.get_account(credit_account_id)
        return self.ledger.repay_credit(self._matching_debit(credit), credit, amount)

    def run_monthly_processing(self, customer_id: Optional[str] = None) -> List[Transaction]:
        """Accrue one month on every account, or only on one customer's accounts"""
        if customer_id is None:
            accounts = self.accounts.all()
        else:
            accounts = self.customer_accounts(customer_id)
        return self.ledger.apply_monthly_processing(accounts)

    def _matching_debit(self, account: Account) -> Account:
        debit = self.accounts.find_debit_account(account.customer_id, account.currency)
        if debit is None:
            raise MissingAccountError(f"No Debit account found in {account.currency.code}")
        return debit

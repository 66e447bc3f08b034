"""
Test suite for accounts module

Tests construction invariants, variant-specific withdrawal limits, monthly
accrual, transaction history and the account index.
"""

import re
import pytest
from decimal import Decimal

from retail_ledger.accounts import (
    Account, AccountManager, AccountType, CreditTerms, DebitTerms, SavingsTerms, generate_iban
)
from retail_ledger.config import LedgerConfig
from retail_ledger.currency import Currency, Money
from retail_ledger.customers import Customer
from retail_ledger.errors import (
    ConstructionValidationError, CreditLimitExceededError, InsufficientFundsError,
    InvalidAmountError, InvalidCurrencyError, MissingAccountError
)
from retail_ledger.identifiers import IdGenerator
from retail_ledger.transactions import TransactionKind


def make_account(terms=None, balance="0", currency="RON", account_id="A001", **kwargs):
    return Account(
        account_id=account_id,
        customer_id=kwargs.pop("customer_id", "C001"),
        currency=currency,
        terms=terms or DebitTerms(),
        balance=Decimal(balance),
        **kwargs
    )


def make_customer(customer_id="C001", phone="0712345678", cnp="2900101123456"):
    return Customer(
        customer_id=customer_id,
        first_name="Ana",
        last_name="Popescu",
        age=30,
        gender="F",
        email="ana@example.com",
        phone=phone,
        cnp=cnp,
        address_line1="Str. Lalelelor 1",
        city="Bucuresti",
        postal_code="010101",
        country="RO"
    )


class TestAccountConstruction:
    """Test construction-time invariants"""

    def test_account_types(self):
        assert make_account(DebitTerms()).account_type == AccountType.DEBIT
        assert make_account(SavingsTerms(Decimal('2'))).account_type == AccountType.SAVINGS
        assert make_account(CreditTerms(Decimal('5'), Decimal('-5000'))).account_type == AccountType.CREDIT

    def test_variant_fields_only_on_their_variant(self):
        debit = make_account(DebitTerms())
        savings = make_account(SavingsTerms(Decimal('2.5')))
        credit = make_account(CreditTerms(Decimal('5'), Decimal('-5000')))

        assert debit.interest_rate is None and debit.credit_limit is None
        assert savings.interest_rate == Decimal('2.5') and savings.credit_limit is None
        assert credit.interest_rate == Decimal('5') and credit.credit_limit == Decimal('-5000')

    def test_negative_balance_only_for_credit(self):
        with pytest.raises(ConstructionValidationError, match="only for Credit"):
            make_account(DebitTerms(), balance="-1")

        with pytest.raises(ConstructionValidationError, match="only for Credit"):
            make_account(SavingsTerms(Decimal('1')), balance="-1")

        credit = make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="-100")
        assert credit.balance.amount == Decimal('-100')

    def test_credit_limit_must_be_negative(self):
        with pytest.raises(ConstructionValidationError, match="Credit limit must be negative"):
            CreditTerms(Decimal('5'), Decimal('0'))

    def test_credit_initial_balance_within_limit(self):
        with pytest.raises(ConstructionValidationError, match="exceeds credit limit"):
            make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="-5000.01")

    def test_interest_rate_not_negative(self):
        with pytest.raises(ConstructionValidationError, match="Interest rate"):
            SavingsTerms(Decimal('-0.5'))

        with pytest.raises(ConstructionValidationError, match="Interest rate"):
            CreditTerms(Decimal('-1'), Decimal('-100'))

    def test_currency_validation(self):
        with pytest.raises(ConstructionValidationError, match="Currency cannot be blank"):
            make_account(currency="  ")

        with pytest.raises(InvalidCurrencyError):
            make_account(currency="GBP")

        assert make_account(currency=" eur ").currency == Currency.EUR

    def test_blank_account_id(self):
        with pytest.raises(ConstructionValidationError, match="Account ID"):
            make_account(account_id=" ")

    def test_generated_iban_layout(self):
        account = make_account(account_id="A001", country="ro")

        assert re.match(r"^RO\d{2}SMTB\d{4}A001\d{2}$", account.iban)
        assert account.bank_key == account.iban[4:12]
        assert account.bank_key.startswith("SMTB")
        assert account.bank_account == account.iban[12:]
        assert account.bank_account.startswith("A001")

    def test_generate_iban_uses_bank_code(self):
        iban = generate_iban("A042", "de", bank_code="ABCD")
        assert re.match(r"^DE\d{2}ABCD\d{4}A042\d{2}$", iban)

    def test_supplied_iban_is_sliced(self):
        account = make_account(iban=" RO49AAAA1B31007593840000 ")

        assert account.iban == "RO49AAAA1B31007593840000"
        assert account.bank_key == "AAAA1B31"
        assert account.bank_account == "007593840000"

    def test_short_iban_rejected(self):
        with pytest.raises(ConstructionValidationError, match="IBAN too short"):
            make_account(iban="RO49AAAA")

    def test_identity_fields_are_immutable(self):
        account = make_account()

        with pytest.raises(AttributeError):
            account.account_id = "A999"
        with pytest.raises(AttributeError):
            account.customer_id = "C999"
        with pytest.raises(AttributeError):
            account.iban = "RO00XXXX0000A00000"

    def test_balance_rounded_to_minor_unit(self):
        account = make_account(balance="10.005")
        assert account.balance == Money(Decimal('10.01'), Currency.RON)

    def test_defaults_zero_balance_and_country(self):
        account = Account("A009", "C001", "EUR", DebitTerms(), country=None)

        assert account.balance == Money.zero(Currency.EUR)
        assert account.country == "RO"
        assert account.iban.startswith("RO")


class TestBalanceOperations:
    """Test deposit and withdraw rules per variant"""

    def test_deposit_then_withdraw_restores_balance(self):
        for terms in (DebitTerms(), SavingsTerms(Decimal('2'))):
            account = make_account(terms, balance="250.40")
            account.deposit(Decimal('99.99'))
            account.withdraw(Decimal('99.99'))
            assert account.balance.amount == Decimal('250.40')

    def test_deposit_must_be_positive(self):
        account = make_account(balance="10")
        for amount in (Decimal('0'), Decimal('-5'), Decimal('0.001')):
            with pytest.raises(InvalidAmountError, match="must be positive"):
                account.deposit(amount)
        assert account.balance.amount == Decimal('10')

    def test_withdraw_must_be_positive(self):
        account = make_account(balance="10")
        with pytest.raises(InvalidAmountError):
            account.withdraw(Decimal('0'))

    def test_debit_insufficient_funds(self):
        account = make_account(balance="100")
        with pytest.raises(InsufficientFundsError, match="Insufficient funds"):
            account.withdraw(Decimal('100.01'))
        assert account.balance.amount == Decimal('100')

        account.withdraw(Decimal('100'))
        assert account.balance.is_zero()

    def test_savings_insufficient_funds(self):
        account = make_account(SavingsTerms(Decimal('2')), balance="50")
        with pytest.raises(InsufficientFundsError):
            account.withdraw(Decimal('60'))

    def test_credit_limit_exceeded(self):
        account = make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="-4900")

        with pytest.raises(CreditLimitExceededError, match="credit limit"):
            account.withdraw(Decimal('200'))
        assert account.balance.amount == Decimal('-4900')

        account.withdraw(Decimal('100'))
        assert account.balance.amount == Decimal('-5000')

    def test_credit_can_go_negative(self):
        account = make_account(CreditTerms(Decimal('5'), Decimal('-5000')))
        account.withdraw(Decimal('1200'))
        assert account.balance.amount == Decimal('-1200')
        assert account.available_to_withdraw.amount == Decimal('3800')

    def test_check_withdrawal_does_not_mutate(self):
        account = make_account(balance="100")
        assert account.check_withdrawal(Decimal('40')) == Decimal('40.00')
        assert account.balance.amount == Decimal('100')

    def test_primitives_record_nothing(self):
        account = make_account(balance="100")
        account.deposit(Decimal('1'))
        account.withdraw(Decimal('1'))
        assert account.transactions == ()


class TestMonthlyUpdate:
    """Test accrual formulas"""

    def test_debit_unchanged(self):
        account = make_account(balance="1000")
        assert account.apply_monthly_update() == Decimal('0')
        assert account.balance.amount == Decimal('1000')

    def test_savings_interest(self):
        account = make_account(SavingsTerms(Decimal('2.0')), balance="500")
        delta = account.apply_monthly_update()

        assert account.balance == Money(Decimal('510.00'), Currency.RON)
        assert delta == Decimal('10.00')

    def test_savings_formula(self):
        account = make_account(SavingsTerms(Decimal('1.5')), balance="2000")
        account.apply_monthly_update()
        assert account.balance.amount == Decimal('2000') * (1 + Decimal('1.5') / 100)

    def test_credit_debt_grows(self):
        account = make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="-1000")
        delta = account.apply_monthly_update()

        assert account.balance.amount == Decimal('-1050')
        assert delta == Decimal('-50')

    def test_credit_without_debt_unchanged(self):
        account = make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="300")
        assert account.apply_monthly_update() == Decimal('0')
        assert account.balance.amount == Decimal('300')

    def test_credit_interest_can_pass_limit(self):
        account = make_account(CreditTerms(Decimal('5'), Decimal('-5000')), balance="-4900")
        delta = account.apply_monthly_update()

        assert account.balance.amount == Decimal('-5145.00')
        assert delta == Decimal('-245.00')

        with pytest.raises(CreditLimitExceededError):
            account.withdraw(Decimal('0.01'))

    def test_restored_account_may_sit_below_limit(self):
        terms = CreditTerms(Decimal('5'), Decimal('-5000'))

        with pytest.raises(ConstructionValidationError, match="exceeds credit limit"):
            make_account(terms, balance="-5145")

        account = make_account(terms, balance="-5145", restored=True)
        assert account.balance.amount == Decimal('-5145')
        assert account.available_to_withdraw.amount == Decimal('-145')


class TestTransactionHistory:
    """Test recording and read-only history"""

    def test_record_transaction(self):
        account = make_account(account_id="A007", customer_id="C003", balance="10")
        transaction = account.record_transaction(TransactionKind.DEPOSIT, Decimal('10'), "Cash")

        assert transaction.account_id == "A007"
        assert transaction.customer_id == "C003"
        assert transaction.kind == "DEPOSIT"
        assert transaction.amount == Decimal('10')
        assert account.transactions == (transaction,)

    def test_free_form_kind(self):
        account = make_account()
        transaction = account.record_transaction("BONUS", Decimal('1'), "Loyalty")
        assert transaction.kind == "BONUS"

    def test_history_is_read_only(self):
        account = make_account()
        account.record_transaction(TransactionKind.DEPOSIT, Decimal('1'), "a")
        history = account.transactions

        assert isinstance(history, tuple)
        account.record_transaction(TransactionKind.DEPOSIT, Decimal('2'), "b")
        assert len(history) == 1
        assert len(account.transactions) == 2

    def test_restore_rejects_foreign_transactions(self):
        source = make_account(account_id="A001")
        other = make_account(account_id="A002")
        transaction = source.record_transaction(TransactionKind.DEPOSIT, Decimal('1'), "a")

        with pytest.raises(ValueError, match="cannot be attached"):
            other.restore_transactions([transaction])


class TestAccountManager:
    """Test opening accounts and the account index"""

    def setup_method(self):
        self.ids = IdGenerator()
        self.config = LedgerConfig(
            default_currency="RON", savings_interest_rate=2.0,
            credit_interest_rate=5.0, credit_limit=-5000.0, bank_code="SMTB"
        )
        self.manager = AccountManager(self.ids, self.config)
        self.customer = make_customer()

    def test_open_debit_account(self):
        account = self.manager.open_debit_account(self.customer, "EUR", Decimal('50'))

        assert account.account_id == "A001"
        assert account.customer_id == "C001"
        assert account.account_holder == "Ana Popescu"
        assert account.currency == Currency.EUR
        assert account.iban.startswith("RO")
        assert self.manager.get_account("A001") is account
        assert self.manager.get_account_by_iban(account.iban) is account

    def test_product_defaults(self):
        savings = self.manager.open_savings_account(self.customer)
        credit = self.manager.open_credit_account(self.customer)

        assert savings.currency == Currency.RON
        assert savings.interest_rate == Decimal('2.0')
        assert credit.interest_rate == Decimal('5.0')
        assert credit.credit_limit == Decimal('-5000.0')

    def test_customer_accounts_by_type(self):
        debit = self.manager.open_debit_account(self.customer)
        savings = self.manager.open_savings_account(self.customer)
        other = make_customer("C002", phone="0799999999", cnp="1850505123456")
        self.manager.open_debit_account(other)

        assert self.manager.get_customer_accounts("C001") == [debit, savings]
        assert self.manager.get_customer_accounts("C001", AccountType.SAVINGS) == [savings]

    def test_find_debit_account_by_currency(self):
        ron = self.manager.open_debit_account(self.customer, "RON")
        eur = self.manager.open_debit_account(self.customer, "EUR")

        assert self.manager.find_debit_account("C001", "eur") is eur
        assert self.manager.find_debit_account("C001", Currency.RON) is ron
        assert self.manager.find_debit_account("C001", "USD") is None

    def test_ensure_debit_account_provisions_once(self):
        first = self.manager.ensure_debit_account(self.customer)
        second = self.manager.ensure_debit_account(self.customer)

        assert first is second
        assert first.is_debit
        assert first.currency == Currency.RON
        assert first.balance.is_zero()
        assert len(self.manager) == 1

    def test_missing_account(self):
        with pytest.raises(MissingAccountError, match="A404"):
            self.manager.get_account("A404")
        assert self.manager.get_account_by_iban("RO00NOPE") is None

    def test_load_reseeds_account_ids(self):
        loaded = [
            make_account(account_id="A003", iban="RO11SMTB1111A00311"),
            make_account(account_id="A017", iban="RO22SMTB2222A01722"),
        ]
        self.manager.load(loaded)

        assert self.manager.open_debit_account(self.customer).account_id == "A018"

    def test_add_rejects_duplicates(self):
        self.manager.add(make_account(account_id="A001", iban="RO11SMTB1111A00111"))

        with pytest.raises(ConstructionValidationError, match="already exists"):
            self.manager.add(make_account(account_id="A001", iban="RO11SMTB1111A00199"))

        with pytest.raises(ConstructionValidationError, match="already in use"):
            self.manager.add(make_account(account_id="A002", iban="RO11SMTB1111A00111"))

"""
Multi-Currency Support Module

Supported currency codes, the static exchange-rate table and Decimal helpers
for monetary values. Amounts are never handled as float internally.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union
from enum import Enum

from .errors import InvalidAmountError, InvalidCurrencyError, UnsupportedConversionError

# Set global decimal context for financial precision
getcontext().prec = 28

Number = Union[Decimal, int, float, str]


class Currency(Enum):
    """Supported ISO 4217 currency codes with minor-unit precision"""
    RON = ("RON", 2)  # Romanian Leu
    EUR = ("EUR", 2)  # Euro
    USD = ("USD", 2)  # US Dollar

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @classmethod
    def from_code(cls, code: Union[str, "Currency"]) -> "Currency":
        """
        Resolve a currency code, ignoring case and surrounding whitespace.

        Raises:
            InvalidCurrencyError: If the code is blank or not supported
        """
        if isinstance(code, Currency):
            return code
        if not code or not str(code).strip():
            raise InvalidCurrencyError("Currency cannot be blank.")
        normalized = str(code).strip().upper()
        try:
            return cls[normalized]
        except KeyError:
            raise InvalidCurrencyError(
                f"Currency must be one of: {', '.join(sorted(supported_codes()))}"
            ) from None


def supported_codes() -> FrozenSet[str]:
    """Codes of all supported currencies"""
    return frozenset(currency.code for currency in Currency)


def to_decimal(value: Number) -> Decimal:
    """
    Convert a numeric value to Decimal via its string form

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f"Not a monetary amount: {value!r}") from None
    if not result.is_finite():
        raise InvalidAmountError(f"Not a monetary amount: {value!r}")
    return result


def round_to_currency(value: Decimal, currency: Currency) -> Decimal:
    """Round half-up to the currency's minor unit"""
    return value.quantize(
        Decimal('0.1') ** currency.precision,
        rounding=ROUND_HALF_UP
    )


@dataclass(frozen=True)
class Money:
    """
    Amount in one currency, always held at the currency's minor-unit precision.

    Arithmetic and ordering are only defined between amounts of the same
    currency; mixing currencies raises ValueError.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount))
        object.__setattr__(self, 'amount', round_to_currency(self.amount, self.currency))

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(Decimal('0'), currency)

    def _same_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._same_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._same_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor: Number) -> 'Money':
        """Scale by a plain number, e.g. an interest fraction"""
        return Money(self.amount * to_decimal(factor), self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount), self.currency)

    def __gt__(self, other: 'Money') -> bool:
        self._same_currency(other, "compare")
        return self.amount > other.amount

    def is_zero(self) -> bool:
        return self.amount == Decimal('0')

    def is_negative(self) -> bool:
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Display form, e.g. 'EUR 1,234.50'"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


@dataclass(frozen=True)
class ExchangeRate:
    """Directed exchange rate: one unit of from_currency buys `rate` to_currency"""
    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self):
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, 'rate', to_decimal(self.rate))
        if self.rate <= Decimal('0'):
            raise ValueError("Exchange rate must be positive")

    def inverse(self) -> 'ExchangeRate':
        """Reverse-direction rate, the exact Decimal reciprocal of this one"""
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal('1') / self.rate
        )


# Static mid-market table; reverse directions are derived as reciprocals.
STATIC_RATES: Tuple[Tuple[Currency, Currency, str], ...] = (
    (Currency.EUR, Currency.RON, "5.0"),
    (Currency.USD, Currency.RON, "4.7"),
    (Currency.EUR, Currency.USD, "1.07"),
)


class CurrencyConverter:
    """Converts amounts between supported currencies using a fixed rate table"""

    def __init__(self, rates: Optional[Iterable[ExchangeRate]] = None):
        self._rates: Dict[Tuple[Currency, Currency], ExchangeRate] = {}
        for rate in rates or ():
            self.set_rate(rate)

    @classmethod
    def with_static_rates(cls) -> 'CurrencyConverter':
        """Converter loaded with the built-in RON/EUR/USD table"""
        return cls(
            ExchangeRate(from_currency, to_currency, Decimal(rate))
            for from_currency, to_currency, rate in STATIC_RATES
        )

    def set_rate(self, rate: ExchangeRate) -> None:
        """Set exchange rate for a currency pair and its reciprocal"""
        self._rates[(rate.from_currency, rate.to_currency)] = rate
        reverse = rate.inverse()
        self._rates[(reverse.from_currency, reverse.to_currency)] = reverse

    def get_rate(self, from_currency: Currency, to_currency: Currency) -> Optional[ExchangeRate]:
        """Get exchange rate for currency pair, None when not configured"""
        if from_currency == to_currency:
            return ExchangeRate(from_currency, to_currency, Decimal('1'))
        return self._rates.get((from_currency, to_currency))

    def convert(self, amount: Number, from_currency: Union[str, Currency],
                to_currency: Union[str, Currency]) -> Decimal:
        """
        Convert an amount from one currency to another

        Args:
            amount: Non-negative amount in from_currency
            from_currency: Source currency (code or Currency)
            to_currency: Target currency (code or Currency)

        Returns:
            Unrounded Decimal amount in to_currency; the input unchanged when
            both currencies are the same

        Raises:
            InvalidAmountError: If amount is negative
            InvalidCurrencyError: If either currency is not supported
            UnsupportedConversionError: If no rate exists for the pair
        """
        value = to_decimal(amount)
        if value < Decimal('0'):
            raise InvalidAmountError("Amount to convert cannot be negative.")

        source = Currency.from_code(from_currency)
        target = Currency.from_code(to_currency)

        if source == target:
            return value

        rate = self._rates.get((source, target))
        if rate is None:
            raise UnsupportedConversionError(
                f"Unsupported currency conversion: {source.code} -> {target.code}"
            )
        return value * rate.rate

    def convert_money(self, money: Money, to_currency: Union[str, Currency]) -> Money:
        """Convert Money, rounding the result to the target currency"""
        target = Currency.from_code(to_currency)
        return Money(self.convert(money.amount, money.currency, target), target)

"""
Transaction Records Module

Immutable records of ledger events. Each ledger-affecting operation creates
exactly one record per touched account and appends it to that account's
history; records are never mutated or removed afterwards.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum


class TransactionKind(str, Enum):
    """Known transaction tags. The stored kind is a free-form string."""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER_SENT = "TRANSFER_SENT"
    TRANSFER_RECEIVED = "TRANSFER_RECEIVED"
    CREDIT_TAKEN = "CREDIT_TAKEN"
    CREDIT_INCOMING = "CREDIT_INCOMING"
    CREDIT_REPAY = "CREDIT_REPAY"
    INTEREST_APPLIED = "INTEREST_APPLIED"


@dataclass(frozen=True)
class Transaction:
    """
    One ledger event on one account.

    The amount is signed: positive for money flowing into the account,
    negative for money flowing out. It is expressed in the account's currency.
    """
    customer_id: str
    account_id: str
    kind: str
    amount: Decimal
    description: str
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if isinstance(self.kind, TransactionKind):
            object.__setattr__(self, 'kind', self.kind.value)
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.description is None:
            object.__setattr__(self, 'description', "")

    def __str__(self) -> str:
        return (
            f"[{self.timestamp.isoformat()}] {self.customer_id} | {self.kind} | "
            f"{self.amount:.2f} | {self.description}"
        )

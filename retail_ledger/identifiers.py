"""
Identifier Generation Module

Issues sequential, zero-padded identifiers for customers ("C001") and
accounts ("A001"). Counters live on an IdGenerator instance that is passed to
whatever creates entities, and are re-synchronised after a bulk load so that
numbering continues where the loaded data left off.
"""

import re
import threading
from typing import Iterable, Optional


CUSTOMER_PREFIX = "C"
ACCOUNT_PREFIX = "A"

_CUSTOMER_ID_PATTERN = re.compile(r"^C(\d+)$")
_ACCOUNT_ID_PATTERN = re.compile(r"^A(\d+)$")


def _max_sequence(ids: Iterable[Optional[str]], pattern: re.Pattern) -> int:
    """Largest numeric suffix among ids matching pattern, 0 when none match"""
    highest = 0
    for identifier in ids:
        if not identifier:
            continue
        match = pattern.match(identifier)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


class IdGenerator:
    """
    Thread-safe customer and account identifier sequences.

    Increment-and-read is a single step under one lock, which is enough for a
    single process. Identifiers are not coordinated across processes.
    """

    def __init__(self, customer_counter: int = 1, account_counter: int = 1):
        self._lock = threading.Lock()
        self._customer_counter = max(customer_counter, 1)
        self._account_counter = max(account_counter, 1)

    @property
    def customer_counter(self) -> int:
        """Sequence number the next customer id will use"""
        with self._lock:
            return self._customer_counter

    @property
    def account_counter(self) -> int:
        """Sequence number the next account id will use"""
        with self._lock:
            return self._account_counter

    def next_customer_id(self) -> str:
        with self._lock:
            value = self._customer_counter
            self._customer_counter += 1
        return f"{CUSTOMER_PREFIX}{value:03d}"

    def next_account_id(self) -> str:
        with self._lock:
            value = self._account_counter
            self._account_counter += 1
        return f"{ACCOUNT_PREFIX}{value:03d}"

    def reseed_customers(self, customer_ids: Iterable[Optional[str]]) -> None:
        """Continue customer numbering after the highest id in customer_ids"""
        highest = _max_sequence(customer_ids, _CUSTOMER_ID_PATTERN)
        with self._lock:
            self._customer_counter = highest + 1

    def reseed_accounts(self, account_ids: Iterable[Optional[str]]) -> None:
        """Continue account numbering after the highest id in account_ids"""
        highest = _max_sequence(account_ids, _ACCOUNT_ID_PATTERN)
        with self._lock:
            self._account_counter = highest + 1

    def reseed(self, max_observed_id: str) -> None:
        """
        Continue numbering after a single observed maximum id.

        The prefix selects the sequence: "A017" makes the next account id
        "A018", "C004" makes the next customer id "C005".

        Raises:
            ValueError: If the id matches neither sequence
        """
        if _CUSTOMER_ID_PATTERN.match(max_observed_id or ""):
            self.reseed_customers([max_observed_id])
        elif _ACCOUNT_ID_PATTERN.match(max_observed_id or ""):
            self.reseed_accounts([max_observed_id])
        else:
            raise ValueError(f"Not a customer or account id: {max_observed_id!r}")

    def reset(self) -> None:
        """Restart both sequences at 1"""
        with self._lock:
            self._customer_counter = 1
            self._account_counter = 1

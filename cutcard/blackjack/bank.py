"""
Money ledgers for players and the house.

Every chip movement is a debit on one `Bank` and a matching credit on
another (see `transfer`), so the sum of all balances never changes during a
session. Each bank keeps its own list of `Transaction` records, failed
debits included.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from cutcard.common.errors import InsufficientFundsError

logger = logging.getLogger(__name__)

HOUSE_ID = "house"


@dataclass(frozen=True)
class Transaction:
    """
    One ledger entry.

    Attributes:
        amount: Amount moved
        kind: "debit" or "credit"
        outcome: "success", or "failure" for a refused debit
        source: Bank the money left (None when unknown)
        target: Bank the money went to (None when unknown)
        balance_after: Balance of the recording bank after the entry
        timestamp: UTC time of the entry
    """

    amount: float
    kind: str
    outcome: str
    source: Optional[str]
    target: Optional[str]
    balance_after: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _check_amount(amount: float) -> None:
    if amount < 0:
        raise ValueError(f"Amount must not be negative: {amount}")


class Bank:
    """A balance with a transaction history."""

    def __init__(self, owner_id: str, initial: float = 0.0):
        _check_amount(initial)
        self.owner_id = owner_id
        self._balance = float(initial)
        self._transactions: List[Transaction] = []

    @property
    def balance(self) -> float:
        return self._balance

    @property
    def transactions(self) -> List[Transaction]:
        return list(self._transactions)

    def can_cover(self, amount: float) -> bool:
        return amount <= self._balance

    def debit(self, amount: float, to: Optional[str] = None) -> None:
        """
        Remove money from this bank.

        :param amount: Amount to remove.
        :param to: Id of the receiving party, for the ledger.
        :raises InsufficientFundsError: If the balance does not cover the amount.
        """
        _check_amount(amount)
        if amount > self._balance:
            self._transactions.append(
                Transaction(amount, "debit", "failure", self.owner_id, to, self._balance)
            )
            logger.warning(
                "Debit of %.2f refused for %s (balance %.2f)",
                amount,
                self.owner_id,
                self._balance,
            )
            raise InsufficientFundsError(
                f"{self.owner_id} has insufficient funds: "
                f"balance {self._balance:.2f}, needed {amount:.2f}"
            )

        self._balance -= amount
        self._transactions.append(
            Transaction(amount, "debit", "success", self.owner_id, to, self._balance)
        )
        logger.debug("%s debited %.2f to %s", self.owner_id, amount, to)

    def credit(self, amount: float, from_: Optional[str] = None) -> None:
        """Add money to this bank."""
        _check_amount(amount)
        self._balance += amount
        self._transactions.append(
            Transaction(amount, "credit", "success", from_, self.owner_id, self._balance)
        )
        logger.debug("%s credited %.2f from %s", self.owner_id, amount, from_)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.owner_id!r}, balance={self._balance:.2f})"


class House(Bank):
    """
    The casino's bank. `profit_loss` is the house result of settled bets:
    positive when players have lost money to the house.
    """

    def __init__(self, initial: float = 1_000_000):
        super().__init__(HOUSE_ID, initial)
        self.profit_loss = 0.0

    def record_result(self, amount: float) -> None:
        """Add a settled result (negative when the house paid out winnings)."""
        self.profit_loss += amount


def transfer(source: Bank, target: Bank, amount: float) -> None:
    """
    Move money between two banks.

    The debit happens first, so a refused debit leaves both banks unchanged.
    """
    source.debit(amount, to=target.owner_id)
    target.credit(amount, from_=source.owner_id)

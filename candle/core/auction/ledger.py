"""
Balance Ledger - cumulative top bids per bidder.

A bidder never names a bid price. Each bid call sends an increment, and the
bidder's top bid is the sum of everything sent so far. The ledger therefore
doubles as the escrow book: a balance only ever grows while the auction
runs and is paid out exactly once at settlement.
"""

from typing import Dict, Iterator, Optional, Tuple

from candle.core.config import MAX_BALANCE
from candle.core.errors import AlreadyClaimed, Overflow, ZeroAmount
from candle.utils.logger import get_logger

logger = get_logger("ledger")


class BalanceLedger:
    """
    Monotonic bidder -> amount mapping with one-shot settlement.

    Attributes:
        balances: Current top bid per bidder (settled bidders removed)
        settled: Amount held for each bidder at the time it was settled
        total_deposited: Sum of every accepted increment
    """

    def __init__(self, max_balance: int = MAX_BALANCE):
        self.max_balance = max_balance
        self.balances: Dict[str, int] = {}
        self.settled: Dict[str, int] = {}
        self.total_deposited = 0
        self._top: Optional[Tuple[str, int]] = None

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, bidder: str) -> int:
        """Current top bid for bidder (0 if unseen or settled)."""
        return self.balances.get(bidder, 0)

    def top(self) -> Optional[Tuple[str, int]]:
        """Highest balance seen so far. Ties keep whoever reached it first."""
        return self._top

    def is_settled(self, bidder: str) -> bool:
        return bidder in self.settled

    def __contains__(self, bidder: str) -> bool:
        return bidder in self.balances

    def __len__(self) -> int:
        return len(self.balances)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self.balances.items())

    # =========================================================================
    # Mutation
    # =========================================================================

    def check_increment(self, bidder: str, amount: int) -> int:
        """
        Validate an increment without applying it.

        Returns:
            The balance the bidder would have after the increment

        Raises:
            ZeroAmount: amount is not a positive integer
            Overflow: new balance would exceed max_balance
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ZeroAmount(f"Bid amount must be a positive integer, got {amount!r}")

        balance = self.get(bidder)
        if amount > self.max_balance - balance:
            raise Overflow(bidder, balance, amount, self.max_balance)
        return balance + amount

    def increment(self, bidder: str, amount: int) -> int:
        """
        Add amount to bidder's balance.

        Returns:
            New total for bidder
        """
        new_total = self.check_increment(bidder, amount)

        self.balances[bidder] = new_total
        self.total_deposited += amount
        if self._top is None or new_total > self._top[1]:
            self._top = (bidder, new_total)

        logger.debug(f"Balance of {bidder} raised by {amount} to {new_total}")
        return new_total

    def settle(self, identity: str) -> int:
        """
        Close an identity's account, returning what it held.

        Can be called once per identity for the lifetime of the ledger.

        Raises:
            AlreadyClaimed: identity was settled before
        """
        if identity in self.settled:
            raise AlreadyClaimed(identity)

        amount = self.balances.pop(identity, 0)
        self.settled[identity] = amount
        return amount

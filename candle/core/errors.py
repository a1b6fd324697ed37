"""
Error taxonomy for the candle auction engine.

Every command either commits all of its effects or raises one of these and
commits nothing. None of them is fatal to the engine: the caller may wait
for a valid phase, fix its input, or (for DelegateFailure) simply retry.
"""

from typing import Optional


class AuctionError(Exception):
    """Base class for all auction engine errors."""


class InvalidConfiguration(AuctionError):
    """Auction configuration or engine settings rejected at creation."""


class NotInBiddingPhase(AuctionError):
    """Bid placed before Opening started or after Ending closed."""

    def __init__(self, phase_name: str):
        super().__init__(f"Auction is not accepting bids (phase: {phase_name})")
        self.phase_name = phase_name


class ZeroAmount(AuctionError):
    """Bid amount was not a positive integer."""


class Overflow(AuctionError):
    """Balance increment would exceed the maximum representable amount."""

    def __init__(self, bidder: str, balance: int, amount: int, limit: int):
        super().__init__(
            f"Bid of {amount} on top of {balance} for {bidder} exceeds max balance {limit}"
        )
        self.bidder = bidder
        self.balance = balance
        self.amount = amount
        self.limit = limit


class RandomnessNotReady(AuctionError):
    """Finalization attempted before the entropy safety delay elapsed."""

    def __init__(self, current_time: int, ready_at: Optional[int] = None):
        if ready_at is None:
            message = f"Randomness not available yet at tick {current_time}"
        else:
            message = f"Randomness not ready at tick {current_time}, retry at tick {ready_at}"
        super().__init__(message)
        self.current_time = current_time
        self.ready_at = ready_at


class AlreadyFinalized(AuctionError):
    """Winner has already been resolved; it can never change."""


class NotFinalized(AuctionError):
    """Payout requested before the winner was resolved."""


class AlreadyClaimed(AuctionError):
    """Identity has already completed its settlement."""

    def __init__(self, identity: str):
        super().__init__(f"Payout already claimed by {identity}")
        self.identity = identity


class DelegateFailure(AuctionError):
    """Reward delegate failed to grant the prize. The claim stays open."""


class InvalidRandomness(AuctionError):
    """Entropy source produced something other than a non-negative integer."""

    def __init__(self, value):
        super().__init__(f"Entropy source returned invalid value {value!r}")
        self.value = value


class OutOfOrderCall(AuctionError):
    """Command carried a time earlier than one already applied."""

    def __init__(self, current_time: int, latest_time: int):
        super().__init__(
            f"Call at {current_time} arrived after {latest_time} was already applied"
        )
        self.current_time = current_time
        self.latest_time = latest_time


__all__ = [
    "AuctionError",
    "InvalidConfiguration",
    "NotInBiddingPhase",
    "ZeroAmount",
    "Overflow",
    "RandomnessNotReady",
    "AlreadyFinalized",
    "NotFinalized",
    "AlreadyClaimed",
    "DelegateFailure",
    "InvalidRandomness",
    "OutOfOrderCall",
]

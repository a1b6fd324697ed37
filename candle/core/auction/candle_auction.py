"""
Candle Auction - retroactively closed ascending auction.

This module implements the auction state machine:
1. Opening Period: bidders top up their balances
2. Ending Period: every tick is a candidate closing instant; the leading
   bid is recorded per tick (sample)
3. Finalizing: the Ending period is over, waiting for randomness
4. Ended: one sample was chosen at random and its leader is the winner

Benefits:
- Nobody knows when the auction really closed until after the fact, so
  last-second bid sniping gains nothing
- No trusted auctioneer has to keep the closing time secret

Settlement:
- Winner receives the prize plus change (its final balance minus the
  amount that was leading at the chosen sample)
- Owner receives the winning amount
- Everybody else is refunded in full
Each identity settles exactly once.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional

from candle.core.auction.history import NO_LEADER, Leader, SampleHistory
from candle.core.auction.ledger import BalanceLedger
from candle.core.config import AuctionConfig, EngineSettings
from candle.core.entropy import EntropySource
from candle.core.errors import (
    AlreadyClaimed,
    AlreadyFinalized,
    DelegateFailure,
    InvalidRandomness,
    NotFinalized,
    NotInBiddingPhase,
    OutOfOrderCall,
    RandomnessNotReady,
)
from candle.core.reward import RewardDelegate
from candle.utils.logger import get_logger

logger = get_logger("auction")


# =============================================================================
# Enums
# =============================================================================


class Phase(IntEnum):
    """Phase of a candle auction."""
    NOT_STARTED = 0    # Before start_time
    OPENING = 1        # Accepting bids, no sampling
    ENDING = 2         # Accepting bids, every tick is sampled
    FINALIZING = 3     # Bidding closed, winner not resolved yet
    ENDED = 4          # Winner resolved


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class WinnerRecord:
    """Outcome of finalization. Written once, never changed."""
    winning_sample: int
    winner: Optional[str]
    winning_amount: int
    random_value: int

    @property
    def has_winner(self) -> bool:
        return self.winner is not None


@dataclass(frozen=True)
class PayoutReceipt:
    """What a single payout call settled."""
    beneficiary: str
    refund: int = 0          # Returned part of the beneficiary's own balance
    proceeds: int = 0        # Winning amount, owner only
    prize_granted: bool = False

    @property
    def amount(self) -> int:
        """Funds leaving escrow."""
        return self.refund + self.proceeds


@dataclass(frozen=True)
class BidPlaced:
    time: int
    bidder: str
    amount: int
    balance: int
    sample: Optional[int]
    leading: bool


@dataclass(frozen=True)
class AuctionFinalized:
    time: int
    record: WinnerRecord


@dataclass(frozen=True)
class PaidOut:
    time: int
    receipt: PayoutReceipt


# =============================================================================
# Candle Auction
# =============================================================================


class CandleAuction:
    """
    A single candle auction.

    Time is always supplied by the caller; the auction never reads a clock.
    Every command validates fully and talks to external collaborators
    before touching local state, so a raised error leaves the auction
    exactly as it was.

    Attributes:
        config: Immutable auction parameters
        ledger: Cumulative balance per bidder
        history: Leading bid per Ending sample
        winner_record: Set once by finalize()
        claimed: Identities whose payout completed
        latest_time: Tick of the latest applied command
        events: Log of successful commands
    """

    def __init__(
        self,
        config: AuctionConfig,
        entropy: EntropySource,
        reward: RewardDelegate,
        settings: Optional[EngineSettings] = None,
    ):
        self.config = config
        self.entropy = entropy
        self.reward = reward
        self.settings = settings or EngineSettings()

        self.ledger = BalanceLedger(max_balance=self.settings.max_balance)
        self.history = SampleHistory(config.sample_count)
        self.winner_record: Optional[WinnerRecord] = None
        self.claimed: Dict[str, bool] = {}
        self.total_paid_out = 0
        self.latest_time: Optional[int] = None
        self.events: List[Any] = []

        logger.info(
            f"Auction of {config.subject} scheduled: opening at tick {config.start_time}, "
            f"ending {config.ending_start}..{config.ending_end - 1}, "
            f"finalize from tick {self.finalize_after}"
        )

    # =========================================================================
    # Timing
    # =========================================================================

    @property
    def finalize_after(self) -> int:
        """First tick at which finalize() may consume randomness."""
        return self.config.ending_end + self.settings.rf_delay

    def sample_at(self, current_time: int) -> Optional[int]:
        """Ending sample index for a tick, None outside the Ending period."""
        if self.config.ending_start <= current_time < self.config.ending_end:
            return current_time - self.config.ending_start
        return None

    # =========================================================================
    # Queries
    # =========================================================================

    def get_status(self, current_time: int) -> Phase:
        """Phase of the auction at current_time."""
        if current_time < self.config.start_time:
            return Phase.NOT_STARTED
        if current_time < self.config.ending_start:
            return Phase.OPENING
        if current_time < self.config.ending_end:
            return Phase.ENDING
        if self.winner_record is None:
            return Phase.FINALIZING
        return Phase.ENDED

    def get_winning(self, current_time: int) -> Leader:
        """
        Who is winning at current_time, and with how much.

        During Opening this is the top balance; during Ending the leader of
        the current sample; once resolved, the winner record.
        """
        phase = self.get_status(current_time)

        if phase == Phase.NOT_STARTED:
            return NO_LEADER
        if phase == Phase.OPENING:
            return self.ledger.top() or NO_LEADER
        if phase == Phase.ENDING:
            return self.history.leader_at(self.sample_at(current_time))
        if phase == Phase.FINALIZING:
            return self.history.leader_at(self.config.sample_count - 1)

        return self.winner_record.winner, self.winner_record.winning_amount

    def get_winner(self) -> Optional[str]:
        """Resolved winner, None until finalized or if nobody won."""
        if self.winner_record is None:
            return None
        return self.winner_record.winner

    def balance_of(self, bidder: str) -> int:
        return self.ledger.get(bidder)

    def is_claimed(self, identity: str) -> bool:
        return self.claimed.get(identity, False)

    @property
    def escrow_balance(self) -> int:
        """Funds held by the auction: deposits minus everything paid out."""
        return self.ledger.total_deposited - self.total_paid_out

    # =========================================================================
    # Bidding
    # =========================================================================

    def _check_order(self, current_time: int) -> None:
        if self.latest_time is not None and current_time < self.latest_time:
            raise OutOfOrderCall(current_time, self.latest_time)

    def place_bid(self, bidder: str, amount: int, current_time: int) -> int:
        """
        Top up bidder's balance by amount.

        Args:
            bidder: Bidder identity
            amount: Increment sent with this bid
            current_time: Current tick

        Returns:
            Bidder's new balance (its top bid)

        Raises:
            OutOfOrderCall: a later command was already applied
            NotInBiddingPhase: outside Opening and Ending, or winner resolved
            ZeroAmount: amount is not positive
            Overflow: balance would exceed the maximum
        """
        self._check_order(current_time)
        if self.winner_record is not None:
            raise NotInBiddingPhase(Phase.ENDED.name)

        phase = self.get_status(current_time)
        if phase not in (Phase.OPENING, Phase.ENDING):
            raise NotInBiddingPhase(phase.name)

        # Validate everything before committing
        self.ledger.check_increment(bidder, amount)
        sample = self.sample_at(current_time)
        if sample is not None:
            self.history.check_record(sample)

        new_balance = self.ledger.increment(bidder, amount)
        if sample is not None:
            leading = self.history.record(sample, bidder, new_balance)
        else:
            leading = self.ledger.top()[0] == bidder
        self.latest_time = current_time

        self.events.append(BidPlaced(
            time=current_time,
            bidder=bidder,
            amount=amount,
            balance=new_balance,
            sample=sample,
            leading=leading,
        ))
        logger.debug(
            f"Bid from {bidder} at tick {current_time} ({phase.name}): "
            f"+{amount} -> {new_balance}{' [leading]' if leading else ''}"
        )
        return new_balance

    # =========================================================================
    # Finalization
    # =========================================================================

    def finalize(self, current_time: int) -> WinnerRecord:
        """
        Pick the closing sample at random and resolve the winner.

        Args:
            current_time: Current tick

        Returns:
            The winner record

        Raises:
            OutOfOrderCall: a later command was already applied
            AlreadyFinalized: winner already resolved
            RandomnessNotReady: safety delay not elapsed, or the entropy
                source has nothing for the reference tick yet
            InvalidRandomness: entropy source returned a non-integer or negative value
        """
        self._check_order(current_time)
        if self.winner_record is not None:
            raise AlreadyFinalized(
                f"Winner already resolved at sample {self.winner_record.winning_sample}"
            )

        if current_time < self.finalize_after:
            raise RandomnessNotReady(current_time, self.finalize_after)

        random_value = self.entropy.random(self.config.ending_end)
        if not isinstance(random_value, int) or random_value < 0:
            raise InvalidRandomness(random_value)

        winning_sample = random_value % self.config.sample_count
        winner, winning_amount = self.history.leader_at(winning_sample)

        record = WinnerRecord(
            winning_sample=winning_sample,
            winner=winner,
            winning_amount=winning_amount if winner is not None else 0,
            random_value=random_value,
        )
        self.winner_record = record
        self.latest_time = current_time
        self.events.append(AuctionFinalized(time=current_time, record=record))

        if winner is None:
            logger.warning(
                f"Auction finalized without winner: no bid by sample {winning_sample}"
            )
        else:
            logger.info(
                f"Auction finalized: sample={winning_sample}, winner={winner}, "
                f"amount={record.winning_amount}"
            )
        return record

    # =========================================================================
    # Settlement
    # =========================================================================

    def _receipt_for(self, caller: str) -> PayoutReceipt:
        record = self.winner_record
        is_winner = record.winner is not None and caller == record.winner
        balance = self.ledger.get(caller)

        refund = balance - record.winning_amount if is_winner else balance
        proceeds = 0
        if caller == self.config.owner and record.winner is not None:
            proceeds = record.winning_amount

        return PayoutReceipt(
            beneficiary=caller,
            refund=refund,
            proceeds=proceeds,
            prize_granted=is_winner,
        )

    def payout(self, caller: str, current_time: int) -> PayoutReceipt:
        """
        Settle caller's share of the auction.

        Winner: prize + change. Owner: winning amount. Others: full refund.

        Args:
            caller: Identity claiming its payout
            current_time: Current tick

        Returns:
            Receipt of what was paid

        Raises:
            OutOfOrderCall: a later command was already applied
            NotFinalized: winner not resolved yet
            AlreadyClaimed: caller already settled
            DelegateFailure: prize transfer failed; retry later
        """
        self._check_order(current_time)
        if self.winner_record is None:
            raise NotFinalized(
                f"Auction is not finalized (phase: {self.get_status(current_time).name})"
            )
        if self.is_claimed(caller):
            raise AlreadyClaimed(caller)

        receipt = self._receipt_for(caller)

        if receipt.prize_granted:
            try:
                self.reward.grant(caller, self.config.descriptor())
            except Exception as e:
                logger.warning(f"Prize transfer to {caller} failed: {e}")
                raise DelegateFailure(f"Reward delegate failed for {caller}: {e}") from e

        self.ledger.settle(caller)
        self.claimed[caller] = True
        self.total_paid_out += receipt.amount
        self.latest_time = current_time
        self.events.append(PaidOut(time=current_time, receipt=receipt))

        logger.info(
            f"Payout to {caller}: refund={receipt.refund}, proceeds={receipt.proceeds}"
            f"{', prize granted' if receipt.prize_granted else ''}"
        )
        return receipt

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (
            f"CandleAuction(start={self.config.start_time}, "
            f"bidders={len(self.ledger)}, finalized={self.winner_record is not None})"
        )

    def stats(self) -> dict:
        """Summary of the auction state."""
        record = self.winner_record
        return {
            "subject": str(self.config.subject),
            "owner": self.config.owner,
            "bidders": len(self.ledger) + sum(1 for v in self.ledger.settled.values() if v > 0),
            "total_deposited": self.ledger.total_deposited,
            "escrow_balance": self.escrow_balance,
            "samples_recorded": self.history.materialized,
            "winning_sample": record.winning_sample if record else None,
            "winner": record.winner if record else None,
            "winning_amount": record.winning_amount if record else None,
            "claimed": sorted(self.claimed),
        }


__all__ = [
    "CandleAuction",
    "Phase",
    "WinnerRecord",
    "PayoutReceipt",
    "BidPlaced",
    "AuctionFinalized",
    "PaidOut",
]

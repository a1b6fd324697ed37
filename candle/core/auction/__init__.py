"""
Candle Auction Module.

This module provides the auction state machine and its bookkeeping:
- Balance ledger (cumulative top bids, one-shot settlement)
- Sample history (leading bid per Ending tick)
- Candle auction (phases, randomized finalization, payouts)
"""

from candle.core.auction.ledger import BalanceLedger

from candle.core.auction.history import (
    SampleHistory,
    Leader,
    NO_LEADER,
)

from candle.core.auction.candle_auction import (
    CandleAuction,
    Phase,
    WinnerRecord,
    PayoutReceipt,
    BidPlaced,
    AuctionFinalized,
    PaidOut,
)

__all__ = [
    # Ledger
    "BalanceLedger",
    # History
    "SampleHistory",
    "Leader",
    "NO_LEADER",
    # Auction
    "CandleAuction",
    "Phase",
    "WinnerRecord",
    "PayoutReceipt",
    "BidPlaced",
    "AuctionFinalized",
    "PaidOut",
]

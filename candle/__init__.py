"""
Candle Auction Engine

A time-boxed auction whose closing instant is chosen retroactively:
- Opening period collecting initial bids
- Ending period sampled tick by tick
- Random "candle blow-out" sample selected after the window closes
- Exactly-once settlement of prize, change, refunds and proceeds
"""

__version__ = "0.1.0"

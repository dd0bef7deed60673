"""Candle model used on the ingest and aggregation path.

Plain slotted dataclass with float prices and Unix-second timestamps,
cheap enough to keep thousands per pair in memory.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Candle:
    """One fixed-interval OHLCV bar.

    ``timestamp`` is the bar's open time in Unix seconds.
    """

    timestamp: float
    open: float
    high: float
    low: float
    close: float
    volume: float

"""Aggregated bucket of consecutive candles."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Bucket:
    """Statistics over one fixed time span.

    ``timestamp`` is the span's end boundary (exclusive). A backfilled
    bucket reuses the nearest earlier bucket's candles and reports a
    single data point.
    """

    timestamp: float
    data_points: int
    backfilled: bool

    # Price
    price_avg: float
    price_low: float
    price_high: float
    price_close: float
    diff_avg: float

    # Volume
    volume_total: float
    volume_avg: float

    # Most recent candle in the span
    last_close: float
    last_low: float
    last_high: float
    last_volume: float

    # Coefficient of variation (population std / mean)
    close_cv: float
    volume_cv: float

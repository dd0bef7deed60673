"""Bucket aggregation over a pair's candle series.

Candles are grouped into ``total_buckets`` consecutive spans of
``candles_per_bucket`` candles each, ending at an aligned boundary.
Spans without candles are backfilled from the nearest earlier populated
span so downstream indicators see an unbroken series.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from core.errors import ConfigurationError
from core.models.bucket import Bucket
from core.models.candle import Candle

logger = logging.getLogger(__name__)


def align_timestamp(timestamp: float, granularity: int) -> float:
    """Floor a Unix timestamp to a multiple of ``granularity`` seconds."""
    return float(int(timestamp) // granularity * granularity)


def period_bucket_count(days: int, granularity: int, candles_per_bucket: int) -> int:
    """Number of whole buckets covering ``days`` of candles."""
    return (days * 86400) // (granularity * candles_per_bucket)


@dataclass(frozen=True, slots=True)
class BucketOptions:
    """Parameters for one create_buckets() call.

    ``end`` is aligned down to the granularity and is exclusive.
    """

    granularity: int
    candles_per_bucket: int
    total_buckets: int
    end: float

    def __post_init__(self) -> None:
        if self.candles_per_bucket < 2:
            raise ConfigurationError(
                f"candles_per_bucket must be at least 2, got {self.candles_per_bucket}"
            )

    @property
    def bucket_length(self) -> int:
        return self.granularity * self.candles_per_bucket

    @property
    def aligned_end(self) -> float:
        return align_timestamp(self.end, self.granularity)

    @property
    def start(self) -> float:
        """Inclusive lower boundary of the oldest span."""
        return self.aligned_end - self.total_buckets * self.bucket_length


def _coefficient_of_variation(values: np.ndarray) -> float:
    mean = float(values.mean())
    if mean == 0:
        return 0.0
    return float(values.std()) / mean


def _summarize(timestamp: float, candles: list[Candle], backfilled: bool) -> Bucket:
    # candles[0] is the newest candle of the span
    closes = np.array([c.close for c in candles], dtype=np.float64)
    volumes = np.array([c.volume for c in candles], dtype=np.float64)
    highs = np.array([c.high for c in candles], dtype=np.float64)
    lows = np.array([c.low for c in candles], dtype=np.float64)
    latest = candles[0]

    data_points = 1 if backfilled else len(candles)
    if data_points > 1:
        close_cv = _coefficient_of_variation(closes)
        volume_cv = _coefficient_of_variation(volumes)
    else:
        close_cv = volume_cv = 0.0

    return Bucket(
        timestamp=timestamp,
        data_points=data_points,
        backfilled=backfilled,
        price_avg=float(closes.mean()),
        price_low=float(lows.min()),
        price_high=float(highs.max()),
        price_close=latest.close,
        diff_avg=float((highs - lows).mean()),
        volume_total=float(volumes.sum()),
        volume_avg=float(volumes.mean()),
        last_close=latest.close,
        last_low=latest.low,
        last_high=latest.high,
        last_volume=latest.volume,
        close_cv=close_cv,
        volume_cv=volume_cv,
    )


def create_buckets(
    candles: Sequence[Candle],
    options: BucketOptions,
    pair_id: str = "",
) -> list[Bucket]:
    """Aggregate an ascending candle series into buckets, oldest first.

    A candle belongs to the span with ``start <= timestamp < end``.
    Candles at or after the aligned end are ignored. Returns fewer than
    ``total_buckets`` buckets when the series does not reach back far
    enough; that shortfall is logged, not raised.
    """
    if not candles:
        return []

    end = options.aligned_end
    length = options.bucket_length
    # Span boundaries, newest span first
    span_starts = [end - length * (i + 1) for i in range(options.total_buckets)]
    grouped: list[list[Candle]] = [[] for _ in span_starts]

    span = 0
    uncovered = 0
    for candle in reversed(candles):
        if candle.timestamp >= end:
            continue
        while span < len(span_starts) and candle.timestamp < span_starts[span]:
            span += 1
        if span == len(span_starts):
            uncovered += 1
            continue
        grouped[span].append(candle)

    if uncovered:
        logger.debug("%s: %d candles older than the oldest bucket", pair_id, uncovered)

    buckets: list[Bucket] = []
    previous: list[Candle] | None = None
    for span_start, group in zip(reversed(span_starts), reversed(grouped)):
        backfilled = False
        if group:
            previous = group
        elif previous is None:
            continue
        else:
            group = previous
            backfilled = True
        buckets.append(_summarize(span_start + length, group, backfilled))

    if len(buckets) < options.total_buckets:
        logger.warning(
            "%s: candles cover %d of %d buckets",
            pair_id, len(buckets), options.total_buckets,
        )

    return buckets

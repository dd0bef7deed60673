"""Pair scoring and ranked listings.

A pair's rating is a weighted sum of three ratios taken from its newest
bucket, each comparing the latest candle against the bucket average:

    rating = close * 0.5 + volume * 0.15 + diff * 0.35
"""

import time
from typing import Iterable, Sequence

from core.models.bucket import Bucket
from core.models.ranking import (
    CoefficientOfVariation,
    IndicatorSet,
    LastValues,
    RankFilter,
    RankingRatio,
    RankingRecord,
)

CLOSE_WEIGHT = 0.5
VOLUME_WEIGHT = 0.15
DIFF_WEIGHT = 0.35

RATIO_DIGITS = 4


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def make_ranking(
    pair_id: str,
    buckets: Sequence[Bucket],
    indicators: IndicatorSet,
    movement: float | None = None,
    timestamp: float | None = None,
) -> RankingRecord | None:
    """Score a pair from its buckets. None when there are no buckets."""
    if not buckets:
        return None

    last = buckets[-1]
    close = _ratio(last.last_close, last.price_avg)
    volume = _ratio(last.last_volume, last.volume_avg)
    diff = _ratio(last.last_high - last.last_low, last.diff_avg)
    rating = close * CLOSE_WEIGHT + volume * VOLUME_WEIGHT + diff * DIFF_WEIGHT

    change = 0.0
    if len(buckets) > 1 and buckets[-2].price_close:
        change = round((last.price_close / buckets[-2].price_close - 1) * 100, 2)

    return RankingRecord(
        pair_id=pair_id,
        data_points=sum(bucket.data_points for bucket in buckets),
        movement=None if movement is None else round(movement, RATIO_DIGITS),
        change=change,
        ratio=RankingRatio(
            rating=round(rating, RATIO_DIGITS),
            close=round(close, RATIO_DIGITS),
            diff=round(diff, RATIO_DIGITS),
            volume=round(volume, RATIO_DIGITS),
        ),
        indicators=indicators,
        last=LastValues(
            volume=last.volume_total,
            volume_avg=last.volume_avg,
            close=last.price_close,
            close_avg=last.price_avg,
            high=last.price_high,
            low=last.price_low,
            coefficient_of_variation=CoefficientOfVariation(
                close=round(last.close_cv, RATIO_DIGITS),
                volume=round(last.volume_cv, RATIO_DIGITS),
            ),
        ),
        timestamp=time.time() if timestamp is None else timestamp,
    )


def passes_filter(record: RankingRecord, rank_filter: RankFilter) -> bool:
    """Whether a record passes every enabled filter flag.

    An unavailable value never passes a check that needs it.
    """
    if rank_filter.close_ratio and not record.ratio.close > 1:
        return False
    if rank_filter.diff_ratio and not record.ratio.diff > 1:
        return False
    if rank_filter.volume_ratio and not record.ratio.volume > 1:
        return False
    if rank_filter.movement and (record.movement is None or not record.movement > 1):
        return False

    rsi = record.indicators.rsi
    if rank_filter.overbought and (rsi is None or not rsi > rank_filter.overbought_threshold):
        return False
    if rank_filter.oversold and (rsi is None or not rsi < rank_filter.oversold_threshold):
        return False
    return True


def sort_rankings(
    records: Iterable[RankingRecord],
    rank_filter: RankFilter | None = None,
) -> list[RankingRecord]:
    """Filter, order by rating (highest first) and number from 1.

    Returns new records; the inputs are left untouched, so calling this
    again on the same input gives the same listing.
    """
    rank_filter = rank_filter or RankFilter()
    kept = [record for record in records if passes_filter(record, rank_filter)]
    kept.sort(key=lambda record: record.ratio.rating, reverse=True)
    if rank_filter.count > 0:
        kept = kept[:rank_filter.count]
    return [record.model_copy(update={"rank": rank}) for rank, record in enumerate(kept, start=1)]

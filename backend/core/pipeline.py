"""Per-pair computation: candles -> buckets -> indicators -> ranking."""

import time
from dataclasses import dataclass, field
from typing import Sequence

from core.buckets import BucketOptions, create_buckets
from core.indicators import IndicatorCalculator
from core.indicators.indicators import Formatter
from core.models.bucket import Bucket
from core.models.candle import Candle
from core.models.ranking import IndicatorSet, RankingRecord
from core.ranking import make_ranking


@dataclass(slots=True)
class StageTimings:
    """Seconds spent in each stage of one pair update."""

    buckets: float = 0.0
    indicators: float = 0.0
    ranking: float = 0.0

    def add(self, other: "StageTimings") -> None:
        self.buckets += other.buckets
        self.indicators += other.indicators
        self.ranking += other.ranking


@dataclass(slots=True)
class PairUpdate:
    pair_id: str
    buckets: list[Bucket]
    indicators: IndicatorSet
    record: RankingRecord | None
    timings: StageTimings = field(default_factory=StageTimings)

    @property
    def last_close(self) -> float | None:
        return self.buckets[-1].last_close if self.buckets else None


def build_pair_update(
    pair_id: str,
    candles: Sequence[Candle],
    options: BucketOptions,
    calculator: IndicatorCalculator,
    movement: float | None = None,
    formatter: Formatter | None = None,
    timestamp: float | None = None,
) -> PairUpdate:
    """Run the pure part of a cycle for one pair."""
    timings = StageTimings()

    started = time.perf_counter()
    buckets = create_buckets(candles, options, pair_id=pair_id)
    timings.buckets = time.perf_counter() - started

    started = time.perf_counter()
    indicators = calculator.calculate([bucket.price_close for bucket in buckets], formatter)
    timings.indicators = time.perf_counter() - started

    started = time.perf_counter()
    record = make_ranking(pair_id, buckets, indicators, movement, timestamp)
    timings.ranking = time.perf_counter() - started

    return PairUpdate(
        pair_id=pair_id,
        buckets=buckets,
        indicators=indicators,
        record=record,
        timings=timings,
    )

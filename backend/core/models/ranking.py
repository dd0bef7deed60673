"""Indicator and ranking record models."""

from pydantic import BaseModel, ConfigDict


class MACDValue(BaseModel):
    """Latest MACD line and signal line values."""

    model_config = ConfigDict(frozen=True)

    value: float | None = None
    signal: float | None = None


class IndicatorSet(BaseModel):
    """Latest value of every indicator for one pair.

    Keys of ``sma`` and ``ema`` are window lengths. A value is None when
    the series is too short to produce it.
    """

    model_config = ConfigDict(frozen=True)

    sma: dict[int, float | None] = {}
    ema: dict[int, float | None] = {}
    macd: MACDValue = MACDValue()
    rsi: float | None = None


class RankingRatio(BaseModel):
    model_config = ConfigDict(frozen=True)

    rating: float
    close: float
    diff: float
    volume: float


class CoefficientOfVariation(BaseModel):
    model_config = ConfigDict(frozen=True)

    close: float
    volume: float


class LastValues(BaseModel):
    """Figures from the newest bucket."""

    model_config = ConfigDict(frozen=True)

    volume: float
    volume_avg: float
    close: float
    close_avg: float
    high: float
    low: float
    coefficient_of_variation: CoefficientOfVariation


class RankingRecord(BaseModel):
    """Per-pair score computed once per cycle.

    ``rank`` is 0 until the record passes through sort_rankings().
    """

    model_config = ConfigDict(frozen=True)

    pair_id: str
    rank: int = 0
    data_points: int
    movement: float | None = None
    change: float = 0.0  # percent, last two bucket closes
    ratio: RankingRatio
    indicators: IndicatorSet
    last: LastValues
    timestamp: float


class RankFilter(BaseModel):
    """Which records a ranking listing keeps.

    Each enabled flag drops records whose value does not pass the test.
    ``count`` <= 0 means no truncation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    close_ratio: bool = False
    diff_ratio: bool = False
    volume_ratio: bool = False
    movement: bool = False
    overbought: bool = False
    oversold: bool = False
    count: int = 0
    overbought_threshold: float = 70.0
    oversold_threshold: float = 30.0

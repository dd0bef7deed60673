"""Engine data models."""

from core.models.bucket import Bucket
from core.models.candle import Candle
from core.models.config import EngineConfig, VALID_GRANULARITIES
from core.models.market import Currency, OrderBookCounts, Product
from core.models.ranking import (
    CoefficientOfVariation,
    IndicatorSet,
    LastValues,
    MACDValue,
    RankFilter,
    RankingRatio,
    RankingRecord,
)

__all__ = [
    "Bucket",
    "Candle",
    "CoefficientOfVariation",
    "Currency",
    "EngineConfig",
    "IndicatorSet",
    "LastValues",
    "MACDValue",
    "OrderBookCounts",
    "Product",
    "RankFilter",
    "RankingRatio",
    "RankingRecord",
    "VALID_GRANULARITIES",
]

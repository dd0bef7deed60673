"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    ema,
    sma,
    macd,
    macd_signal,
    rsi,
    IndicatorCalculator,
)

__all__ = [
    "ema",
    "sma",
    "macd",
    "macd_signal",
    "rsi",
    "IndicatorCalculator",
]

"""Moving averages, MACD and RSI over bucket closes.

Every series function returns only the values it can compute, oldest
first, with no padding: a window of ``n`` over ``m`` closes yields
``m - n + 1`` values (EMA and SMA) and an empty list when ``m < n``.
"""

from typing import Callable, Sequence

import numpy as np

from core.models.ranking import IndicatorSet, MACDValue

Formatter = Callable[[float], float]


def sma(closes: Sequence[float], period: int) -> list[float]:
    """Simple moving average over each full window."""
    if period < 1 or len(closes) < period:
        return []
    arr = np.asarray(closes, dtype=np.float64)
    windows = np.lib.stride_tricks.sliding_window_view(arr, period)
    return windows.mean(axis=1).tolist()


def ema(closes: Sequence[float], period: int) -> list[float]:
    """Exponential moving average seeded with the SMA of the first window.

    Smoothing factor k = 2 / (period + 1).
    """
    if period < 1 or len(closes) < period:
        return []
    arr = np.asarray(closes, dtype=np.float64)
    k = 2.0 / (period + 1)

    value = float(arr[:period].mean())
    result = [value]
    for close in arr[period:]:
        value += k * (float(close) - value)
        result.append(value)
    return result


def macd(short_ema: Sequence[float], long_ema: Sequence[float]) -> list[float]:
    """Short EMA minus long EMA, aligned on their common newest values."""
    length = min(len(short_ema), len(long_ema))
    if length == 0:
        return []
    short = np.asarray(short_ema[len(short_ema) - length:], dtype=np.float64)
    long = np.asarray(long_ema[len(long_ema) - length:], dtype=np.float64)
    return (short - long).tolist()


def macd_signal(macd_values: Sequence[float], period: int = 9) -> list[float]:
    """Signal line: EMA of the MACD series."""
    return ema(macd_values, period)


def _rsi_value(gain_avg: float, loss_avg: float) -> float:
    # loss_avg is kept negative
    if loss_avg == 0:
        return 100.0 if gain_avg > 0 else 50.0
    return round(100.0 - 100.0 / (1.0 + gain_avg / abs(loss_avg)), 2)


def rsi(closes: Sequence[float], period: int = 14) -> list[float]:
    """Relative strength index with Wilder smoothing, rounded to 2 places.

    The first value averages the moves across the first ``period + 1``
    closes. Needs at least ``period + 1`` closes.
    """
    if period < 1 or len(closes) <= period:
        return []
    moves = np.diff(np.asarray(closes, dtype=np.float64))

    seed = moves[:period]
    gain_avg = float(seed[seed > 0].sum()) / period
    loss_avg = float(seed[seed < 0].sum()) / period
    result = [_rsi_value(gain_avg, loss_avg)]

    for move in moves[period:]:
        move = float(move)
        gain_avg = (gain_avg * (period - 1) + max(move, 0.0)) / period
        loss_avg = (loss_avg * (period - 1) + min(move, 0.0)) / period
        result.append(_rsi_value(gain_avg, loss_avg))
    return result


def _last(values: Sequence[float], formatter: Formatter | None) -> float | None:
    if not values:
        return None
    value = values[-1]
    return formatter(value) if formatter else value


class IndicatorCalculator:
    """Computes the latest indicator set for a series of bucket closes."""

    def __init__(
        self,
        windows: Sequence[int] = (12, 26, 50, 200),
        macd_short: int = 12,
        macd_long: int = 26,
        macd_signal: int = 9,
        rsi_period: int = 14,
        formatter: Formatter | None = None,
    ):
        self.windows = tuple(windows)
        self.macd_short = macd_short
        self.macd_long = macd_long
        self.macd_signal = macd_signal
        self.rsi_period = rsi_period
        self.formatter = formatter

    def calculate(
        self,
        closes: Sequence[float],
        formatter: Formatter | None = None,
    ) -> IndicatorSet:
        """Latest SMA/EMA per window, MACD with signal, and RSI.

        ``formatter`` overrides the calculator's default, typically to
        round values to the pair's quote precision.
        """
        fmt = formatter or self.formatter

        emas = {window: ema(closes, window) for window in self.windows}
        short_ema = emas.get(self.macd_short) or ema(closes, self.macd_short)
        long_ema = emas.get(self.macd_long) or ema(closes, self.macd_long)
        macd_values = macd(short_ema, long_ema)
        signal_values = macd_signal(macd_values, self.macd_signal)

        rsi_values = rsi(closes, self.rsi_period)

        return IndicatorSet(
            sma={window: _last(sma(closes, window), fmt) for window in self.windows},
            ema={window: _last(values, fmt) for window, values in emas.items()},
            macd=MACDValue(
                value=_last(macd_values, fmt),
                signal=_last(signal_values, fmt),
            ),
            rsi=rsi_values[-1] if rsi_values else None,
        )

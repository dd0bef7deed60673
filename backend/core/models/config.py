"""Engine configuration."""

from dataclasses import dataclass

from core.errors import ConfigurationError

# Candle sizes (seconds) the exchange serves
VALID_GRANULARITIES = (60, 300, 900, 3600, 21600, 86400)


@dataclass(frozen=True)
class EngineConfig:
    """Validated parameters for bucket building and indicators.

    Raises ConfigurationError on construction when the combination
    cannot produce buckets.
    """

    granularity: int = 3600
    candles_per_bucket: int = 24
    total_buckets: int = 200
    update_frequency: int = 1
    max_candle_count: int = 0  # 0 = candles_per_bucket * total_buckets
    ma_windows: tuple[int, ...] = (12, 26, 50, 200)
    macd_short: int = 12
    macd_long: int = 26
    macd_signal: int = 9
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    persist_buckets: bool = False

    def __post_init__(self) -> None:
        if self.granularity not in VALID_GRANULARITIES:
            raise ConfigurationError(
                f"Candle granularity {self.granularity}s is not one of {VALID_GRANULARITIES}"
            )
        if 60 % self.candle_minutes != 0 and self.candle_minutes % 60 != 0:
            raise ConfigurationError(
                f"Candle size of {self.candle_minutes} minutes does not divide into an hour"
            )
        if self.candles_per_bucket < 2:
            raise ConfigurationError(
                f"candles_per_bucket must be at least 2, got {self.candles_per_bucket}"
            )
        if self.total_buckets < 1:
            raise ConfigurationError(f"total_buckets must be positive, got {self.total_buckets}")
        if self.update_frequency < 1:
            raise ConfigurationError(
                f"update_frequency must be positive, got {self.update_frequency}"
            )
        if 0 < self.max_candle_count < self.required_candles:
            raise ConfigurationError(
                f"max_candle_count {self.max_candle_count} cannot hold "
                f"{self.total_buckets} buckets of {self.candles_per_bucket} candles"
            )
        if any(window < 1 for window in self.ma_windows) or self.rsi_period < 1:
            raise ConfigurationError("Indicator periods must be positive")
        if self.macd_short >= self.macd_long or self.macd_signal < 1:
            raise ConfigurationError(
                f"MACD periods invalid: short={self.macd_short} long={self.macd_long} "
                f"signal={self.macd_signal}"
            )
        if not 0 <= self.rsi_oversold < self.rsi_overbought <= 100:
            raise ConfigurationError(
                f"RSI thresholds invalid: oversold={self.rsi_oversold} "
                f"overbought={self.rsi_overbought}"
            )

    @property
    def candle_minutes(self) -> int:
        return self.granularity // 60

    @property
    def bucket_length(self) -> int:
        """Bucket span in seconds."""
        return self.granularity * self.candles_per_bucket

    @property
    def required_candles(self) -> int:
        return self.candles_per_bucket * self.total_buckets

    @property
    def candle_limit(self) -> int:
        """Cap on cached candles per pair."""
        return self.max_candle_count or self.required_candles

    @property
    def update_period_minutes(self) -> int:
        """Minutes between scheduled cycles."""
        return self.candle_minutes * self.update_frequency

"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models.config import EngineConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost/pair_ranker"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Coinbase Exchange public API
    coinbase_api_url: str = "https://api.exchange.coinbase.com"
    coinbase_calls_per_minute: int = 600
    request_timeout: float = 30.0

    # Buckets
    candle_granularity: int = 3600  # seconds
    candles_per_bucket: int = 24
    total_buckets: int = 200
    update_frequency: int = 1  # candles between cycles
    max_candle_count: int = 0  # 0 = candles_per_bucket * total_buckets
    persist_buckets: bool = False

    # Indicators
    ma_windows: list[int] = [12, 26, 50, 200]
    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    # Discord webhooks (empty = channel disabled)
    discord_ranking_webhook: str = ""
    discord_analysis_webhook: str = ""
    discord_changes_webhook: str = ""

    # Shutdown
    shutdown_timeout: float = 30.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    def engine_config(self) -> EngineConfig:
        """Validated engine parameters. Raises ConfigurationError."""
        return EngineConfig(
            granularity=self.candle_granularity,
            candles_per_bucket=self.candles_per_bucket,
            total_buckets=self.total_buckets,
            update_frequency=self.update_frequency,
            max_candle_count=self.max_candle_count,
            ma_windows=tuple(self.ma_windows),
            rsi_period=self.rsi_period,
            rsi_overbought=self.rsi_overbought,
            rsi_oversold=self.rsi_oversold,
            persist_buckets=self.persist_buckets,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

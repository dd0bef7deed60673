"""Tests for engine config, settings and ranker.yaml loading."""

import pytest

from app.config import Settings
from app.ranker_config import RankerConfig, load_ranker_config
from core.errors import ConfigurationError
from core.models import EngineConfig


class TestEngineConfig:
    """Tests for EngineConfig validation."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.candle_minutes == 60
        assert config.bucket_length == 86400
        assert config.required_candles == 4800
        assert config.candle_limit == 4800
        assert config.update_period_minutes == 60

    def test_update_period(self):
        config = EngineConfig(granularity=300, update_frequency=3)
        assert config.update_period_minutes == 15

    def test_explicit_candle_limit(self):
        assert EngineConfig(max_candle_count=10_000).candle_limit == 10_000

    @pytest.mark.parametrize("overrides", [
        {"granularity": 420},
        {"candles_per_bucket": 1},
        {"total_buckets": 0},
        {"update_frequency": 0},
        {"max_candle_count": 100},
        {"ma_windows": (12, 0)},
        {"macd_short": 26, "macd_long": 12},
        {"rsi_oversold": 80.0},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            EngineConfig(**overrides)


class TestSettings:
    """Tests for Settings."""

    def test_engine_config_from_settings(self):
        settings = Settings(
            _env_file=None,
            candle_granularity=300,
            candles_per_bucket=12,
            total_buckets=50,
            ma_windows=[5, 10],
        )
        config = settings.engine_config()

        assert config.granularity == 300
        assert config.bucket_length == 3600
        assert config.ma_windows == (5, 10)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TOTAL_BUCKETS", "30")
        monkeypatch.setenv("DISCORD_RANKING_WEBHOOK", "https://discord.test/hook")

        settings = Settings(_env_file=None)

        assert settings.total_buckets == 30
        assert settings.discord_ranking_webhook == "https://discord.test/hook"

    def test_invalid_settings_raise(self):
        settings = Settings(_env_file=None, candles_per_bucket=1)
        with pytest.raises(ConfigurationError):
            settings.engine_config()


class TestRankerConfig:
    """Tests for load_ranker_config()."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_ranker_config(tmp_path / "ranker.yaml")
        assert config == RankerConfig()
        assert config.selection.include == ["USD"]

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "ranker.yaml"
        path.write_text(
            "selection:\n"
            "  include: [usd, eur]\n"
            "  exclude: [usdt]\n"
            "  pairs: []\n"
            "filter:\n"
            "  close_ratio: true\n"
            "  count: 25\n"
        )

        config = load_ranker_config(path)

        assert config.selection.include == ["USD", "EUR"]
        assert config.selection.exclude == ["USDT"]
        assert config.filter.close_ratio is True
        assert config.filter.count == 25

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "ranker.yaml"
        path.write_text("")
        assert load_ranker_config(path) == RankerConfig()

    def test_unknown_filter_key_rejected(self, tmp_path):
        path = tmp_path / "ranker.yaml"
        path.write_text("filter:\n  bogus: true\n")
        with pytest.raises(ValueError):
            load_ranker_config(path)

    def test_initial_filter_takes_engine_rsi_thresholds(self):
        engine_config = EngineConfig(rsi_overbought=80.0, rsi_oversold=20.0)

        rank_filter = RankerConfig().initial_filter(engine_config)

        assert rank_filter.overbought_threshold == 80.0
        assert rank_filter.oversold_threshold == 20.0

    def test_initial_filter_keeps_yaml_thresholds(self, tmp_path):
        path = tmp_path / "ranker.yaml"
        path.write_text("filter:\n  overbought: true\n  overbought_threshold: 75\n")
        engine_config = EngineConfig(rsi_overbought=80.0, rsi_oversold=20.0)

        rank_filter = load_ranker_config(path).initial_filter(engine_config)

        assert rank_filter.overbought is True
        assert rank_filter.overbought_threshold == 75.0
        assert rank_filter.oversold_threshold == 20.0

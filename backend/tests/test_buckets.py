"""Tests for bucket aggregation."""

import logging

import pytest

from core.buckets import BucketOptions, align_timestamp, create_buckets, period_bucket_count
from core.errors import ConfigurationError
from core.models import Candle

HOUR = 3600
T0 = 1_699_999_200.0  # hour aligned


def make_candle(ts, close=100.0, high=None, low=None, volume=10.0):
    return Candle(
        timestamp=ts,
        open=close,
        high=close + 1 if high is None else high,
        low=close - 1 if low is None else low,
        close=close,
        volume=volume,
    )


def hourly(count, start=T0, closes=None):
    closes = closes or [100.0 + i for i in range(count)]
    return [make_candle(start + i * HOUR, close=closes[i]) for i in range(count)]


def options(total=2, per_bucket=2, end=T0 + 4 * HOUR):
    return BucketOptions(
        granularity=HOUR,
        candles_per_bucket=per_bucket,
        total_buckets=total,
        end=end,
    )


class TestCreateBuckets:
    """Tests for create_buckets()."""

    def test_four_hourly_candles_make_two_full_buckets(self):
        """4 one-hour candles, 2 per bucket, 2 buckets -> 2 buckets of 2."""
        candles = [
            make_candle(T0, close=100, high=105, low=99),
            make_candle(T0 + HOUR, close=101, high=103, low=100),
            make_candle(T0 + 2 * HOUR, close=102, high=104, low=101),
            make_candle(T0 + 3 * HOUR, close=103, high=110, low=102),
        ]
        buckets = create_buckets(candles, options())

        assert len(buckets) == 2
        assert [b.data_points for b in buckets] == [2, 2]
        assert buckets[0].price_high == 105
        assert buckets[1].price_high == 110
        assert buckets[0].price_low == 99
        assert not any(b.backfilled for b in buckets)

    def test_buckets_ascending_with_end_boundary_timestamps(self):
        buckets = create_buckets(hourly(4), options())
        assert [b.timestamp for b in buckets] == [T0 + 2 * HOUR, T0 + 4 * HOUR]

    def test_close_comes_from_most_recent_candle(self):
        """The bucket close is the newest candle's close, not the average."""
        buckets = create_buckets(hourly(4, closes=[100, 120, 130, 90]), options())

        assert buckets[0].price_close == 120
        assert buckets[0].last_close == 120
        assert buckets[0].price_avg == 110
        assert buckets[1].price_close == 90

    def test_last_candle_fields(self):
        candles = [
            make_candle(T0, close=100, high=101, low=99, volume=5),
            make_candle(T0 + HOUR, close=102, high=104, low=100, volume=7),
        ]
        bucket = create_buckets(candles, options(total=1, end=T0 + 2 * HOUR))[0]

        assert bucket.last_high == 104
        assert bucket.last_low == 100
        assert bucket.last_volume == 7
        assert bucket.volume_total == 12
        assert bucket.volume_avg == 6
        assert bucket.diff_avg == 3  # mean of (2, 4)

    def test_coefficient_of_variation_uses_population_std(self):
        """closes 100 and 200: mean 150, population std 50."""
        candles = [
            make_candle(T0, close=100, volume=10),
            make_candle(T0 + HOUR, close=200, volume=10),
        ]
        bucket = create_buckets(candles, options(total=1, end=T0 + 2 * HOUR))[0]

        assert bucket.close_cv == pytest.approx(1 / 3)
        assert bucket.volume_cv == 0.0

    def test_empty_bucket_backfilled_from_nearest_earlier(self):
        """A gap reuses the previous populated span with one data point."""
        candles = [
            make_candle(T0, close=100),
            make_candle(T0 + HOUR, close=101),
            # nothing in [T0+2h, T0+4h)
            make_candle(T0 + 4 * HOUR, close=110),
            make_candle(T0 + 5 * HOUR, close=111),
        ]
        buckets = create_buckets(candles, options(total=3, end=T0 + 6 * HOUR))

        assert len(buckets) == 3
        gap = buckets[1]
        assert gap.backfilled is True
        assert gap.data_points == 1
        assert gap.close_cv == 0.0
        assert gap.price_close == 101
        assert gap.timestamp == T0 + 4 * HOUR
        assert buckets[2].price_close == 111

    def test_backfill_uses_nearest_not_oldest(self):
        candles = [
            make_candle(T0, close=100),
            make_candle(T0 + HOUR, close=101),
            make_candle(T0 + 2 * HOUR, close=150),
            make_candle(T0 + 3 * HOUR, close=151),
        ]
        buckets = create_buckets(candles, options(total=4, end=T0 + 8 * HOUR))

        assert [b.backfilled for b in buckets] == [False, False, True, True]
        assert buckets[2].price_close == 151
        assert buckets[3].price_close == 151

    def test_leading_empty_buckets_dropped_and_reported(self, caplog):
        """Spans older than the first candle are dropped, not zero-filled."""
        candles = [make_candle(T0 + 4 * HOUR), make_candle(T0 + 5 * HOUR)]

        with caplog.at_level(logging.WARNING, logger="core.buckets"):
            buckets = create_buckets(candles, options(total=3, end=T0 + 6 * HOUR), pair_id="BTC-USD")

        assert len(buckets) == 1
        assert buckets[0].data_points == 2
        assert "BTC-USD" in caplog.text
        assert "1 of 3" in caplog.text

    def test_candles_at_or_after_end_ignored(self):
        candles = hourly(6)
        buckets = create_buckets(candles, options())

        assert len(buckets) == 2
        assert buckets[-1].price_close == 103

    def test_unaligned_end_is_floored(self):
        aligned = create_buckets(hourly(4), options(end=T0 + 4 * HOUR))
        unaligned = create_buckets(hourly(4), options(end=T0 + 4 * HOUR + 1800))
        assert aligned == unaligned

    def test_candles_older_than_oldest_span_ignored(self):
        buckets = create_buckets(hourly(8), options(end=T0 + 8 * HOUR))

        assert len(buckets) == 2
        assert buckets[0].timestamp == T0 + 6 * HOUR
        assert sum(b.data_points for b in buckets) == 4

    def test_empty_input(self):
        assert create_buckets([], options()) == []


class TestBucketOptions:
    """Tests for BucketOptions and helpers."""

    def test_bucket_size_below_two_rejected(self):
        with pytest.raises(ConfigurationError):
            BucketOptions(granularity=HOUR, candles_per_bucket=1, total_buckets=2, end=T0)

    def test_start(self):
        opts = options(total=3, per_bucket=24, end=T0 + 1000)
        assert opts.aligned_end == T0
        assert opts.start == T0 - 3 * 24 * HOUR

    def test_align_timestamp(self):
        assert align_timestamp(T0 + 59, 60) == T0
        assert align_timestamp(T0 + HOUR - 1, HOUR) == T0
        assert align_timestamp(T0, HOUR) == T0

    def test_period_bucket_count(self):
        assert period_bucket_count(30, HOUR, 24) == 30
        assert period_bucket_count(1, 300, 12) == 24

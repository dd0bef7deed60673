"""Tests for the rolling candle cache."""

from core.candle_cache import CandleCache
from core.models import Candle

MINUTE = 60
T0 = 1_700_000_040.0


def make_candle(ts, close=1.0):
    return Candle(timestamp=ts, open=close, high=close, low=close, close=close, volume=1.0)


def series(start, count):
    return [make_candle(start + i * MINUTE, close=float(i)) for i in range(count)]


class TestCandleCache:
    """Tests for CandleCache.merge() and seeding."""

    def test_merge_appends_in_order(self):
        cache = CandleCache()
        cache.merge("BTC-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        result = cache.merge("BTC-USD", series(T0 + 3 * MINUTE, 2), oldest_allowed=0, max_count=100)

        timestamps = [c.timestamp for c in result]
        assert timestamps == sorted(timestamps)
        assert len(result) == 5
        assert cache.last_timestamp("BTC-USD") == T0 + 4 * MINUTE

    def test_not_newer_candles_discarded(self):
        """Overlapping pulls never create duplicates."""
        cache = CandleCache()
        cache.merge("BTC-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        result = cache.merge("BTC-USD", series(T0 + MINUTE, 4), oldest_allowed=0, max_count=100)

        timestamps = [c.timestamp for c in result]
        assert len(timestamps) == len(set(timestamps)) == 5

    def test_unsorted_input_sorted_and_deduplicated(self):
        cache = CandleCache()
        candles = [make_candle(T0 + 2 * MINUTE), make_candle(T0), make_candle(T0), make_candle(T0 + MINUTE)]
        result = cache.merge("BTC-USD", candles, oldest_allowed=0, max_count=100)

        assert [c.timestamp for c in result] == [T0, T0 + MINUTE, T0 + 2 * MINUTE]

    def test_truncates_from_front(self):
        cache = CandleCache()
        result = cache.merge("BTC-USD", series(T0, 10), oldest_allowed=0, max_count=4)

        assert len(result) == 4
        assert result[0].timestamp == T0 + 6 * MINUTE
        assert result[-1].timestamp == T0 + 9 * MINUTE

    def test_drops_candles_at_or_before_oldest_allowed(self):
        cache = CandleCache()
        result = cache.merge("BTC-USD", series(T0, 5), oldest_allowed=T0 + MINUTE, max_count=100)

        assert [c.timestamp for c in result] == [T0 + 2 * MINUTE, T0 + 3 * MINUTE, T0 + 4 * MINUTE]

    def test_empty_merge_still_ages_out(self):
        cache = CandleCache()
        cache.merge("BTC-USD", series(T0, 5), oldest_allowed=0, max_count=100)
        result = cache.merge("BTC-USD", [], oldest_allowed=T0 + 3 * MINUTE, max_count=100)

        assert [c.timestamp for c in result] == [T0 + 4 * MINUTE]

    def test_on_merge_receives_only_accepted(self):
        calls = []
        cache = CandleCache(on_merge=lambda pair_id, candles: calls.append((pair_id, candles)))

        cache.merge("ETH-USD", series(T0, 2), oldest_allowed=0, max_count=100)
        cache.merge("ETH-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        cache.merge("ETH-USD", series(T0, 3), oldest_allowed=0, max_count=100)

        assert len(calls) == 2
        assert calls[1][0] == "ETH-USD"
        assert [c.timestamp for c in calls[1][1]] == [T0 + 2 * MINUTE]

    def test_seed_applies_once(self):
        cache = CandleCache()
        assert not cache.is_seeded("BTC-USD")

        cache.seed("BTC-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        cache.seed("BTC-USD", series(T0, 10), oldest_allowed=0, max_count=100)

        assert cache.is_seeded("BTC-USD")
        assert len(cache.get("BTC-USD")) == 3

    def test_seed_does_not_trigger_persistence(self):
        calls = []
        cache = CandleCache(on_merge=lambda pair_id, candles: calls.append(pair_id))
        cache.seed("BTC-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        assert calls == []

    def test_get_returns_copy(self):
        cache = CandleCache()
        cache.merge("BTC-USD", series(T0, 2), oldest_allowed=0, max_count=100)
        cache.get("BTC-USD").clear()
        assert len(cache.get("BTC-USD")) == 2

    def test_unknown_pair(self):
        cache = CandleCache()
        assert cache.get("NOPE-USD") == []
        assert cache.last_timestamp("NOPE-USD") is None

    def test_totals(self):
        cache = CandleCache()
        cache.merge("BTC-USD", series(T0, 2), oldest_allowed=0, max_count=100)
        cache.merge("ETH-USD", series(T0, 3), oldest_allowed=0, max_count=100)
        assert len(cache) == 2
        assert cache.total_candles() == 5
        assert sorted(cache.pairs()) == ["BTC-USD", "ETH-USD"]

"""Tests for the indicator functions and IndicatorCalculator."""

import pytest

from core.indicators import IndicatorCalculator, ema, macd, macd_signal, rsi, sma


class TestSMA:
    """Tests for sma()."""

    def test_basic(self):
        assert sma([1, 2, 3, 4, 5], 3) == pytest.approx([2.0, 3.0, 4.0])

    def test_output_length(self):
        """n over m closes gives m - n + 1 values."""
        assert len(sma(list(range(50)), 12)) == 39

    def test_insufficient_data(self):
        assert sma([1, 2], 3) == []

    def test_window_equals_length(self):
        assert sma([2, 4, 6], 3) == pytest.approx([4.0])


class TestEMA:
    """Tests for ema()."""

    def test_seeded_with_sma(self):
        result = ema(list(range(1, 11)), 5)
        assert len(result) == 6
        assert result[0] == pytest.approx(3.0)

    def test_known_values(self):
        """k = 2/3: 1.5 -> 2.5 -> 3.5."""
        assert ema([1, 2, 3, 4], 2) == pytest.approx([1.5, 2.5, 3.5])

    def test_constant_series(self):
        assert ema([10.0] * 20, 5) == pytest.approx([10.0] * 16)

    def test_insufficient_data(self):
        assert ema([1, 2, 3], 5) == []

    def test_follows_trend(self):
        result = ema([float(i) for i in range(40)], 12)
        assert all(b > a for a, b in zip(result, result[1:]))


class TestMACD:
    """Tests for macd() and macd_signal()."""

    def test_aligned_on_newest_values(self):
        assert macd([1, 2, 3, 4], [1, 1]) == pytest.approx([2.0, 3.0])

    def test_empty(self):
        assert macd([], [1, 2]) == []

    def test_signal_is_ema_of_macd(self):
        values = [float(i % 7) for i in range(30)]
        assert macd_signal(values, 9) == pytest.approx(ema(values, 9))


class TestRSI:
    """Tests for rsi()."""

    def test_known_values(self):
        """Seed RS = 0.5/0.5; then gain 1.25, loss 0.25."""
        assert rsi([1, 2, 1, 3], 2) == [50.0, 83.33]

    def test_needs_more_than_period_closes(self):
        assert rsi(list(range(14)), 14) == []
        assert len(rsi(list(range(15)), 14)) == 1

    def test_output_length(self):
        assert len(rsi(list(range(20)), 14)) == 6

    def test_only_gains(self):
        assert rsi([float(i) for i in range(20)], 14) == [100.0] * 6

    def test_only_losses(self):
        assert rsi([float(20 - i) for i in range(20)], 14) == [0.0] * 6

    def test_flat(self):
        assert rsi([5.0] * 16, 14) == [50.0, 50.0]

    def test_rounded_to_two_places(self):
        closes = [44.34, 44.09, 44.15, 43.61, 44.33, 44.83, 45.10, 45.42,
                  45.84, 46.08, 45.89, 46.03, 45.61, 46.28, 46.28, 46.00]
        for value in rsi(closes, 14):
            assert value == round(value, 2)
            assert 0 <= value <= 100


class TestIndicatorCalculator:
    """Tests for IndicatorCalculator.calculate()."""

    def test_missing_windows_are_none(self):
        closes = [100.0 + i for i in range(30)]
        result = IndicatorCalculator().calculate(closes)

        assert result.sma[12] == pytest.approx(sum(closes[-12:]) / 12)
        assert result.sma[26] is not None
        assert result.sma[50] is None
        assert result.ema[200] is None
        assert result.macd.value is not None
        # 5 MACD values cannot feed a 9-period signal
        assert result.macd.signal is None
        assert result.rsi == 100.0

    def test_full_history(self):
        closes = [100.0 + (i % 10) for i in range(250)]
        result = IndicatorCalculator().calculate(closes)

        assert all(result.sma[w] is not None for w in (12, 26, 50, 200))
        assert all(result.ema[w] is not None for w in (12, 26, 50, 200))
        assert result.macd.signal is not None
        assert result.rsi is not None

    def test_macd_matches_series_functions(self):
        closes = [float(i * i % 17) for i in range(60)]
        result = IndicatorCalculator().calculate(closes)

        expected = macd(ema(closes, 12), ema(closes, 26))
        assert result.macd.value == pytest.approx(expected[-1])
        assert result.macd.signal == pytest.approx(macd_signal(expected, 9)[-1])

    def test_formatter_applied_to_final_values(self):
        closes = [100.0 + i / 3 for i in range(30)]
        result = IndicatorCalculator().calculate(closes, formatter=lambda v: round(v, 1))

        assert result.sma[12] == round(sum(closes[-12:]) / 12, 1)
        assert result.ema[12] == round(result.ema[12], 1)

    def test_custom_windows(self):
        result = IndicatorCalculator(windows=(2, 3)).calculate([1.0, 2.0, 3.0])
        assert set(result.sma) == {2, 3}
        assert result.sma[2] == pytest.approx(2.5)

    def test_empty_series(self):
        result = IndicatorCalculator().calculate([])
        assert all(value is None for value in result.sma.values())
        assert result.macd.value is None
        assert result.rsi is None

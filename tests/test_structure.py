"""Deterministic tests for swing detection, S/R clustering and Fibonacci levels."""

import pytest

from signaldesk.analysis.models import Candle, SwingPoint
from signaldesk.analysis.structure import (
    analyse_structure,
    cluster_levels,
    detect_market_structure,
    fibonacci_levels,
    find_swing_points,
)


# ── Candle fixtures ──────────────────────────────────────────────────────

def _make_candle(i: int, h: float, l: float, c: float | None = None) -> Candle:
    c = (h + l) / 2 if c is None else c
    return Candle(time=i * 14400, open=c, high=h, low=l, close=c, vwap=c, volume=1.0, count=1)


def _zigzag_candles(n: int) -> list[Candle]:
    """Triangle wave between 90 and 110 with a 20-bar period.

    Closes peak at 110 on bars 10, 30, 50 … and trough at 90 on bars
    0, 20, 40 …; highs/lows sit one point either side of the close.
    """
    candles = []
    for i in range(n):
        phase = i % 20
        close = 90 + 2 * min(phase, 20 - phase)
        candles.append(_make_candle(i, close + 1, close - 1, close))
    return candles


def _points(prices: list[float]) -> list[SwingPoint]:
    return [SwingPoint(price=p, index=i * 10) for i, p in enumerate(prices)]


# ── Swing points ─────────────────────────────────────────────────────────


class TestSwingPoints:
    def test_single_peak_and_trough(self):
        highs = [1, 2, 3, 10, 3, 2, 1]
        lows = [5, 4, 3, 1, 3, 4, 5]
        candles = [_make_candle(i, h + 10, l) for i, (h, l) in enumerate(zip(highs, lows))]
        swing_highs, swing_lows = find_swing_points(candles, 3, 3)
        assert swing_highs == [SwingPoint(price=20, index=3)]
        assert swing_lows == [SwingPoint(price=1, index=3)]

    def test_equal_highs_are_not_swings(self):
        highs = [1, 2, 3, 10, 10, 2, 1, 0]
        candles = [_make_candle(i, h + 10, 0) for i, h in enumerate(highs)]
        swing_highs, _ = find_swing_points(candles, 3, 3)
        assert swing_highs == []

    def test_edges_never_swing(self):
        # Extreme values on the first and last bars only
        highs = [50, 2, 3, 4, 3, 2, 50]
        candles = [_make_candle(i, h + 10, 0) for i, h in enumerate(highs)]
        swing_highs, _ = find_swing_points(candles, 3, 3)
        assert swing_highs == []

    def test_zigzag_swings_in_time_order(self):
        swing_highs, swing_lows = find_swing_points(_zigzag_candles(60), 3, 3)
        assert [p.index for p in swing_highs] == [10, 30, 50]
        assert [p.index for p in swing_lows] == [20, 40]
        assert all(p.price == 111 for p in swing_highs)
        assert all(p.price == 89 for p in swing_lows)


# ── Level clustering ─────────────────────────────────────────────────────


class TestClusterLevels:
    def test_nearby_points_merge(self):
        points = [
            SwingPoint(price=100.0, index=10),
            SwingPoint(price=100.2, index=50),
            SwingPoint(price=110.0, index=90),
        ]
        levels = cluster_levels(points, last_price=100.0, total_candles=100)
        assert len(levels) == 2
        top, second = levels
        assert top.price == pytest.approx(100.1)
        assert top.touches == 2
        assert top.recency == pytest.approx(0.5)
        assert second.price == pytest.approx(110.0)
        assert second.recency == pytest.approx(0.9)

    def test_ranked_by_touches_and_recency(self):
        points = [
            SwingPoint(price=100.0, index=10),
            SwingPoint(price=100.2, index=50),
            SwingPoint(price=110.0, index=90),
        ]
        levels = cluster_levels(points, last_price=100.0, total_candles=100)
        ranks = [lvl.rank for lvl in levels]
        assert ranks == sorted(ranks, reverse=True)
        # 2 × (0.5 + 0.5) beats 1 × (0.5 + 0.9)
        assert ranks[0] == pytest.approx(2.0)
        assert ranks[1] == pytest.approx(1.4)

    def test_empty(self):
        assert cluster_levels([], last_price=100.0, total_candles=100) == []


# ── Market structure ─────────────────────────────────────────────────────


class TestMarketStructure:
    def test_bullish(self):
        ms = detect_market_structure(_points([10, 11, 12, 13]), _points([5, 6, 7, 8]))
        assert ms.label == "Bullish"
        assert ms.strength == pytest.approx(100.0)

    def test_bearish(self):
        ms = detect_market_structure(_points([13, 12, 11, 10]), _points([8, 7, 6, 5]))
        assert ms.label == "Bearish"
        assert ms.strength == pytest.approx(100.0)

    def test_mixed(self):
        ms = detect_market_structure(_points([10, 11, 12, 13]), _points([8, 7, 6, 5]))
        assert ms.label == "Mixed"
        assert ms.strength == 50.0

    def test_only_last_four_swings_count(self):
        # Early lower highs are outside the look-back
        highs = _points([20, 19, 18, 10, 11, 12, 13])
        lows = _points([15, 14, 13, 5, 6, 7, 8])
        assert detect_market_structure(highs, lows).label == "Bullish"

    def test_too_few_swings(self):
        ms = detect_market_structure(_points([10]), _points([5, 6]))
        assert ms.label == "Mixed"
        assert ms.strength == 0.0


# ── Fibonacci ────────────────────────────────────────────────────────────


class TestFibonacci:
    def test_levels(self):
        fib = fibonacci_levels(200.0, 100.0)
        assert fib.level236 == pytest.approx(176.4)
        assert fib.level382 == pytest.approx(161.8)
        assert fib.level500 == pytest.approx(150.0)
        assert fib.level618 == pytest.approx(138.2)
        assert fib.level786 == pytest.approx(121.4)
        assert fib.ext1272 == pytest.approx(227.2)
        assert fib.ext1618 == pytest.approx(261.8)
        assert fib.ext2000 == pytest.approx(300.0)

    def test_retracements_descend(self):
        fib = fibonacci_levels(200.0, 100.0)
        assert fib.level236 > fib.level382 > fib.level500 > fib.level618 > fib.level786

    def test_to_dict_keys(self):
        d = fibonacci_levels(200.0, 100.0).to_dict()
        assert set(d) == {
            "level236", "level382", "level500", "level618", "level786",
            "ext1272", "ext1618", "ext2000",
        }


# ── Full structure ───────────────────────────────────────────────────────


class TestAnalyseStructure:
    def test_zigzag_support_and_resistance(self):
        candles = _zigzag_candles(106)
        last = candles[-1].close
        assert last == 100
        info = analyse_structure(candles, last)
        assert info.support == pytest.approx(89.0)
        assert info.resistance == pytest.approx(111.0)
        assert info.swing_high == 111
        assert info.swing_low == 89
        assert info.fib.level500 == pytest.approx(100.0)

    def test_support_below_and_resistance_above_price(self):
        candles = _zigzag_candles(106)
        info = analyse_structure(candles, 100.0)
        assert info.support < 100.0 < info.resistance
        assert all(lvl.touches >= 1 for lvl in info.support_levels)

    def test_no_swings_falls_back_to_extremes(self):
        candles = [_make_candle(i, 101 + i, 99 + i) for i in range(80)]
        info = analyse_structure(candles, candles[-1].close)
        assert info.swing_highs == ()
        assert info.swing_lows == ()
        assert info.support is None
        assert info.resistance is None
        # Extremes of the last 50 bars
        assert info.swing_high == 101 + 79
        assert info.swing_low == 99 + 30
        assert info.market_structure.label == "Mixed"

"""Tests for entry, stop, target and verdict construction."""

import pytest

from signaldesk.analysis.models import AdxResult, EntryZone, SignalScore
from signaldesk.analysis.structure import fibonacci_levels
from signaldesk.analysis.trade_plan import (
    assess_confidence,
    assess_risk_level,
    build_entry_zone,
    build_targets,
    build_trade_levels,
    decide_verdict,
    is_breakout,
    place_stop,
)

_STRONG_ADX = AdxResult(adx=30.0, plus_di=30.0, minus_di=10.0)
_FAR_FIB = fibonacci_levels(200.0, 150.0)  # every level far above a price of ~100
_LOW_FIB = fibonacci_levels(100.0, 90.0)  # extensions at 102.72 / 106.18


def _signals(
    trend: float = 0.0,
    momentum: float = 0.0,
    volatility: float = 0.0,
    structure: float = 0.0,
    volume: float = 0.0,
    composite: float = 0.0,
) -> SignalScore:
    return SignalScore(
        trend=trend,
        momentum=momentum,
        volatility=volatility,
        structure=structure,
        volume=volume,
        composite=composite,
    )


# ── Entry zone ───────────────────────────────────────────────────────────


class TestEntryZone:
    def test_breakout_detection(self):
        assert is_breakout(65, _STRONG_ADX)
        assert not is_breakout(60, _STRONG_ADX)
        assert not is_breakout(65, None)
        assert not is_breakout(65, AdxResult(adx=30.0, plus_di=10.0, minus_di=30.0))

    def test_breakout_band_around_price(self):
        zone = build_entry_zone(100.0, 2.0, 70.0, 30.0, _STRONG_ADX, None, _FAR_FIB)
        assert zone.anchor == "breakout"
        assert zone.low == pytest.approx(99.4)
        assert zone.high == pytest.approx(101.0)

    def test_breakout_wins_over_support(self):
        zone = build_entry_zone(100.0, 2.0, 70.0, 30.0, _STRONG_ADX, 97.0, _FAR_FIB)
        assert zone.anchor == "breakout"

    def test_support_zone(self):
        zone = build_entry_zone(100.0, 2.0, 0.0, -5.0, None, 95.0, _FAR_FIB)
        assert zone.anchor == "support"
        assert zone.low == pytest.approx(94.525)
        assert zone.high == pytest.approx(95.95)

    def test_support_zone_bullish_composite_widens_low(self):
        zone = build_entry_zone(100.0, 2.0, 0.0, 10.0, None, 95.0, _FAR_FIB)
        assert zone.high == pytest.approx(95.95)
        assert zone.low == pytest.approx(95.95 * 0.985)

    def test_distant_support_ignored(self):
        zone = build_entry_zone(100.0, 2.0, 0.0, -5.0, None, 85.0, _FAR_FIB)
        assert zone.anchor == "atr_pullback"

    def test_golden_pocket(self):
        fib = fibonacci_levels(110.0, 90.0)  # 61.8 % at 97.64, 78.6 % at 94.28
        zone = build_entry_zone(96.0, 2.0, 0.0, 0.0, None, None, fib)
        assert zone.anchor == "golden_pocket"
        assert zone.low == pytest.approx(94.28 * 0.99)
        assert zone.high == pytest.approx(97.64 * 1.005)

    def test_golden_pocket_capped_below_price_when_bullish(self):
        fib = fibonacci_levels(110.0, 90.0)
        zone = build_entry_zone(96.0, 2.0, 0.0, 10.0, None, None, fib)
        assert zone.high == pytest.approx(96.0 * 0.995)
        assert zone.low == pytest.approx(94.28 * 0.99)

    def test_atr_pullback(self):
        zone = build_entry_zone(100.0, 2.0, 0.0, -5.0, None, None, _FAR_FIB)
        assert zone.anchor == "atr_pullback"
        assert zone.low == pytest.approx(96.4)
        assert zone.high == pytest.approx(98.8)

    def test_low_never_above_high(self):
        zone = build_entry_zone(100.0, 0.0, 0.0, -5.0, None, None, _FAR_FIB)
        assert zone.low <= zone.high


# ── Stop ─────────────────────────────────────────────────────────────────


class TestStop:
    def test_breakout_stop(self):
        zone = EntryZone(low=99.4, high=101.0, anchor="breakout")
        assert place_stop(zone, 2.0, None) == pytest.approx(100.2 - 3.0)

    def test_stop_under_support(self):
        zone = EntryZone(low=96.0, high=98.0, anchor="atr_pullback")
        assert place_stop(zone, 2.0, 90.0) == pytest.approx(90.0 * 0.985)

    def test_support_inside_zone_uses_atr(self):
        zone = EntryZone(low=96.0, high=98.0, anchor="support")
        assert place_stop(zone, 2.0, 97.0) == pytest.approx(93.0)

    def test_minimum_distance(self):
        zone = EntryZone(low=99.0, high=101.0, anchor="atr_pullback")
        assert place_stop(zone, 0.1, None) == pytest.approx(98.5)

    def test_zero_atr(self):
        zone = EntryZone(low=99.0, high=101.0, anchor="breakout")
        assert place_stop(zone, 0.0, None) == pytest.approx(98.5)


# ── Targets ──────────────────────────────────────────────────────────────


class TestTargets:
    def test_risk_multiples(self):
        t1, t2, t3 = build_targets(100.0, 2.0, None, _LOW_FIB, 5.0)
        assert (t1, t2, t3) == pytest.approx((103.0, 105.0, 108.0))

    def test_resistance_inside_t1(self):
        # T1 pulled to 101.49 then pushed back to the 1.2R floor
        t1, t2, t3 = build_targets(100.0, 2.0, 102.0, _LOW_FIB, 5.0)
        assert (t1, t2, t3) == pytest.approx((102.4, 104.0, 108.0))

    def test_resistance_between_t1_and_t2(self):
        t1, t2, t3 = build_targets(100.0, 2.0, 104.0, _LOW_FIB, 5.0)
        assert (t1, t2, t3) == pytest.approx((103.0, 104.6, 108.0))

    def test_fib_extensions_raise_targets(self):
        fib = fibonacci_levels(120.0, 100.0)  # 1.272 at 125.44, 1.618 at 132.36
        t1, t2, t3 = build_targets(100.0, 2.0, None, fib, 5.0)
        assert t2 == pytest.approx(125.44)
        assert t3 == pytest.approx(132.36)

    def test_cap_reorders(self):
        # max move 0.8 % caps T2 under T1, so T2/T3 step 5 % apart
        t1, t2, t3 = build_targets(100.0, 2.0, None, _LOW_FIB, 0.1)
        assert t1 == pytest.approx(103.0)
        assert t2 == pytest.approx(103.0 * 1.05)
        assert t3 == pytest.approx(103.0 * 1.05 * 1.05)

    def test_zero_atr_percent_uses_default_cap(self):
        fib = fibonacci_levels(300.0, 100.0)
        _, t2, t3 = build_targets(100.0, 2.0, None, fib, 0.0)
        assert t2 == pytest.approx(130.0)
        assert t3 == pytest.approx(130.0 * 1.15)

    @pytest.mark.parametrize("atr_pct", [0.0, 0.1, 1.0, 5.0, 20.0])
    def test_always_ascending(self, atr_pct):
        t1, t2, t3 = build_targets(100.0, 2.0, 101.0, _FAR_FIB, atr_pct)
        assert 100.0 < t1 < t2 < t3


class TestTradeLevels:
    def test_breakout_levels_ordered(self):
        signals = _signals(trend=70.0, composite=40.0)
        levels, entry = build_trade_levels(
            100.0, 2.0, 2.0, signals, _STRONG_ADX, 95.0, 110.0, _FAR_FIB
        )
        assert entry.is_breakout
        assert levels.stop < levels.entry_mid < levels.t1 < levels.t2 < levels.t3
        assert levels.entry_mid == pytest.approx(entry.mid)

    def test_reward_ratios(self):
        signals = _signals(composite=-10.0)
        levels, _ = build_trade_levels(100.0, 2.0, 2.0, signals, None, None, None, _FAR_FIB)
        r1, r2, r3 = levels.reward_ratios()
        assert levels.risk > 0
        assert 0 < r1 < r2 < r3


# ── Verdict ──────────────────────────────────────────────────────────────


class TestVerdict:
    @pytest.mark.parametrize(
        "composite,expected",
        [(55.0, "Strong Buy"), (50.0, "Strong Buy"), (25.0, "Buy"), (20.0, "Buy"), (10.0, "Wait")],
    )
    def test_base_thresholds(self, composite, expected):
        assert decide_verdict(_signals(composite=composite), 50.0, "Neutral") == expected

    def test_oversold_steps_up(self):
        signals = _signals(composite=25.0, momentum=10.0)
        assert decide_verdict(signals, 20.0, "Neutral") == "Strong Buy"

    def test_oversold_ignored_in_bear_trend(self):
        signals = _signals(composite=25.0, momentum=10.0, trend=-30.0)
        assert decide_verdict(signals, 20.0, "Bear") == "Buy"

    def test_overbought_steps_down(self):
        signals = _signals(composite=55.0, momentum=-10.0)
        assert decide_verdict(signals, 85.0, "Neutral") == "Buy"

    def test_step_down_from_wait_stays_wait(self):
        signals = _signals(composite=0.0, momentum=-10.0)
        assert decide_verdict(signals, 85.0, "Neutral") == "Wait"

    def test_distribution_in_bear_trend_forces_wait(self):
        signals = _signals(composite=55.0, trend=-30.0, volume=-40.0)
        assert decide_verdict(signals, 50.0, "Bear") == "Wait"

    def test_deep_bear_trend_forces_wait(self):
        signals = _signals(composite=25.0, trend=-70.0)
        assert decide_verdict(signals, 50.0, "Strong Bear") == "Wait"

    def test_mild_bear_keeps_buy(self):
        signals = _signals(composite=25.0, trend=-30.0)
        assert decide_verdict(signals, 50.0, "Bear") == "Buy"


# ── Risk & confidence ────────────────────────────────────────────────────


class TestRiskAndConfidence:
    @pytest.mark.parametrize(
        "atr_pct,composite,expected",
        [
            (1.0, 40.0, "Low"),
            (1.0, -40.0, "Low"),
            (1.0, 10.0, "Medium"),
            (3.0, 40.0, "Medium"),
            (5.0, 40.0, "High"),
            (7.0, 40.0, "Very High"),
        ],
    )
    def test_risk_level(self, atr_pct, composite, expected):
        assert assess_risk_level(atr_pct, composite) == expected

    def test_all_agree_high(self):
        signals = _signals(trend=20, momentum=20, structure=20, volume=40, composite=10)
        assert assess_confidence(signals) == "High"

    def test_three_agree_with_strong_composite(self):
        signals = _signals(trend=20, momentum=20, structure=20, composite=40)
        assert assess_confidence(signals) == "High"

    def test_three_agree_weak_composite(self):
        signals = _signals(trend=20, momentum=20, structure=20, composite=10)
        assert assess_confidence(signals) == "Medium"

    def test_two_agree_moderate_composite(self):
        signals = _signals(trend=20, momentum=20, composite=25)
        assert assess_confidence(signals) == "Medium"

    def test_little_agreement(self):
        assert assess_confidence(_signals(trend=20, composite=25)) == "Low"

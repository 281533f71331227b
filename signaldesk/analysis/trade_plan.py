"""Verdict and trade-plan construction — pure math, no I/O.

Long-only: the engine never recommends a short.  Bearish conditions map
to "Wait" and the trade levels are informational.

Entry zone priority:
    1. Breakout band around price when a strong, ADX-confirmed uptrend runs.
    2. Nearby support (within 10 % of price).
    3. The 0.618–0.786 Fibonacci "golden pocket" when price sits inside it.
    4. An ATR pullback band below price.

Stop sits below support or a multiple of ATR under the entry, never closer
than 1.5 % of entry.  Targets step out in risk multiples, bend around
resistance and Fibonacci extensions, and are capped by an ATR-derived
maximum move.
"""

from typing import Optional

from signaldesk.analysis.models import (
    AdxResult,
    Confidence,
    EntryZone,
    FibLevels,
    RiskLevel,
    SignalScore,
    TradeLevels,
    TrendLabel,
    Verdict,
)

MIN_STOP_PCT = 0.015
MAX_MOVE_PCT_CAP = 60.0
DEFAULT_MAX_MOVE_PCT = 30.0

_VERDICT_LADDER: tuple[Verdict, ...] = ("Wait", "Buy", "Strong Buy")


# ── Entry ────────────────────────────────────────────────────────────────


def is_breakout(trend_score: float, adx_data: Optional[AdxResult]) -> bool:
    """Strong, ADX-confirmed bullish trend."""
    return (
        trend_score > 60
        and adx_data is not None
        and adx_data.adx > 25
        and adx_data.plus_di > adx_data.minus_di
    )


def build_entry_zone(
    last_price: float,
    atr: float,
    trend_score: float,
    composite: float,
    adx_data: Optional[AdxResult],
    support: Optional[float],
    fib: FibLevels,
) -> EntryZone:
    """Choose the entry band following the fixed branch priority.

    For a bullish composite, non-breakout zones are pulled down so the
    band tops out at 0.995 × price at most.
    """
    if is_breakout(trend_score, adx_data):
        low = last_price - atr * 0.3
        high = last_price + atr * 0.5
        anchor = "breakout"
    elif support is not None and support > last_price * 0.9:
        low = support * 0.995
        high = support * 1.01
        anchor = "support"
    elif fib.level786 < last_price < fib.level618:
        low = fib.level786 * 0.99
        high = fib.level618 * 1.005
        anchor = "golden_pocket"
    else:
        pullback = atr * 1.2
        low = last_price - pullback * 1.5
        high = last_price - pullback * 0.5
        anchor = "atr_pullback"

    if composite > 0 and anchor != "breakout":
        high = min(high, last_price * 0.995)
        low = min(low, high * 0.985)

    return EntryZone(low=min(low, high), high=high, anchor=anchor)


# ── Stop ─────────────────────────────────────────────────────────────────


def place_stop(entry: EntryZone, atr: float, support: Optional[float]) -> float:
    """Stop-loss price below the entry midpoint.

    - **Breakout**: ``entry_mid − 1.5 × ATR``
    - **Support under the zone**: ``support × 0.985``
    - **Otherwise**: ``entry_mid − 2 × ATR``

    The distance is then widened to at least 1.5 % of ``entry_mid``.
    """
    entry_mid = entry.mid
    if entry.is_breakout:
        stop = entry_mid - atr * 1.5
    elif support is not None and support < entry.low:
        stop = support * 0.985
    else:
        stop = entry_mid - atr * 2

    min_dist = abs(entry_mid) * MIN_STOP_PCT
    if entry_mid - stop < min_dist:
        stop = entry_mid - min_dist

    if entry_mid - stop <= 0:
        stop = entry_mid - abs(entry_mid) * MIN_STOP_PCT
    return stop


# ── Targets ──────────────────────────────────────────────────────────────


def _step_above(prev: float, risk: float) -> float:
    return prev * 1.05 if prev > 0 else prev + risk


def build_targets(
    entry_mid: float,
    risk: float,
    resistance: Optional[float],
    fib: FibLevels,
    atr_percent: float,
) -> tuple[float, float, float]:
    """Compute T1 < T2 < T3 above *entry_mid*.

    Steps:
        1. T1 = 1.5R, pulled just under resistance when it sits inside.
        2. T2 = max(Fib 1.272, 2.5R), pushed just over resistance when it
           sits between T1 and T2.
        3. T3 = max(Fib 1.618, 4R).
        4. Minimum gaps: T1 ≥ 1.2R, T2 ≥ T1 + 0.8R, T3 ≥ T2 + 0.8R.
        5. Cap T2 at ``min(ATR% × 8, 60)`` % above entry, T3 at 1.15 × that.
        6. Re-order anything the cap pushed out of sequence.
    """
    max_move_pct = (
        min(atr_percent * 8, MAX_MOVE_PCT_CAP) if atr_percent > 0 else DEFAULT_MAX_MOVE_PCT
    )
    max_t2 = entry_mid * (1 + max_move_pct / 100)
    max_t3 = max_t2 * 1.15

    t1 = entry_mid + risk * 1.5
    if resistance is not None and entry_mid < resistance < t1:
        t1 = resistance * 0.995

    t2 = max(fib.ext1272, entry_mid + risk * 2.5)
    if resistance is not None and t1 < resistance < t2:
        t2 = resistance * 1.005

    t3 = max(fib.ext1618, entry_mid + risk * 4)

    t1 = max(t1, entry_mid + risk * 1.2)
    t2 = max(t2, t1 + risk * 0.8)
    t3 = max(t3, t2 + risk * 0.8)

    t2 = min(t2, max_t2)
    t3 = min(t3, max_t3)

    if t2 <= t1:
        t2 = _step_above(t1, risk)
    if t3 <= t2:
        t3 = _step_above(t2, risk)

    return t1, t2, t3


def build_trade_levels(
    last_price: float,
    atr: float,
    atr_percent: float,
    signals: SignalScore,
    adx_data: Optional[AdxResult],
    support: Optional[float],
    resistance: Optional[float],
    fib: FibLevels,
) -> tuple[TradeLevels, EntryZone]:
    """Assemble entry, stop and targets.

    Returns the ``TradeLevels`` and the ``EntryZone`` they were built from
    (its anchor drives the breakout reason sentence).
    """
    entry = build_entry_zone(
        last_price, atr, signals.trend, signals.composite, adx_data, support, fib
    )
    stop = place_stop(entry, atr, support)
    entry_mid = entry.mid
    t1, t2, t3 = build_targets(entry_mid, entry_mid - stop, resistance, fib, atr_percent)

    levels = TradeLevels(
        entry_low=entry.low,
        entry_high=entry.high,
        entry_mid=entry_mid,
        stop=stop,
        t1=t1,
        t2=t2,
        t3=t3,
    )
    return levels, entry


# ── Verdict ──────────────────────────────────────────────────────────────


def _step(verdict: Verdict, delta: int) -> Verdict:
    idx = _VERDICT_LADDER.index(verdict) + delta
    return _VERDICT_LADDER[max(0, min(idx, len(_VERDICT_LADDER) - 1))]


def decide_verdict(
    signals: SignalScore,
    rsi14: float,
    trend: TrendLabel,
) -> Verdict:
    """Map the composite score plus guard conditions to a long-only verdict.

    Rules:
        - Base: composite ≥ 50 → Strong Buy, ≥ 20 → Buy, else Wait.
        - Extremely oversold (RSI < 25) with positive momentum and a
          non-bearish trend steps the verdict up one tier.
        - Extremely overbought (RSI > 80) with negative momentum and a
          non-bullish trend steps it down one tier.
        - A bearish trend with heavy distribution (volume < −20) or a
          deeply negative trend score (< −50) forces Wait.
    """
    if signals.composite >= 50:
        verdict: Verdict = "Strong Buy"
    elif signals.composite >= 20:
        verdict = "Buy"
    else:
        verdict = "Wait"

    bearish = trend in ("Bear", "Strong Bear")
    bullish = trend in ("Bull", "Strong Bull")

    if rsi14 < 25 and signals.momentum > 0 and not bearish and signals.trend > -30:
        verdict = _step(verdict, 1)
    elif rsi14 > 80 and signals.momentum < 0 and not bullish and signals.trend < 30:
        verdict = _step(verdict, -1)

    if bearish and (signals.volume < -20 or signals.trend < -50):
        verdict = "Wait"

    return verdict


# ── Risk & confidence ────────────────────────────────────────────────────


def assess_risk_level(atr_percent: float, composite: float) -> RiskLevel:
    if atr_percent < 2 and abs(composite) > 30:
        return "Low"
    if atr_percent < 4:
        return "Medium"
    if atr_percent < 6:
        return "High"
    return "Very High"


def assess_confidence(signals: SignalScore) -> Confidence:
    """Confidence from how many bullish sub-scores agree."""
    agreeing = sum(
        (
            signals.trend > 15,
            signals.momentum > 15,
            signals.structure > 15,
            signals.volume > 8,
        )
    )
    if agreeing >= 4 or (agreeing >= 3 and signals.composite >= 40):
        return "High"
    if agreeing >= 3 or (agreeing >= 2 and signals.composite >= 25):
        return "Medium"
    return "Low"

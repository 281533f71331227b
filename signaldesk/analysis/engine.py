"""SignalDesk — analysis engine.

Turns an ordered candle history into one immutable ``AnalysisResult``:

    candles → indicators / structure → scores → verdict / levels → result

Pure and synchronous: the same candles always yield the same result
(apart from the embedded timestamp).  Long-only.
"""

import logging
import time
from typing import Optional

from signaldesk.analysis import indicators as ta
from signaldesk.analysis.formatting import format_price
from signaldesk.analysis.models import (
    AnalysisError,
    AnalysisMeta,
    AnalysisResult,
    Candle,
    EntryZone,
    IndicatorSet,
    InsufficientDataError,
    RiskSummary,
    SignalScore,
    StructureInfo,
    TradeLevels,
    TradePlan,
    TrendLabel,
    Verdict,
)
from signaldesk.analysis.scoring import classify_trend, score_signals
from signaldesk.analysis.structure import analyse_structure
from signaldesk.analysis.trade_plan import (
    assess_confidence,
    assess_risk_level,
    build_trade_levels,
    decide_verdict,
)

logger = logging.getLogger("signaldesk")

MIN_CANDLES = 60
DEFAULT_QUOTE = "USD"
FALLBACK_ATR_PCT = 0.02


def quote_currency(pair: str) -> str:
    """Quote segment of ``"BTC/USD"`` / ``"eth-eur"`` style labels."""
    clean = pair.strip().upper().replace("-", "/")
    parts = clean.split("/")
    if len(parts) > 1 and parts[1]:
        return parts[1]
    return DEFAULT_QUOTE


def compute_indicators(candles: list[Candle]) -> IndicatorSet:
    """Compute every indicator; unavailable ones are left as ``None``."""
    closes = [c.close for c in candles]
    last_price = closes[-1]

    rsi14 = ta.rsi(closes, 14)
    rsi7 = ta.rsi(closes, 7)
    atr14 = ta.atr(candles, 14)
    if atr14 is None:
        atr14 = last_price * FALLBACK_ATR_PCT

    return IndicatorSet(
        rsi14=rsi14 if rsi14 is not None else 50.0,
        rsi7=rsi7 if rsi7 is not None else 50.0,
        ema20=ta.ema(closes, 20),
        ema50=ta.ema(closes, 50),
        ema200=ta.ema(closes, 200),
        macd=ta.macd(closes),
        atr14=atr14,
        atr_percent=atr14 / last_price * 100,
        stochastic=ta.stochastic(candles),
        bollinger=ta.bollinger(closes),
        obv_trend=ta.obv_trend(candles),
        adx=ta.adx(candles),
    )


def _degraded_reasons(ind: IndicatorSet) -> list[str]:
    reasons: list[str] = []
    if ind.ema200 is None:
        logger.debug("EMA(200) unavailable, trend scored without EMA stack")
        reasons.append(
            "Limited historical data - EMA(200) unavailable. "
            "Analysis based on shorter-term indicators only."
        )
    for name, value in (
        ("MACD", ind.macd),
        ("ADX", ind.adx),
        ("Bollinger Bands", ind.bollinger),
        ("Stochastic", ind.stochastic),
    ):
        if value is None:
            logger.debug("%s unavailable, scoring it as neutral", name)
            reasons.append(
                f"{name} unavailable - insufficient history, treated as neutral."
            )
    return reasons


def build_reasons(
    *,
    indicators: IndicatorSet,
    structure: StructureInfo,
    signals: SignalScore,
    trend: TrendLabel,
    levels: TradeLevels,
    entry: EntryZone,
    verdict: Verdict,
    last_price: float,
    quote: str,
) -> tuple[str, ...]:
    """Ordered, human-readable explanation of the recommendation."""
    reasons = _degraded_reasons(indicators)
    adx_data = indicators.adx

    if entry.is_breakout:
        adx_value = adx_data.adx if adx_data else 0.0
        reasons.append(
            f"Strong trend breakout detected (ADX {adx_value:.1f}) - ATR-based entry "
            "band around current price for pullback or confirmation."
        )

    if signals.trend > 30:
        reasons.append(f"Trend is {trend.lower()} with EMA alignment favoring longs.")
    elif signals.trend < -30:
        reasons.append(f"Trend is {trend.lower()} with EMA alignment favoring shorts.")
    else:
        reasons.append("Trend is neutral - no clear directional bias.")

    rsi14 = indicators.rsi14
    if rsi14 < 35:
        reasons.append(
            f"RSI(14) = {rsi14:.1f} indicates oversold conditions - potential bounce."
        )
    elif rsi14 > 65:
        reasons.append(
            f"RSI(14) = {rsi14:.1f} indicates overbought conditions - potential pullback."
        )
    else:
        reasons.append(f"RSI(14) = {rsi14:.1f} is in neutral territory.")

    macd = indicators.macd
    if macd is not None:
        if macd.histogram > 0 and macd.line > macd.signal:
            reasons.append("MACD bullish: histogram positive and above signal line.")
        elif macd.histogram < 0 and macd.line < macd.signal:
            reasons.append("MACD bearish: histogram negative and below signal line.")
        else:
            reasons.append("MACD mixed: watching for crossover confirmation.")

    if structure.support is not None:
        dist = (last_price - structure.support) / last_price * 100
        if 0 < dist < 5:
            reasons.append(
                f"Price is {dist:.1f}% above key support at "
                f"{format_price(structure.support, quote)}."
            )

    atr_pct = indicators.atr_percent
    reasons.append(
        f"ATR(14) volatility = {atr_pct:.2f}% ({'moderate' if atr_pct < 3 else 'high'})."
    )

    if adx_data is not None:
        if adx_data.adx > 25:
            direction = "bullish" if adx_data.plus_di > adx_data.minus_di else "bearish"
            reasons.append(
                f"ADX = {adx_data.adx:.1f} indicates strong {direction} trend."
            )
        else:
            reasons.append(f"ADX = {adx_data.adx:.1f} indicates weak/ranging market.")

    rr1, rr2, rr3 = levels.reward_ratios()
    reasons.append(
        f"Risk-to-reward ratios: T1 {rr1:.2f}:1, T2 {rr2:.2f}:1, T3 {rr3:.2f}:1."
    )
    reasons.append(f"Composite signal score: {signals.composite:.1f}/100.")

    if verdict == "Wait":
        reasons.append(
            "Verdict is Wait - trade levels shown are informational only. "
            "Wait for better conditions before trading."
        )

    return tuple(reasons)


def analyse_candles(
    pair: str,
    candles: list[Candle],
    *,
    timestamp: Optional[int] = None,
) -> AnalysisResult:
    """Analyse a candle history and return a long-only trade recommendation.

    Args:
        pair: ``"BASE/QUOTE"`` or ``"BASE-QUOTE"`` label; only the quote is
            used, for price formatting.
        candles: Candle history ordered oldest-first (at least 60).
        timestamp: Epoch milliseconds to stamp on the result (defaults to
            the current time).

    Returns:
        A frozen ``AnalysisResult``.

    Raises:
        InsufficientDataError: Fewer than ``MIN_CANDLES`` candles.
        AnalysisError: The last close is not a positive price.
    """
    if len(candles) < MIN_CANDLES:
        raise InsufficientDataError(actual=len(candles), required=MIN_CANDLES)

    last_price = candles[-1].close
    if not last_price > 0:
        raise AnalysisError(f"Last close must be positive, got {last_price}")

    quote = quote_currency(pair)

    indicators = compute_indicators(candles)
    structure = analyse_structure(candles, last_price)
    signals = score_signals(indicators, structure, last_price)
    trend = classify_trend(signals.trend)

    levels, entry = build_trade_levels(
        last_price,
        indicators.atr14,
        indicators.atr_percent,
        signals,
        indicators.adx,
        structure.support,
        structure.resistance,
        structure.fib,
    )
    verdict = decide_verdict(signals, indicators.rsi14, trend)

    reasons = build_reasons(
        indicators=indicators,
        structure=structure,
        signals=signals,
        trend=trend,
        levels=levels,
        entry=entry,
        verdict=verdict,
        last_price=last_price,
        quote=quote,
    )

    logger.info(
        "Analysed %s (%d candles): %s, composite %.1f, trend %s",
        pair, len(candles), verdict, signals.composite, trend,
    )

    return AnalysisResult(
        verdict=verdict,
        trade_plan=TradePlan(
            entry_zone=(
                f"{format_price(levels.entry_low, quote)} - "
                f"{format_price(levels.entry_high, quote)}"
            ),
            stop_loss=format_price(levels.stop, quote),
            target1=format_price(levels.t1, quote),
            target2=format_price(levels.t2, quote),
            target3=format_price(levels.t3, quote),
        ),
        risk_summary=RiskSummary(
            risk_level=assess_risk_level(indicators.atr_percent, signals.composite),
            confidence=assess_confidence(signals),
            reasons=reasons,
        ),
        levels=levels,
        meta=AnalysisMeta(
            trend=trend,
            adx=indicators.adx.adx if indicators.adx else 0.0,
            indicators=indicators,
            signals=signals,
            support=structure.support,
            resistance=structure.resistance,
            fib=structure.fib,
            swing_high=structure.swing_high,
            swing_low=structure.swing_low,
            last_price=last_price,
            quote=quote,
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        ),
    )

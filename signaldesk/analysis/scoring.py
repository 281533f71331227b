"""Signal scoring — five sub-scores and the weighted composite.

Each sub-score lies in [-100, 100]; positive is bullish (or, for
volatility, calmer).  Pure functions, no I/O.
"""

from typing import Optional

from signaldesk.analysis.models import (
    AdxResult,
    BollingerBands,
    FibLevels,
    IndicatorSet,
    MacdResult,
    MarketStructure,
    ObvTrend,
    SignalScore,
    StochasticResult,
    StructureInfo,
    TrendLabel,
)

COMPOSITE_WEIGHTS = {
    "trend": 0.30,
    "momentum": 0.25,
    "structure": 0.20,
    "volume": 0.15,
    "volatility": 0.10,
}


def clamp(value: float, low: float = -100.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ── Trend ────────────────────────────────────────────────────────────────


def trend_score(
    last_price: float,
    ema20: Optional[float],
    ema50: Optional[float],
    ema200: Optional[float],
    adx_data: Optional[AdxResult],
    structure: MarketStructure,
) -> float:
    """Score EMA stack alignment, ADX directional push and market structure.

    The contributions are averaged over the number of factors that
    spoke.  A weak ADX (< 15) halves whatever the EMAs contributed.
    """
    score = 0.0
    factors = 0.0

    if ema20 is not None and ema50 is not None and ema200 is not None:
        if last_price > ema20 > ema50 > ema200:
            score += 100
        elif last_price < ema20 < ema50 < ema200:
            score -= 100
        elif last_price > ema50 > ema200:
            score += 50
        elif last_price < ema50 < ema200:
            score -= 50
        elif last_price > ema200:
            score += 20
        else:
            score -= 20
        factors += 1

    if adx_data is not None:
        direction = 1 if adx_data.plus_di > adx_data.minus_di else -1
        if adx_data.adx > 25:
            score += direction * min(adx_data.adx, 50.0)
            factors += 1
        elif adx_data.adx < 15:
            score *= 0.5

    if structure.label == "Bullish":
        score += structure.strength * 0.3
        factors += 0.5
    elif structure.label == "Bearish":
        score -= structure.strength * 0.3
        factors += 0.5

    if factors == 0:
        return 0.0
    return clamp(score / max(factors, 1.0))


def classify_trend(score: float) -> TrendLabel:
    if score > 60:
        return "Strong Bull"
    if score > 20:
        return "Bull"
    if score > -20:
        return "Neutral"
    if score > -60:
        return "Bear"
    return "Strong Bear"


# ── Momentum ─────────────────────────────────────────────────────────────


def momentum_score(
    rsi14: Optional[float],
    rsi7: Optional[float],
    macd_data: Optional[MacdResult],
    stoch: Optional[StochasticResult],
    last_price: float,
) -> float:
    """Score RSI zone, RSI(7)/RSI(14) divergence, MACD and stochastic.

    The MACD histogram is normalised by price so the score behaves the
    same across assets of very different magnitude.
    """
    score = 0.0
    factors = 0.0

    if rsi14 is not None:
        if rsi14 < 30:
            score += 60 + (30 - rsi14) * 1.5
        elif rsi14 > 70:
            score -= 60 + (rsi14 - 70) * 1.5
        elif rsi14 > 50:
            score += (rsi14 - 50) * 1.5
        else:
            score -= (50 - rsi14) * 1.5
        factors += 1

    if rsi14 is not None and rsi7 is not None:
        diff = rsi7 - rsi14
        if diff > 5:
            score += 15
        elif diff < -5:
            score -= 15

    if macd_data is not None and last_price > 0:
        hist_pct = macd_data.histogram / last_price * 100
        score += clamp(hist_pct * 8, -40.0, 40.0)
        if macd_data.line > macd_data.signal and macd_data.histogram > 0:
            score += 20
        elif macd_data.line < macd_data.signal and macd_data.histogram < 0:
            score -= 20
        factors += 1

    if stoch is not None:
        if stoch.k < 20 and stoch.d < 20:
            score += 30
        elif stoch.k > 80 and stoch.d > 80:
            score -= 30

        if stoch.k > stoch.d and stoch.k < 50:
            score += 15
        elif stoch.k < stoch.d and stoch.k > 50:
            score -= 15
        factors += 0.5

    if factors == 0:
        return 0.0
    return clamp(score / factors)


# ── Volatility ───────────────────────────────────────────────────────────


def volatility_score(atr_percent: float, bb: Optional[BollingerBands]) -> float:
    """Score how calm the market is: low ATR% and centred price are positive."""
    if atr_percent < 2:
        score = 50.0
    elif atr_percent < 4:
        score = 20.0
    elif atr_percent < 6:
        score = -20.0
    else:
        score = -60.0

    if bb is not None:
        # 0 = price on the middle band, 1 = price on an outer band
        extremity = abs(bb.percent_b - 0.5) * 2
        if extremity < 0.3:
            score += 20
        elif extremity > 0.8:
            score -= 40
            if bb.percent_b < 0.2:
                score += 30

        if bb.width < 5:
            score += 10

    return clamp(score)


# ── Structure ────────────────────────────────────────────────────────────


def structure_score(
    last_price: float,
    support: Optional[float],
    resistance: Optional[float],
    fib: FibLevels,
) -> float:
    """Score proximity to support/resistance and key Fibonacci retracements."""
    score = 0.0

    if support is not None:
        dist = (last_price - support) / last_price * 100
        if 0 < dist < 3:
            score += 50
        elif 0 < dist < 6:
            score += 25
        elif dist < 0:
            score -= 30

    if resistance is not None:
        dist = (resistance - last_price) / last_price * 100
        if 0 < dist < 2:
            score -= 40
        elif 0 < dist < 5:
            score -= 15
        elif dist < 0:
            score += 30

    for level in (fib.level382, fib.level500, fib.level618):
        if abs((last_price - level) / last_price) * 100 < 1.5:
            if last_price < level:
                score += 20
            break

    return clamp(score)


# ── Volume ───────────────────────────────────────────────────────────────


def volume_score(obv: ObvTrend) -> float:
    if obv == "Rising":
        return 40.0
    if obv == "Falling":
        return -40.0
    return 0.0


# ── Composite ────────────────────────────────────────────────────────────


def composite_score(
    trend: float,
    momentum: float,
    volatility: float,
    structure: float,
    volume: float,
) -> float:
    """Weighted blend of the (pre-clamped) sub-scores."""
    return (
        clamp(trend) * COMPOSITE_WEIGHTS["trend"]
        + clamp(momentum) * COMPOSITE_WEIGHTS["momentum"]
        + clamp(structure) * COMPOSITE_WEIGHTS["structure"]
        + clamp(volume) * COMPOSITE_WEIGHTS["volume"]
        + clamp(volatility) * COMPOSITE_WEIGHTS["volatility"]
    )


def score_signals(
    indicators: IndicatorSet,
    structure: StructureInfo,
    last_price: float,
) -> SignalScore:
    """Compute every sub-score and the composite for one analysis."""
    trend = trend_score(
        last_price,
        indicators.ema20,
        indicators.ema50,
        indicators.ema200,
        indicators.adx,
        structure.market_structure,
    )
    momentum = momentum_score(
        indicators.rsi14,
        indicators.rsi7,
        indicators.macd,
        indicators.stochastic,
        last_price,
    )
    volatility = volatility_score(indicators.atr_percent, indicators.bollinger)
    struct = structure_score(
        last_price, structure.support, structure.resistance, structure.fib
    )
    volume = volume_score(indicators.obv_trend)

    return SignalScore(
        trend=trend,
        momentum=momentum,
        volatility=volatility,
        structure=struct,
        volume=volume,
        composite=composite_score(trend, momentum, volatility, struct, volume),
    )

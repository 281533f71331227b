"""Price formatting and JSON rendering of analysis results."""

from typing import Optional

from signaldesk.analysis.models import AnalysisResult, IndicatorSet, SignalScore


def guess_dp(price: float) -> int:
    """Decimal places appropriate for a price of this magnitude."""
    if price >= 10000:
        return 2
    if price >= 1000:
        return 3
    if price >= 100:
        return 4
    if price >= 1:
        return 5
    if price >= 0.01:
        return 6
    return 8


def format_price(price: float, quote: str) -> str:
    """``"USD 43,250.12"``: quote code first, decimals chosen by magnitude."""
    dp = guess_dp(price)
    return f"{quote} {price:,.{dp}f}"


def round_price(price: float) -> float:
    return round(price, guess_dp(price))


def _opt_price(value: Optional[float]) -> float:
    return round_price(value) if value else 0.0


def indicators_to_dict(ind: IndicatorSet) -> dict:
    """Flatten an ``IndicatorSet``; degraded indicators render as neutral/zero."""
    macd = ind.macd
    stoch = ind.stochastic
    bb = ind.bollinger
    adx = ind.adx
    return {
        "rsi14": round(ind.rsi14, 2),
        "rsi7": round(ind.rsi7, 2),
        "ema20": _opt_price(ind.ema20),
        "ema50": _opt_price(ind.ema50),
        "ema200": _opt_price(ind.ema200),
        "macd_line": round(macd.line, 8) if macd else 0.0,
        "macd_signal": round(macd.signal, 8) if macd else 0.0,
        "macd_histogram": round(macd.histogram, 8) if macd else 0.0,
        "atr14": round_price(ind.atr14),
        "atr_percent": round(ind.atr_percent, 2),
        "stoch_k": round(stoch.k, 2) if stoch else 50.0,
        "stoch_d": round(stoch.d, 2) if stoch else 50.0,
        "bb_upper": round_price(bb.upper) if bb else 0.0,
        "bb_middle": round_price(bb.middle) if bb else 0.0,
        "bb_lower": round_price(bb.lower) if bb else 0.0,
        "bb_width": round(bb.width, 2) if bb else 0.0,
        "obv_trend": ind.obv_trend,
        "adx": round(adx.adx, 2) if adx else 0.0,
        "plus_di": round(adx.plus_di, 2) if adx else 0.0,
        "minus_di": round(adx.minus_di, 2) if adx else 0.0,
    }


def signals_to_dict(signals: SignalScore) -> dict:
    return {
        "trend": round(signals.trend, 1),
        "momentum": round(signals.momentum, 1),
        "volatility": round(signals.volatility, 1),
        "structure": round(signals.structure, 1),
        "volume": round(signals.volume, 1),
        "composite": round(signals.composite, 1),
    }


def result_to_dict(result: AnalysisResult) -> dict:
    """Render an ``AnalysisResult`` as a JSON-ready dict."""
    meta = result.meta
    levels = result.levels
    return {
        "verdict": result.verdict,
        "trade_plan": {
            "entry_zone": result.trade_plan.entry_zone,
            "stop_loss": result.trade_plan.stop_loss,
            "target1": result.trade_plan.target1,
            "target2": result.trade_plan.target2,
            "target3": result.trade_plan.target3,
        },
        "risk_summary": {
            "risk_level": result.risk_summary.risk_level,
            "confidence": result.risk_summary.confidence,
            "reasons": list(result.risk_summary.reasons),
        },
        "levels": {
            "entry_low": levels.entry_low,
            "entry_high": levels.entry_high,
            "entry_mid": levels.entry_mid,
            "stop": levels.stop,
            "t1": levels.t1,
            "t2": levels.t2,
            "t3": levels.t3,
        },
        "meta": {
            "trend": meta.trend,
            "adx": meta.adx,
            "indicators": indicators_to_dict(meta.indicators),
            "signals": signals_to_dict(meta.signals),
            "support": meta.support,
            "resistance": meta.resistance,
            "fib": meta.fib.to_dict(),
            "swing_high": meta.swing_high,
            "swing_low": meta.swing_low,
            "last_price": round_price(meta.last_price),
            "quote": meta.quote,
            "analysis_timestamp": meta.timestamp,
        },
    }

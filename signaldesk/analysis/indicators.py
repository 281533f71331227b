"""Technical indicators — SMA, EMA, RSI, ATR, MACD, Stochastic, Bollinger, ADX, OBV.

Pure functions, no I/O.  Each returns ``None`` when the series is too
short; the caller decides which indicators are required.
"""

import math
from typing import Optional

from signaldesk.analysis.models import (
    AdxResult,
    BollingerBands,
    Candle,
    MacdResult,
    ObvTrend,
    StochasticResult,
)


def _true_range(candle: Candle, prev: Candle) -> float:
    return max(
        candle.high - candle.low,
        abs(candle.high - prev.close),
        abs(candle.low - prev.close),
    )


# ── Moving averages ──────────────────────────────────────────────────────


def sma(values: list[float], period: int) -> Optional[float]:
    """Arithmetic mean of the last *period* values."""
    if period <= 0 or len(values) < period:
        return None
    return sum(values[-period:]) / period


def ema_series(values: list[float], period: int) -> list[float]:
    """Exponential Moving Average series, starting at the seed value.

    ``EMA_today = value × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``, seeded with the SMA of the first *period*
    values.  The result has ``len(values) - period + 1`` entries, or is
    empty when fewer than *period* values are provided.
    """
    if period <= 0 or len(values) < period:
        return []

    k = 2.0 / (period + 1)
    prev = sum(values[:period]) / period
    series = [prev]
    for value in values[period:]:
        prev = value * k + prev * (1 - k)
        series.append(prev)
    return series


def ema(values: list[float], period: int) -> Optional[float]:
    """Latest EMA value, or ``None`` if fewer than *period* values."""
    series = ema_series(values, period)
    return series[-1] if series else None


# ── RSI ──────────────────────────────────────────────────────────────────


def rsi(values: list[float], period: int = 14) -> Optional[float]:
    """Wilder's Relative Strength Index of the last value.

    Algorithm:
        1. Seed average gain/loss = mean of the first *period* deltas.
        2. Subsequent: avg = (prev_avg × (period-1) + current) / period
        3. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    Returns 100 when the average loss is exactly zero.  Requires at
    least ``period + 1`` values.
    """
    if len(values) < period + 1:
        return None

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        diff = values[i] - values[i - 1]
        if diff >= 0:
            gains += diff
        else:
            losses -= diff

    avg_gain = gains / period
    avg_loss = losses / period

    for i in range(period + 1, len(values)):
        diff = values[i] - values[i - 1]
        avg_gain = (avg_gain * (period - 1) + max(diff, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-diff, 0.0)) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


# ── ATR ──────────────────────────────────────────────────────────────────


def atr(candles: list[Candle], period: int = 14) -> Optional[float]:
    """Wilder-smoothed Average True Range.

    ``TR = max(high - low, |high - prev_close|, |low - prev_close|)``.
    The first *period* true ranges seed a simple average; the rest are
    blended in with ``(prev × (period-1) + tr) / period``.

    Requires at least ``period + 1`` candles.
    """
    if len(candles) < period + 1:
        return None

    true_ranges = [
        _true_range(candles[i], candles[i - 1]) for i in range(1, len(candles))
    ]
    value = sum(true_ranges[:period]) / period
    for tr in true_ranges[period:]:
        value = (value * (period - 1) + tr) / period
    return value


# ── MACD ─────────────────────────────────────────────────────────────────


def macd(
    values: list[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> Optional[MacdResult]:
    """Moving Average Convergence Divergence.

    The fast and slow EMA series are aligned on their last values,
    differenced into a MACD line series, and that series is smoothed with
    an EMA(*signal*).  Requires ``slow + signal`` values.
    """
    if len(values) < slow + signal:
        return None

    fast_series = ema_series(values, fast)
    slow_series = ema_series(values, slow)

    offset = slow - fast
    line_series = [
        fast_series[i + offset] - slow_val
        for i, slow_val in enumerate(slow_series)
        if i + offset < len(fast_series)
    ]
    signal_series = ema_series(line_series, signal)
    if not signal_series:
        return None

    line = line_series[-1]
    signal_line = signal_series[-1]
    return MacdResult(line=line, signal=signal_line, histogram=line - signal_line)


# ── Stochastic ───────────────────────────────────────────────────────────


def stochastic(
    candles: list[Candle],
    k_period: int = 14,
    d_period: int = 3,
) -> Optional[StochasticResult]:
    """Stochastic oscillator %K / %D.

    %K is the position of each close within the high/low range of the
    trailing *k_period* candles (50 when that range is zero); %D is the
    mean of the last *d_period* %K values.

    Requires ``k_period + d_period`` candles.
    """
    if len(candles) < k_period + d_period:
        return None

    k_values: list[float] = []
    for i in range(k_period - 1, len(candles)):
        window = candles[i - k_period + 1 : i + 1]
        highest = max(c.high for c in window)
        lowest = min(c.low for c in window)
        if highest == lowest:
            k_values.append(50.0)
        else:
            k_values.append((candles[i].close - lowest) / (highest - lowest) * 100)

    recent = k_values[-d_period:]
    return StochasticResult(k=k_values[-1], d=sum(recent) / d_period)


# ── Bollinger Bands ──────────────────────────────────────────────────────


def bollinger(
    values: list[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> Optional[BollingerBands]:
    """Bollinger Bands of the last *period* values.

    Middle = SMA, upper/lower = middle ± *std_dev* × population σ.
    %B is the last value's position between the bands (0.5 when the
    bands collapse).  Requires at least *period* values.
    """
    if len(values) < period:
        return None

    window = values[-period:]
    middle = sum(window) / period
    variance = sum((v - middle) ** 2 for v in window) / period
    sigma = math.sqrt(variance)

    upper = middle + std_dev * sigma
    lower = middle - std_dev * sigma
    width = (upper - lower) / middle * 100 if middle != 0 else 0.0
    if upper != lower:
        percent_b = (values[-1] - lower) / (upper - lower)
    else:
        percent_b = 0.5

    return BollingerBands(
        upper=upper, middle=middle, lower=lower, width=width, percent_b=percent_b
    )


# ── ADX ──────────────────────────────────────────────────────────────────


def adx(candles: list[Candle], period: int = 14) -> Optional[AdxResult]:
    """Average Directional Index with +DI / −DI.

    Algorithm:
        1. +DM / −DM and TR per bar.
        2. Wilder-smooth each: seed = sum of first *period*, then
           ``s = s - s / period + current``.
        3. +DI = 100 × s_+DM / s_TR,  −DI = 100 × s_−DM / s_TR
        4. DX = 100 × |+DI − −DI| / (+DI + −DI)
        5. ADX = Wilder-smoothed DX (seeded with the mean of *period* DX).

    Requires at least ``2 × period`` candles.
    """
    if len(candles) < 2 * period:
        return None

    plus_dm: list[float] = []
    minus_dm: list[float] = []
    tr: list[float] = []
    for i in range(1, len(candles)):
        curr = candles[i]
        prev = candles[i - 1]
        up_move = curr.high - prev.high
        down_move = prev.low - curr.low
        plus_dm.append(up_move if (up_move > down_move and up_move > 0) else 0.0)
        minus_dm.append(down_move if (down_move > up_move and down_move > 0) else 0.0)
        tr.append(_true_range(curr, prev))

    def _smooth(raw: list[float]) -> list[float]:
        total = sum(raw[:period])
        out = [total]
        for value in raw[period:]:
            total = total - total / period + value
            out.append(total)
        return out

    s_tr = _smooth(tr)
    s_plus = _smooth(plus_dm)
    s_minus = _smooth(minus_dm)

    def _compute_dx(s_pdm: float, s_mdm: float, s_t: float) -> float:
        if s_t == 0:
            return 0.0
        plus_di = 100.0 * s_pdm / s_t
        minus_di = 100.0 * s_mdm / s_t
        di_sum = plus_di + minus_di
        if di_sum == 0:
            return 0.0
        return 100.0 * abs(plus_di - minus_di) / di_sum

    dx = [_compute_dx(p, m, t) for p, m, t in zip(s_plus, s_minus, s_tr)]
    if len(dx) < period:
        return None

    adx_value = sum(dx[:period]) / period
    for value in dx[period:]:
        adx_value = (adx_value * (period - 1) + value) / period

    last_tr = s_tr[-1]
    plus_di = 100.0 * s_plus[-1] / last_tr if last_tr > 0 else 0.0
    minus_di = 100.0 * s_minus[-1] / last_tr if last_tr > 0 else 0.0
    return AdxResult(adx=adx_value, plus_di=plus_di, minus_di=minus_di)


# ── OBV ──────────────────────────────────────────────────────────────────


def obv_trend(candles: list[Candle], lookback: int = 20) -> ObvTrend:
    """Direction of On-Balance Volume.

    Compares the mean OBV of the last *lookback* bars with the mean of the
    *lookback* bars before them: above +10 % is "Rising", below −10 % is
    "Falling", anything else (including too little data) is "Flat".
    """
    if len(candles) < lookback + 1:
        return "Flat"

    obv = 0.0
    obv_values: list[float] = []
    for i in range(1, len(candles)):
        if candles[i].close > candles[i - 1].close:
            obv += candles[i].volume
        elif candles[i].close < candles[i - 1].close:
            obv -= candles[i].volume
        obv_values.append(obv)

    recent = obv_values[-lookback:]
    older = obv_values[-2 * lookback : -lookback]
    if not older:
        return "Flat"

    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if older_avg == 0:
        return "Flat"

    change = (recent_avg - older_avg) / abs(older_avg) * 100
    if change > 10:
        return "Rising"
    if change < -10:
        return "Falling"
    return "Flat"

"""Price structure — swing points, S/R clustering, Fibonacci levels, market structure.

Pure functions over a candle window, no I/O.
"""

import math
from typing import Optional

from signaldesk.analysis.models import (
    Candle,
    FibLevels,
    MarketStructure,
    PriceLevel,
    StructureInfo,
    SwingPoint,
)

STRUCTURE_WINDOW = 100
SWING_BARS = 3
FIB_SWING_COUNT = 5
FIB_FALLBACK_WINDOW = 50


def find_swing_points(
    candles: list[Candle],
    left_bars: int = 5,
    right_bars: int = 5,
) -> tuple[list[SwingPoint], list[SwingPoint]]:
    """Identify swing highs and swing lows.

    A swing high is a candle whose high is strictly higher than the highs
    of the *left_bars* candles before it and the *right_bars* candles
    after it; swing lows mirror this on the lows.  Candles without a full
    window on both sides are never swings.

    Returns ``(swing_highs, swing_lows)`` in time order.
    """
    highs: list[SwingPoint] = []
    lows: list[SwingPoint] = []

    for i in range(left_bars, len(candles) - right_bars):
        curr = candles[i]
        neighbours = candles[i - left_bars : i] + candles[i + 1 : i + right_bars + 1]
        if all(c.high < curr.high for c in neighbours):
            highs.append(SwingPoint(price=curr.high, index=i))
        if all(c.low > curr.low for c in neighbours):
            lows.append(SwingPoint(price=curr.low, index=i))

    return highs, lows


def cluster_levels(
    points: list[SwingPoint],
    last_price: float,
    total_candles: int,
    bucket_pct: float = 0.005,
) -> list[PriceLevel]:
    """Cluster swing points into ranked price levels.

    Points are bucketed by price into bins of width
    ``last_price × bucket_pct``; each bucket's level is the running
    centroid of its members and its recency is the latest member's index
    as a fraction of *total_candles*.

    Returns levels ordered by ``touches × (0.5 + recency)``, most
    significant first.
    """
    if not points:
        return []

    bucket = last_price * bucket_pct
    if bucket <= 0:
        return []

    buckets: dict[int, PriceLevel] = {}
    for point in sorted(points, key=lambda p: p.index):
        key = math.floor(point.price / bucket + 0.5)
        recency = point.index / total_candles if total_candles > 0 else 0.0
        current = buckets.get(key)
        if current is None:
            buckets[key] = PriceLevel(price=point.price, touches=1, recency=recency)
        else:
            touches = current.touches + 1
            buckets[key] = PriceLevel(
                price=(current.price * current.touches + point.price) / touches,
                touches=touches,
                recency=max(current.recency, recency),
            )

    return sorted(buckets.values(), key=lambda lvl: lvl.rank, reverse=True)


def detect_market_structure(
    swing_highs: list[SwingPoint],
    swing_lows: list[SwingPoint],
) -> MarketStructure:
    """Classify higher-highs/higher-lows versus lower-highs/lower-lows.

    Looks at the last 4 swing highs and 4 swing lows.  Bullish or Bearish
    only when one side outnumbers the other by more than 1.5×.
    """
    if len(swing_highs) < 2 or len(swing_lows) < 2:
        return MarketStructure(label="Mixed", strength=0.0)

    recent_highs = swing_highs[-4:]
    recent_lows = swing_lows[-4:]

    bullish = 0
    bearish = 0
    for prev, curr in zip(recent_highs, recent_highs[1:]):
        if curr.price > prev.price:
            bullish += 1
        else:
            bearish += 1
    for prev, curr in zip(recent_lows, recent_lows[1:]):
        if curr.price > prev.price:
            bullish += 1
        else:
            bearish += 1

    total = bullish + bearish
    if bullish > bearish * 1.5:
        return MarketStructure(label="Bullish", strength=bullish / total * 100)
    if bearish > bullish * 1.5:
        return MarketStructure(label="Bearish", strength=bearish / total * 100)
    return MarketStructure(label="Mixed", strength=50.0)


def fibonacci_levels(swing_high: float, swing_low: float) -> FibLevels:
    """Retracements measured down from the high, extensions up from the low."""
    span = swing_high - swing_low
    return FibLevels(
        level236=swing_high - span * 0.236,
        level382=swing_high - span * 0.382,
        level500=swing_high - span * 0.5,
        level618=swing_high - span * 0.618,
        level786=swing_high - span * 0.786,
        ext1272=swing_low + span * 1.272,
        ext1618=swing_low + span * 1.618,
        ext2000=swing_low + span * 2.0,
    )


def _first_below(levels: list[PriceLevel], price: float) -> Optional[float]:
    return next((lvl.price for lvl in levels if lvl.price < price), None)


def _first_above(levels: list[PriceLevel], price: float) -> Optional[float]:
    return next((lvl.price for lvl in levels if lvl.price > price), None)


def analyse_structure(
    candles: list[Candle],
    last_price: float,
    window: int = STRUCTURE_WINDOW,
    swing_bars: int = SWING_BARS,
) -> StructureInfo:
    """Build the full ``StructureInfo`` for the most recent *window* candles.

    Args:
        candles: Candle history, oldest-first.
        last_price: Current price used for bucketing and S/R selection.
        window: Number of most-recent candles to analyse.
        swing_bars: Half-window size for swing detection.

    Returns:
        ``StructureInfo`` with swings, ranked levels, the chosen support
        (best-ranked level below price) and resistance (best-ranked level
        above price), Fibonacci levels and market structure.
    """
    recent = candles[-window:]
    swing_highs, swing_lows = find_swing_points(recent, swing_bars, swing_bars)

    # Dominant range for Fibonacci; raw extrema when no swings formed
    if swing_highs:
        swing_high = max(p.price for p in swing_highs[-FIB_SWING_COUNT:])
    else:
        swing_high = max(c.high for c in candles[-FIB_FALLBACK_WINDOW:])
    if swing_lows:
        swing_low = min(p.price for p in swing_lows[-FIB_SWING_COUNT:])
    else:
        swing_low = min(c.low for c in candles[-FIB_FALLBACK_WINDOW:])

    total = min(len(candles), window)
    support_levels = cluster_levels(swing_lows, last_price, total)
    resistance_levels = cluster_levels(swing_highs, last_price, total)

    return StructureInfo(
        swing_highs=tuple(swing_highs),
        swing_lows=tuple(swing_lows),
        support_levels=tuple(support_levels),
        resistance_levels=tuple(resistance_levels),
        support=_first_below(support_levels, last_price),
        resistance=_first_above(resistance_levels, last_price),
        swing_high=swing_high,
        swing_low=swing_low,
        fib=fibonacci_levels(swing_high, swing_low),
        market_structure=detect_market_structure(swing_highs, swing_lows),
    )

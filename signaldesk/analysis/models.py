"""Analysis data models — typed value objects flowing through the engine.

Every stage of the pipeline produces one of these frozen dataclasses and
hands it to the next stage; nothing is mutated after construction.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

Verdict = Literal["Strong Buy", "Buy", "Wait"]
RiskLevel = Literal["Low", "Medium", "High", "Very High"]
Confidence = Literal["Low", "Medium", "High"]
TrendLabel = Literal["Strong Bull", "Bull", "Neutral", "Bear", "Strong Bear"]
ObvTrend = Literal["Rising", "Falling", "Flat"]


# ── Errors ───────────────────────────────────────────────────────────────


class AnalysisError(ValueError):
    """Raised when a candle series cannot be analysed."""


class InsufficientDataError(AnalysisError):
    """Raised when fewer candles than the engine minimum are supplied."""

    def __init__(self, actual: int, required: int) -> None:
        self.actual = actual
        self.required = required
        super().__init__(
            f"Not enough candle data for analysis. Need at least {required} "
            f"candles, got {actual}."
        )


# ── Input ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar (``time`` is epoch seconds)."""

    time: int
    open: float
    high: float
    low: float
    close: float
    vwap: float
    volume: float
    count: int


# ── Indicator outputs ────────────────────────────────────────────────────


@dataclass(frozen=True)
class MacdResult:
    line: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class StochasticResult:
    k: float
    d: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    width: float  # (upper - lower) / middle × 100
    percent_b: float


@dataclass(frozen=True)
class AdxResult:
    adx: float
    plus_di: float
    minus_di: float


@dataclass(frozen=True)
class IndicatorSet:
    """Snapshot of every indicator computed for one analysis.

    ``None`` marks an indicator that could not be computed from the
    available history (degraded, not fatal).
    """

    rsi14: float
    rsi7: float
    ema20: Optional[float]
    ema50: Optional[float]
    ema200: Optional[float]
    macd: Optional[MacdResult]
    atr14: float
    atr_percent: float
    stochastic: Optional[StochasticResult]
    bollinger: Optional[BollingerBands]
    obv_trend: ObvTrend
    adx: Optional[AdxResult]


# ── Structure ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SwingPoint:
    price: float
    index: int


@dataclass(frozen=True)
class PriceLevel:
    """A clustered support/resistance level."""

    price: float
    touches: int
    recency: float  # 0..1, fraction of the lookback window

    @property
    def rank(self) -> float:
        return self.touches * (0.5 + self.recency)


@dataclass(frozen=True)
class MarketStructure:
    label: Literal["Bullish", "Bearish", "Mixed"]
    strength: float


@dataclass(frozen=True)
class FibLevels:
    """Fibonacci retracements (below the high) and extensions (above the low)."""

    level236: float
    level382: float
    level500: float
    level618: float
    level786: float
    ext1272: float
    ext1618: float
    ext2000: float

    def to_dict(self) -> dict[str, float]:
        return {
            "level236": self.level236,
            "level382": self.level382,
            "level500": self.level500,
            "level618": self.level618,
            "level786": self.level786,
            "ext1272": self.ext1272,
            "ext1618": self.ext1618,
            "ext2000": self.ext2000,
        }


@dataclass(frozen=True)
class StructureInfo:
    swing_highs: tuple[SwingPoint, ...]
    swing_lows: tuple[SwingPoint, ...]
    support_levels: tuple[PriceLevel, ...]
    resistance_levels: tuple[PriceLevel, ...]
    support: Optional[float]
    resistance: Optional[float]
    swing_high: float
    swing_low: float
    fib: FibLevels
    market_structure: MarketStructure


# ── Scores & plan ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SignalScore:
    """Five sub-scores and their weighted composite, each in [-100, 100]."""

    trend: float
    momentum: float
    volatility: float
    structure: float
    volume: float
    composite: float


@dataclass(frozen=True)
class EntryZone:
    low: float
    high: float
    anchor: Literal["breakout", "support", "golden_pocket", "atr_pullback"]

    @property
    def mid(self) -> float:
        return (self.low + self.high) / 2

    @property
    def is_breakout(self) -> bool:
        return self.anchor == "breakout"


@dataclass(frozen=True)
class TradeLevels:
    """Raw trade prices.  ``stop < entry_mid < t1 < t2 < t3`` always holds."""

    entry_low: float
    entry_high: float
    entry_mid: float
    stop: float
    t1: float
    t2: float
    t3: float

    @property
    def risk(self) -> float:
        return self.entry_mid - self.stop

    def reward_ratios(self) -> tuple[float, float, float]:
        """Risk-to-reward multiple of each target."""
        risk = self.risk
        if risk <= 0:
            return (0.0, 0.0, 0.0)
        return (
            (self.t1 - self.entry_mid) / risk,
            (self.t2 - self.entry_mid) / risk,
            (self.t3 - self.entry_mid) / risk,
        )


@dataclass(frozen=True)
class TradePlan:
    """Human-readable trade plan (formatted price strings)."""

    entry_zone: str
    stop_loss: str
    target1: str
    target2: str
    target3: str


@dataclass(frozen=True)
class RiskSummary:
    risk_level: RiskLevel
    confidence: Confidence
    reasons: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AnalysisMeta:
    trend: TrendLabel
    adx: float
    indicators: IndicatorSet
    signals: SignalScore
    support: Optional[float]
    resistance: Optional[float]
    fib: FibLevels
    swing_high: float
    swing_low: float
    last_price: float
    quote: str
    timestamp: int  # epoch milliseconds


@dataclass(frozen=True)
class AnalysisResult:
    verdict: Verdict
    trade_plan: TradePlan
    risk_summary: RiskSummary
    levels: TradeLevels
    meta: AnalysisMeta

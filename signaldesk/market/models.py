"""Market-data models — typed representations of Kraken public API objects."""

from dataclasses import dataclass

from signaldesk.analysis.models import Candle


class MarketDataError(Exception):
    """Raised when Kraken returns an error or an unusable payload."""


class PairNotFoundError(MarketDataError):
    """Raised when no Kraken market matches the requested pair."""


@dataclass(frozen=True)
class ResolvedPair:
    """A user pair label matched to a Kraken market."""

    pair_key: str  # Kraken's result key, e.g. "XXBTZUSD"
    wsname: str  # e.g. "XBT/USD"
    display_pair: str  # e.g. "BTC/USD"


@dataclass(frozen=True)
class OhlcResult:
    """Closed candles for one market plus Kraken's ``last`` cursor."""

    candles: tuple[Candle, ...]
    last: int


@dataclass(frozen=True)
class MarketSeries:
    """Candles returned to callers, tagged with how the pair was resolved."""

    input_pair: str
    pair: ResolvedPair
    interval: int
    last: int
    candles: tuple[Candle, ...]

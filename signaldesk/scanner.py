"""Multi-pair scanner — runs the analysis engine over a list of Kraken pairs.

Pairs are processed sequentially with a small delay between successful
fetches to stay under Kraken's public rate limit.  A failure on one pair
is recorded in its entry and never aborts the scan.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from signaldesk.analysis.engine import analyse_candles
from signaldesk.analysis.models import AnalysisResult
from signaldesk.market.kraken_client import KrakenClient
from signaldesk.market.models import MarketDataError

logger = logging.getLogger("signaldesk")

BATCH_SIZES: dict[str, int] = {"quick": 50, "medium": 150, "full": 400}
DEFAULT_BATCH = "quick"

_PAIR_GROUPS: tuple[tuple[str, ...], ...] = (
    # Large caps
    (
        "BTC", "ETH", "XRP", "SOL", "BNB", "DOGE", "ADA", "TRX", "WBTC", "BCH",
        "LINK", "XLM", "LTC", "SUI", "AVAX", "SHIB", "HBAR", "TON", "CRO", "DOT",
        "UNI", "MNT", "AAVE", "TAO", "PEPE", "NEAR", "ETC", "ICP", "ONDO", "WLD",
        "POL", "ENA", "QNT", "APT", "ATOM", "ALGO", "FLR", "KAS", "RENDER", "ARB",
        "FIL", "VET", "XDC", "BONK", "JUP", "SEI", "DASH", "CAKE", "XTZ", "PENGU",
        "CHZ", "STX", "OP", "FET", "CRV", "INJ", "ZRO", "LDO", "AERO", "XMR", "ZEC",
    ),
    # DeFi and infrastructure
    (
        "SUN", "FLOKI", "TIA", "GRT", "GNO", "PYTH", "AXS", "STRK", "JASMY", "SPX",
        "SAND", "ENS", "TEL", "PENDLE", "ZK", "WIF", "GALA", "MANA", "XCN", "LUNA",
        "RAY", "COMP", "BAT", "HNT", "AR", "CVX", "RUNE", "1INCH", "TRAC", "IMX",
        "EIGEN", "EGLD", "BEAM", "APE", "LPT", "JTO", "W", "SNX", "ATH", "QTUM",
        "RSR", "DYDX", "AKT", "GRASS", "YFI", "KSM", "SUPER", "ZRX", "MINA", "COW",
        "FLOW", "KAITO", "T", "SAFE", "NANO", "TURBO", "AIOZ", "ALEO", "ZETA", "FXS",
        "ARKM", "MORPHO", "ETHFI", "JITOSOL", "MSOL", "LSETH", "METH", "TBTC", "SKY",
    ),
    # Mid and small caps
    (
        "MOG", "SC", "ASTR", "NMR", "REQ", "MOCA", "KAVA", "DEEP", "BERA", "XYO",
        "SUSHI", "GMX", "MEW", "BLUR", "BICO", "DRIFT", "OMNI", "OM", "BIO", "PLUME",
        "MERL", "PNUT", "SSV", "CELO", "STG", "POPCAT", "ORCA", "MASK", "DAG", "MEME",
        "ALT", "LRC", "UMA", "ANKR", "BABY", "SPK", "ICX", "API3", "ENJ", "NOT",
        "GUN", "ARC", "GMT", "BAND", "LCX", "ACH", "SCRT", "MNGO", "RPL", "POWR",
        "SNEK", "COTI", "CORN", "CARV", "WOO", "FHE", "RLC", "NEIRO", "SPELL", "SHX",
        "DRV", "BNT", "BTR", "PRIME", "PEAQ", "B2", "EWT", "OPEN", "CHEX", "LSK",
        "AUDIO", "BIGTIME", "YGG", "FLUX", "ANIME", "CYBER", "OSMO", "AUCTION", "LQTY",
        "EDU", "CCD", "ZORA",
    ),
    # Recent listings
    (
        "HYPE", "XAUT", "PAXG", "BGB", "PUMP", "ASTER", "MYX", "NIGHT", "IP",
        "VIRTUAL", "JST", "RIVER", "BTT", "SYRUP", "APENFT", "AB", "SENT", "ADI",
        "XPL", "H", "MON", "S", "FF", "CMETH", "VSN", "LION", "A", "SOSO", "WAL",
        "GOMINING", "0G", "KMNO", "KTA", "MET", "CASH", "SKR", "ICNT", "VVV", "LINEA",
        "RAVE", "SOON", "DBR", "ALCH", "SXT", "ESPORTS", "ME", "PROVE", "RED", "WMTX",
        "AVNT", "GWEI", "Q", "SAHARA", "ZIG", "UAI", "KGEN", "ACU", "BREV", "PLAY",
        "AIO",
    ),
    # Memes
    (
        "TRUMP", "MELANIA", "DOG", "FARTCOIN", "CHEEMS", "TOSHI", "MOODENG", "NPC",
        "USELESS", "REKT", "BANANAS31", "CLANKER",
    ),
    # Gaming, AI, scaling, privacy, exchange tokens, storage, oracles, bridges
    (
        "MAGIC", "GODS", "ILV", "ALICE", "GHST", "STARL", "HERO", "PYR", "WILD",
        "REVV", "ATLAS", "OCEAN", "AGIX", "GLM", "CTSI", "ROSE", "MATIC", "BOBA",
        "METIS", "CELR", "OMG", "SKL", "ARRR", "FIRO", "FTT", "LEO", "OKB", "KCS",
        "HT", "MX", "STORJ", "HOT", "DIA", "TRB", "REN", "MULTI", "SYN", "CCIP",
    ),
)

# Order-preserving, duplicates removed
DEFAULT_PAIRS: tuple[str, ...] = tuple(
    dict.fromkeys(f"{base}/USD" for group in _PAIR_GROUPS for base in group)
)


@dataclass(frozen=True)
class ScanEntry:
    """Outcome of scanning one pair: an analysis or an error message."""

    pair: str
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result is not None

    @property
    def potential_gain(self) -> float:
        """Percent move from entry mid to T1, one decimal."""
        if self.result is None:
            return 0.0
        levels = self.result.levels
        if levels.entry_mid <= 0:
            return 0.0
        return round((levels.t1 - levels.entry_mid) / levels.entry_mid * 100, 1)

    def to_dict(self) -> dict:
        if self.result is None:
            return {"pair": self.pair, "success": False, "error": self.error}
        result = self.result
        return {
            "pair": self.pair,
            "success": True,
            "data": {
                "verdict": result.verdict,
                "composite_score": round(result.meta.signals.composite, 1),
                "trend": result.meta.trend,
                "adx": round(result.meta.adx, 1),
                "rsi": round(result.meta.indicators.rsi14, 1),
                "confidence": result.risk_summary.confidence,
                "risk_level": result.risk_summary.risk_level,
                "last_price": result.meta.last_price,
                "entry_mid": result.levels.entry_mid,
                "potential_gain": self.potential_gain,
            },
        }


def parse_pairs(raw: Optional[str]) -> list[str]:
    """Split a comma-separated ``pairs`` parameter; blank → the default universe."""
    if raw is None or not raw.strip():
        return list(DEFAULT_PAIRS)
    return [p.strip().upper() for p in raw.split(",") if p.strip()]


def batch_size(batch: Optional[str]) -> int:
    """Pair cap for a batch name; unknown names fall back to ``quick``."""
    return BATCH_SIZES.get((batch or DEFAULT_BATCH).lower(), BATCH_SIZES[DEFAULT_BATCH])


def _sort_key(entry: ScanEntry) -> tuple[int, float]:
    if entry.result is None:
        return (1, 0.0)
    return (0, -entry.result.meta.signals.composite)


async def scan_pairs(
    client: KrakenClient,
    pairs: list[str],
    interval: int = 240,
    limit: int = 300,
    delay_seconds: float = 0.1,
) -> list[ScanEntry]:
    """Analyse each pair in turn.

    Returns:
        Entries sorted by composite score (highest first), failures last.
    """
    entries: list[ScanEntry] = []

    for pair in pairs:
        try:
            series = await client.get_candles(pair, interval, limit)
            result = analyse_candles(pair, list(series.candles))
        except (MarketDataError, ValueError) as exc:
            logger.warning("Scan of %s failed: %s", pair, exc)
            entries.append(ScanEntry(pair=pair, error=str(exc) or "Analysis failed"))
            continue

        entries.append(ScanEntry(pair=pair, result=result))
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)

    entries.sort(key=_sort_key)
    return entries


def summarize(entries: list[ScanEntry], scanned_at: Optional[datetime] = None) -> dict:
    """Build the scan response: timestamp, counts and per-pair entries."""
    successful = [e for e in entries if e.success]
    buys = [e for e in successful if e.result.verdict in ("Buy", "Strong Buy")]
    scanned_at = scanned_at or datetime.now(timezone.utc)
    return {
        "scanned_at": scanned_at.isoformat(),
        "total_scanned": len(entries),
        "successful_scans": len(successful),
        "buy_signals": len(buys),
        "results": [e.to_dict() for e in entries],
    }

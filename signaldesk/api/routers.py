"""HTTP API routers — /ohlc, /analyse, /scan endpoints.

No analysis logic here. Delegates to the Kraken client, the engine and
the scanner, and maps their errors onto JSON ``{"error": ...}`` bodies.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from signaldesk.analysis.engine import analyse_candles
from signaldesk.analysis.formatting import result_to_dict
from signaldesk.analysis.models import AnalysisError
from signaldesk.config import ALLOWED_INTERVALS, Config
from signaldesk.market.kraken_client import MAX_CANDLES, KrakenClient
from signaldesk.market.models import MarketDataError, PairNotFoundError
from signaldesk.scanner import batch_size, parse_pairs, scan_pairs, summarize

logger = logging.getLogger("signaldesk")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_client: Optional[KrakenClient] = None  # Set via configure_routers()
_config: Optional[Config] = None  # Set via configure_routers()

OHLC_DEFAULT_LIMIT = 200
ANALYSE_MIN_LIMIT = 50


def configure_routers(client: KrakenClient, config: Config) -> None:
    """Inject dependencies from the application startup.

    Args:
        client: A ``KrakenClient`` instance (or duck-type for tests).
        config: Application configuration.
    """
    global _client, _config  # noqa: PLW0603
    _client = client
    _config = config


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _check_interval(interval: int) -> Optional[JSONResponse]:
    if interval not in ALLOWED_INTERVALS:
        allowed = ", ".join(str(i) for i in ALLOWED_INTERVALS)
        return _error(400, f"'interval' must be one of: {allowed}")
    return None


def _default_interval() -> int:
    return _config.default_interval if _config is not None else 240


# ── Routes ───────────────────────────────────────────────────────────────


@router.get("/ohlc")
async def get_ohlc(
    pair: Optional[str] = Query(default=None),
    interval: Optional[int] = Query(default=None),
    limit: int = Query(default=OHLC_DEFAULT_LIMIT),
):
    """Return the resolved Kraken market and its most recent closed candles."""
    if not pair or not pair.strip():
        return _error(400, "Missing 'pair' query parameter")
    interval = interval if interval is not None else _default_interval()
    bad = _check_interval(interval)
    if bad is not None:
        return bad
    if not 1 <= limit <= MAX_CANDLES:
        return _error(400, f"'limit' must be between 1 and {MAX_CANDLES}")
    if _client is None:
        return _error(503, "Market data client not configured")

    try:
        series = await _client.get_candles(pair, interval, limit)
    except PairNotFoundError as exc:
        return _error(404, str(exc))
    except MarketDataError as exc:
        logger.error("OHLC fetch for %s failed: %s", pair, exc)
        return _error(502, str(exc))

    return {
        "input_pair": series.input_pair,
        "kraken_pair_key": series.pair.pair_key,
        "wsname": series.pair.wsname,
        "display_pair": series.pair.display_pair,
        "interval": series.interval,
        "last": series.last,
        "candles": [
            {
                "time": c.time,
                "open": c.open,
                "high": c.high,
                "low": c.low,
                "close": c.close,
                "vwap": c.vwap,
                "volume": c.volume,
                "count": c.count,
            }
            for c in series.candles
        ],
    }


@router.get("/analyse")
async def get_analysis(
    pair: Optional[str] = Query(default=None),
    interval: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
):
    """Fetch candles for *pair* and return the full analysis."""
    if not pair or not pair.strip():
        return _error(400, "Missing 'pair' query parameter")
    interval = interval if interval is not None else _default_interval()
    bad = _check_interval(interval)
    if bad is not None:
        return bad
    if limit is None:
        limit = _config.default_limit if _config is not None else 300
    if not ANALYSE_MIN_LIMIT <= limit <= MAX_CANDLES:
        return _error(400, f"'limit' must be between {ANALYSE_MIN_LIMIT} and {MAX_CANDLES}")
    if _client is None:
        return _error(503, "Market data client not configured")

    try:
        series = await _client.get_candles(pair, interval, limit)
    except PairNotFoundError as exc:
        return _error(404, str(exc))
    except MarketDataError as exc:
        logger.error("OHLC fetch for %s failed: %s", pair, exc)
        return _error(502, str(exc))

    try:
        result = analyse_candles(series.pair.display_pair, list(series.candles))
    except AnalysisError as exc:
        logger.warning("Analysis of %s rejected: %s", pair, exc)
        return _error(422, str(exc))

    body = result_to_dict(result)
    body["pair"] = series.pair.display_pair
    body["interval"] = series.interval
    return body


@router.get("/scan")
async def get_scan(
    pairs: Optional[str] = Query(default=None),
    batch: str = Query(default="quick"),
):
    """Scan a list of pairs (default universe) and rank them by composite score."""
    if _client is None:
        return _error(503, "Market data client not configured")

    selected = parse_pairs(pairs)[: batch_size(batch)]
    delay = _config.scan_delay_seconds if _config is not None else 0.1
    entries = await scan_pairs(
        _client,
        selected,
        interval=_default_interval(),
        limit=_config.default_limit if _config is not None else 300,
        delay_seconds=delay,
    )
    logger.info("Scanned %d pair(s), %d succeeded", len(entries),
                sum(1 for e in entries if e.success))
    return JSONResponse(
        content=summarize(entries),
        headers={"Cache-Control": "public, max-age=60"},
    )

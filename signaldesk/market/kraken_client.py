"""Kraken public REST API async client.

Handles AssetPairs lookup (cached for a day), pair resolution and OHLC
candle fetching (cached for a minute per market and interval).
"""

import asyncio
import logging
import math
import time
from typing import Callable, Optional

import httpx

from signaldesk.analysis.models import Candle
from signaldesk.config import ALLOWED_INTERVALS, Config
from signaldesk.market.cache import TTLCache
from signaldesk.market.models import (
    MarketDataError,
    MarketSeries,
    OhlcResult,
    PairNotFoundError,
    ResolvedPair,
)
from signaldesk.market.pairs import resolve_pair

logger = logging.getLogger("signaldesk")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

MAX_CANDLES = 720  # Kraken returns at most 720 rows per call
CANDLE_CLOSE_EPS = 1e-8
RESOLVE_ERROR_HINT = "Use format like BTC/USD, ETH/USD, SOL/USD or XBT/USD."


def parse_candle(row: list) -> Candle:
    """Convert a Kraken OHLC row ``[time, o, h, l, c, vwap, volume, count]``."""
    return Candle(
        time=int(float(row[0])),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        vwap=float(row[5]),
        volume=float(row[6]),
        count=int(row[7]),
    )


def is_candle_valid(candle: Candle) -> bool:
    """Finite prices and volume, ``high ≥ low``, close inside the range (± ε)."""
    prices = (candle.open, candle.high, candle.low, candle.close)
    if not all(math.isfinite(p) for p in prices):
        return False
    if candle.high < candle.low:
        return False
    if not (candle.low - CANDLE_CLOSE_EPS <= candle.close <= candle.high + CANDLE_CLOSE_EPS):
        return False
    return math.isfinite(candle.volume)


class KrakenClient:
    """Async client wrapping Kraken's public market-data endpoints.

    Args:
        config: Application configuration.
        clock: Time source for the caches (seconds).
        retry_base_delay: First retry delay in seconds; doubles each attempt.
    """

    def __init__(
        self,
        config: Config,
        clock: Callable[[], float] = time.monotonic,
        retry_base_delay: float = _RETRY_BASE_DELAY,
    ) -> None:
        self._base_url = config.kraken_base_url
        self._timeout = config.http_timeout_seconds
        self._retry_base_delay = retry_base_delay
        self._headers = {"Accept": "application/json", "User-Agent": "signaldesk/0.1"}
        self._asset_pairs_cache: TTLCache[dict] = TTLCache(
            config.asset_pairs_ttl_seconds, clock
        )
        self._ohlc_cache: TTLCache[OhlcResult] = TTLCache(config.ohlc_ttl_seconds, clock)
        self._asset_pairs_lock = asyncio.Lock()

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _get_with_retry(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """GET with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate-limits
        (429) and transport errors.  Other HTTP errors fail immediately.
        """
        last_exc: Optional[Exception] = None

        for attempt in range(_MAX_RETRIES):
            delay = self._retry_base_delay * (2 ** attempt)
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        url,
                        headers=self._headers,
                        params=params,
                        timeout=self._timeout,
                    )
            except httpx.TransportError as exc:
                logger.warning(
                    "Kraken GET %s transport error (%s) — retry %d/%d in %.1fs",
                    url, exc, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = exc
                await asyncio.sleep(delay)
                continue

            if resp.status_code in _RETRYABLE_STATUS_CODES:
                logger.warning(
                    "Kraken GET %s returned %d — retry %d/%d in %.1fs",
                    url, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                )
                last_exc = httpx.HTTPStatusError(
                    f"Server error '{resp.status_code}'",
                    request=resp.request,
                    response=resp,
                )
                await asyncio.sleep(delay)
                continue

            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise MarketDataError(
                    f"Kraken request failed: {resp.status_code} {resp.reason_phrase}"
                ) from exc
            return resp

        raise MarketDataError(
            f"Kraken request failed after {_MAX_RETRIES} attempts: {last_exc}"
        ) from last_exc

    async def _get_result(self, path: str, params: Optional[dict] = None) -> dict:
        """Fetch a Kraken endpoint and unwrap its ``{"error", "result"}`` envelope."""
        resp = await self._get_with_retry(f"{self._base_url}{path}", params)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MarketDataError(f"Invalid JSON from Kraken {path}") from exc
        if not isinstance(payload, dict):
            raise MarketDataError(f"Invalid response from Kraken {path}")

        errors = payload.get("error") or []
        if errors:
            raise MarketDataError(", ".join(str(e) for e in errors))

        result = payload.get("result")
        if not isinstance(result, dict):
            raise MarketDataError(f"Invalid response from Kraken {path}")
        return result

    # ── Asset pairs ──────────────────────────────────────────────────────

    async def fetch_asset_pairs(self) -> dict[str, dict]:
        """Return Kraken's AssetPairs map, refreshed at most once per TTL.

        Concurrent callers share a single in-flight refresh.
        """
        cached = self._asset_pairs_cache.get("asset_pairs")
        if cached is not None:
            return cached

        async with self._asset_pairs_lock:
            cached = self._asset_pairs_cache.get("asset_pairs")
            if cached is not None:
                return cached
            logger.debug("Refreshing Kraken AssetPairs")
            pairs = await self._get_result("/0/public/AssetPairs")
            self._asset_pairs_cache.set("asset_pairs", pairs)
            return pairs

    async def resolve(self, pair: str) -> ResolvedPair:
        """Resolve a user label to a Kraken market.

        Raises ``PairNotFoundError`` when nothing matches.
        """
        resolved = resolve_pair(await self.fetch_asset_pairs(), pair)
        if resolved is None:
            raise PairNotFoundError(
                f"No Kraken market found for pair: {pair}. {RESOLVE_ERROR_HINT}"
            )
        return resolved

    # ── OHLC ─────────────────────────────────────────────────────────────

    async def fetch_ohlc(self, pair_key: str, interval: int) -> OhlcResult:
        """Fetch closed candles for one market (uncached).

        The final row Kraken returns is the still-forming candle and is
        dropped, as are malformed or inconsistent rows.

        Returns:
            ``OhlcResult`` with candles ordered oldest-first.
        """
        result = await self._get_result(
            "/0/public/OHLC", params={"pair": pair_key, "interval": interval}
        )
        rows = result.get(pair_key)
        if not isinstance(rows, list):
            raise MarketDataError("Invalid OHLC response from Kraken")

        candles: list[Candle] = []
        for row in rows[:-1]:
            if not isinstance(row, list) or len(row) < 8:
                continue
            try:
                candle = parse_candle(row)
            except (TypeError, ValueError):
                continue
            if is_candle_valid(candle):
                candles.append(candle)

        try:
            last = int(result.get("last") or 0)
        except (TypeError, ValueError):
            last = 0
        return OhlcResult(candles=tuple(candles), last=last)

    async def get_candles(self, pair: str, interval: int, limit: int) -> MarketSeries:
        """Resolve *pair* and return its most recent *limit* closed candles.

        Raises:
            ValueError: *interval* or *limit* out of range.
            PairNotFoundError: Unknown pair.
            MarketDataError: Kraken failure.
        """
        if interval not in ALLOWED_INTERVALS:
            raise ValueError(
                f"'interval' must be one of: {', '.join(str(i) for i in ALLOWED_INTERVALS)}"
            )
        if not 1 <= limit <= MAX_CANDLES:
            raise ValueError(f"'limit' must be between 1 and {MAX_CANDLES}")

        resolved = await self.resolve(pair)
        cache_key = f"{resolved.pair_key}:{interval}"

        ohlc = self._ohlc_cache.get(cache_key)
        if ohlc is None:
            ohlc = await self.fetch_ohlc(resolved.pair_key, interval)
            self._ohlc_cache.set(cache_key, ohlc)
        else:
            logger.debug("OHLC cache hit for %s", cache_key)

        return MarketSeries(
            input_pair=pair.strip(),
            pair=resolved,
            interval=interval,
            last=ohlc.last,
            candles=ohlc.candles[-limit:],
        )

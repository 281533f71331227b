"""SignalDesk — application configuration.

Loads .env variables into a typed config object.
Every variable is optional; malformed values fail on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

ALLOWED_INTERVALS: tuple[int, ...] = (1, 5, 15, 30, 60, 240, 1440)
# Candles requested for analysis: enough for the engine, at most one Kraken page
MIN_DEFAULT_LIMIT = 50
MAX_DEFAULT_LIMIT = 720


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    kraken_base_url: str
    http_timeout_seconds: float
    ohlc_ttl_seconds: float
    asset_pairs_ttl_seconds: float
    default_interval: int  # minutes, one of ALLOWED_INTERVALS
    default_limit: int
    scan_delay_seconds: float
    log_level: str
    api_host: str
    api_port: int


def _env(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` naming the variable when a value cannot be
    parsed, ``DEFAULT_INTERVAL`` is not a supported candle interval or
    ``DEFAULT_LIMIT`` falls outside 50..720.
    """
    load_dotenv(dotenv_path=env_path)

    interval = _env("DEFAULT_INTERVAL", "240", int)
    if interval not in ALLOWED_INTERVALS:
        raise ValueError(
            f"Invalid value for DEFAULT_INTERVAL: {interval} "
            f"(must be one of {', '.join(str(i) for i in ALLOWED_INTERVALS)})"
        )

    limit = _env("DEFAULT_LIMIT", "300", int)
    if not MIN_DEFAULT_LIMIT <= limit <= MAX_DEFAULT_LIMIT:
        raise ValueError(
            f"Invalid value for DEFAULT_LIMIT: {limit} "
            f"(must be between {MIN_DEFAULT_LIMIT} and {MAX_DEFAULT_LIMIT})"
        )

    return Config(
        kraken_base_url=os.environ.get("KRAKEN_BASE_URL", "https://api.kraken.com").rstrip("/"),
        http_timeout_seconds=_env("HTTP_TIMEOUT_SECONDS", "30", float),
        ohlc_ttl_seconds=_env("OHLC_TTL_SECONDS", "60", float),
        asset_pairs_ttl_seconds=_env("ASSET_PAIRS_TTL_SECONDS", "86400", float),
        default_interval=interval,
        default_limit=limit,
        scan_delay_seconds=_env("SCAN_DELAY_SECONDS", "0.1", float),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_host=os.environ.get("API_HOST", "0.0.0.0"),
        api_port=_env("API_PORT", "8080", int),
    )

"""SignalDesk — application entry point.

Boots the FastAPI server and provides the CLI entry point for one-off
analysis of a single pair.
"""

import logging

from fastapi import FastAPI

from signaldesk.api.routers import router

app = FastAPI(title="SignalDesk API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("signaldesk")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments and either analyse one pair or serve the API."""
    import argparse
    import asyncio

    from signaldesk.api.routers import configure_routers
    from signaldesk.config import ALLOWED_INTERVALS, load_config
    from signaldesk.market.kraken_client import KrakenClient

    parser = argparse.ArgumentParser(description="SignalDesk crypto analysis")
    parser.add_argument("--pair", help="Analyse a single pair (e.g. BTC/USD) and exit")
    parser.add_argument(
        "--interval",
        type=int,
        choices=ALLOWED_INTERVALS,
        help="Candle interval in minutes (default: DEFAULT_INTERVAL)",
    )
    parser.add_argument("--limit", type=int, help="Number of candles (default: DEFAULT_LIMIT)")
    parser.add_argument("--env-file", help="Path to a .env file")
    args = parser.parse_args()

    config = load_config(args.env_file)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    client = KrakenClient(config)

    if args.pair:
        from signaldesk.market.models import MarketDataError

        try:
            asyncio.run(
                _analyse_once(
                    client,
                    args.pair,
                    args.interval or config.default_interval,
                    args.limit or config.default_limit,
                )
            )
        except (MarketDataError, ValueError) as exc:
            raise SystemExit(f"error: {exc}") from exc
        return

    configure_routers(client=client, config=config)
    _serve(config)


async def _analyse_once(client, pair: str, interval: int, limit: int) -> None:
    """Fetch, analyse and print one pair as JSON."""
    import json

    from signaldesk.analysis.engine import analyse_candles
    from signaldesk.analysis.formatting import result_to_dict

    series = await client.get_candles(pair, interval, limit)
    result = analyse_candles(series.pair.display_pair, list(series.candles))
    body = result_to_dict(result)
    body["pair"] = series.pair.display_pair
    body["interval"] = series.interval
    print(json.dumps(body, indent=2))


def _serve(config) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    logger.info("SignalDesk API listening on %s:%d", config.api_host, config.api_port)
    uvicorn.run(app, host=config.api_host, port=config.api_port, log_level="info")


if __name__ == "__main__":
    _run_cli()

from __future__ import annotations

import argparse
import asyncio
import datetime
import logging
import time

from marketlog.config.settings import settings
from marketlog.db.session import AsyncSessionLocal, engine
from marketlog.errors import IngestError
from marketlog.jobs.activity import record_event
from marketlog.jobs.market_fetch import fetch_and_store
from marketlog.scheduling.market_hours import is_market_open

logger = logging.getLogger(__name__)


def market_is_open(now: datetime.datetime) -> bool:
    hours = settings.market_hours
    return is_market_open(now, hours.zone, hours.start_time, hours.end_time)


async def run_fetch_cycle(now: datetime.datetime | None = None) -> int | None:
    """Run one poll: fetch and store quotes if the market is open.

    Returns the number of rows written, or None when the market was closed or
    the cycle failed. Failures are logged and recorded as events so the
    polling loop keeps going.
    """
    request_id = f"poller-{time.time_ns()}"
    now = now or datetime.datetime.now(datetime.UTC)
    source = settings.poller.source

    if not market_is_open(now):
        logger.info("Market is closed. Sleeping.")
        async with AsyncSessionLocal() as session:
            await record_event(
                session,
                "INFO",
                "Market is closed. Sleeping.",
                {"request_id": request_id},
                source=source,
            )
        return None

    instruments = settings.poller.instruments
    logger.info("Market is open. Fetching %s instruments in one batch...", len(instruments))
    try:
        return await fetch_and_store(instruments, request_id, source)
    except IngestError as exc:
        logger.error("[%s] Fetch cycle failed: %s", request_id, exc)
        return None


async def poll_forever() -> None:
    interval = settings.poller.interval_seconds
    hours = settings.market_hours
    logger.info(
        "Loaded %s instruments. Fetching every %ss.",
        len(settings.poller.instruments),
        interval,
    )
    logger.info(
        "Time window: %s-%s (%s).",
        hours.start_time.strftime("%H:%M"),
        hours.end_time.strftime("%H:%M"),
        hours.timezone,
    )
    while True:
        start = time.monotonic()
        await run_fetch_cycle()
        elapsed = time.monotonic() - start
        await asyncio.sleep(max(0.0, interval - elapsed))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll market quotes during market hours.")
    parser.add_argument("--once", action="store_true", help="Run a single fetch cycle and exit.")
    return parser.parse_args()


async def _main(once: bool) -> None:
    try:
        if once:
            await run_fetch_cycle()
        else:
            await poll_forever()
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("--- Starting Market Poller Service ---")
    args = parse_args()
    asyncio.run(_main(args.once))


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from marketlog.config.settings import settings
from marketlog.db.models import EventRecord, MarketDataRow
from marketlog.db.session import engine, wait_for_database

logger = logging.getLogger(__name__)

# pg_advisory_xact_lock keys, one per stream.
EVENTS_SCHEMA_LOCK = 7_201_001
MARKET_SCHEMA_LOCK = 7_201_002


async def _ensure_table(db_engine: AsyncEngine, model, lock_key: int) -> None:
    table = model.__table__
    async with db_engine.begin() as conn:
        await conn.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": lock_key})
        await conn.run_sync(table.create, checkfirst=True)
    logger.info("'%s' table is ready.", table.name)


async def ensure_events_schema(db_engine: AsyncEngine) -> None:
    await _ensure_table(db_engine, EventRecord, EVENTS_SCHEMA_LOCK)


async def ensure_market_schema(db_engine: AsyncEngine) -> None:
    await _ensure_table(db_engine, MarketDataRow, MARKET_SCHEMA_LOCK)


async def ensure_all_schemas(db_engine: AsyncEngine) -> None:
    await ensure_events_schema(db_engine)
    await ensure_market_schema(db_engine)


_STREAMS = {
    "events": ensure_events_schema,
    "marketdata": ensure_market_schema,
    "all": ensure_all_schemas,
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the destination tables if they are missing.")
    parser.add_argument("--stream", choices=sorted(_STREAMS), default="all")
    return parser.parse_args()


async def _migrate(stream: str) -> None:
    try:
        await wait_for_database(
            engine,
            attempts=settings.database_connect_attempts,
            delay_seconds=settings.database_connect_delay_seconds,
        )
        await _STREAMS[stream](engine)
    finally:
        await engine.dispose()


def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = parse_args()
    asyncio.run(_migrate(args.stream))


if __name__ == "__main__":
    main()

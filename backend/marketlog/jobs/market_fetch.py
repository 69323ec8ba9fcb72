from __future__ import annotations

import asyncio
import logging

from marketlog.config.settings import settings
from marketlog.db.models import MarketDataRow
from marketlog.db.session import AsyncSessionLocal, engine
from marketlog.db.writer import write_all
from marketlog.errors import IngestError
from marketlog.jobs.activity import record_event
from marketlog.normalize.marketdata import flatten_envelope
from marketlog.parsing.payload import decode_envelope
from marketlog.providers import upstox

logger = logging.getLogger(__name__)


async def fetch_and_store(instruments: list[str], request_id: str, source: str) -> int:
    """Fetch quotes for `instruments`, flatten them and store the rows atomically."""
    async with AsyncSessionLocal() as session:
        await record_event(
            session,
            "INFO",
            "Attempting to fetch data",
            {
                "instrument_count": str(len(instruments)),
                "url": upstox.build_quote_url(instruments),
                "request_id": request_id,
            },
            source=source,
        )
        try:
            body = upstox.fetch_quotes(instruments, request_id)
            rows = flatten_envelope(decode_envelope(body))
            written = await write_all(
                session, MarketDataRow, rows, timeout=settings.write_timeout_seconds
            )
        except IngestError as exc:
            logger.error("[%s] Market fetch failed: %s", request_id, exc)
            await record_event(
                session,
                "ERROR",
                "Market fetch failed",
                {"error": str(exc), "request_id": request_id},
                source=source,
            )
            raise

        logger.info("[%s] Successfully fetched and ingested %s rows", request_id, written)
        await record_event(
            session,
            "INFO",
            "Successfully ingested data",
            {
                "instrument_count": str(len(instruments)),
                "ingested": str(written),
                "request_id": request_id,
            },
            source=source,
        )
        return written


async def _run(instruments: list[str], request_id: str, source: str) -> int:
    try:
        return await fetch_and_store(instruments, request_id, source)
    finally:
        await engine.dispose()


def run_market_fetch(instruments: list[str], request_id: str, source: str | None = None) -> int:
    return asyncio.run(_run(instruments, request_id, source or settings.on_demand_source))

import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketlog.config.settings import settings
from marketlog.db.models import EventRecord, MarketDataRow
from marketlog.db.session import get_session
from marketlog.db.writer import write_all
from marketlog.errors import DecodeError, FlattenError, WriteError
from marketlog.jobs.queue import enqueue_market_fetch
from marketlog.normalize.marketdata import flatten_envelope
from marketlog.parsing.payload import decode_envelope, decode_events
from marketlog.schemas.ingest import FetchJobResult, IngestResult
from marketlog.schemas.marketdata import FetchRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": message},
    )


def _write_failed(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message},
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post(
    "/ingest/events",
    response_model=IngestResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_events_endpoint(
    request: Request, db: AsyncSession = Depends(get_session)
) -> IngestResult:
    body = await request.body()
    try:
        events = decode_events(body)
    except DecodeError as exc:
        logger.warning("JSON parsing failed: %s", exc)
        raise _bad_request("Invalid JSON format") from exc

    if not events:
        raise _bad_request("No events provided")

    try:
        written = await write_all(
            db, EventRecord, events, timeout=settings.write_timeout_seconds
        )
    except WriteError as exc:
        raise _write_failed("Failed to save events") from exc

    logger.info("Successfully ingested %s events", written)
    return IngestResult(ingested=written)


@router.post(
    "/ingest/marketdata",
    response_model=IngestResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_marketdata_endpoint(
    request: Request, db: AsyncSession = Depends(get_session)
) -> IngestResult:
    body = await request.body()
    try:
        rows = flatten_envelope(decode_envelope(body))
    except DecodeError as exc:
        logger.warning("Failed to decode market envelope: %s", exc)
        raise _bad_request("Failed to decode JSON") from exc
    except FlattenError as exc:
        logger.warning("Rejected market envelope: %s", exc)
        raise _bad_request(f"Invalid snapshot for {exc.instrument}") from exc

    try:
        written = await write_all(
            db, MarketDataRow, rows, timeout=settings.write_timeout_seconds
        )
    except WriteError as exc:
        raise _write_failed("Failed to save market data") from exc

    logger.info("Successfully ingested batch of %s market tokens", written)
    return IngestResult(ingested=written)


@router.post(
    "/fetch/marketdata",
    response_model=FetchJobResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def fetch_marketdata_endpoint(payload: FetchRequest) -> FetchJobResult:
    instruments = [item.strip() for item in payload.instruments if item.strip()]
    if not instruments:
        raise _bad_request("No instruments provided in request")

    request_id = f"manual-{time.time_ns()}"
    job = enqueue_market_fetch(instruments=instruments, request_id=request_id)
    logger.info("[%s] Manual fetch queued for: %s", request_id, ",".join(instruments))
    return FetchJobResult(job_id=job.id, request_id=request_id)

from __future__ import annotations

import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marketlog.config.settings import settings
from marketlog.db.models import EventRecord
from marketlog.db.writer import write_all
from marketlog.errors import WriteError
from marketlog.schemas.events import Event

logger = logging.getLogger(__name__)


async def record_event(
    session: AsyncSession,
    level: str,
    message: str,
    context: dict[str, str] | None = None,
    source: str | None = None,
) -> bool:
    """Store one activity event; a failed write is logged, never raised."""
    event = Event(
        timestamp=datetime.datetime.now(datetime.UTC),
        level=level,
        source=source or settings.poller.source,
        message=message,
        context=context or {},
    )
    try:
        await write_all(session, EventRecord, [event], timeout=settings.write_timeout_seconds)
    except WriteError as exc:
        logger.warning("Failed to record %s event %r: %s", level, message, exc)
        return False
    return True

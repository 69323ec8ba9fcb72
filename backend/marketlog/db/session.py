# backend/marketlog/db/session.py

import asyncio
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from marketlog.config.settings import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(autoflush=False, bind=engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency to get a database session."""
    async with AsyncSessionLocal() as session:
        yield session


async def wait_for_database(
    db_engine: AsyncEngine, attempts: int, delay_seconds: float
) -> None:
    """Ping the database until it answers, raising the last error after `attempts` tries."""
    for attempt in range(1, attempts + 1):
        try:
            async with db_engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return
        except (DBAPIError, OSError) as exc:
            logger.warning("Database ping failed (attempt %s/%s): %s", attempt, attempts, exc)
            if attempt == attempts:
                raise
            await asyncio.sleep(delay_seconds)

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from marketlog.api.routes import router
from marketlog.config.settings import settings
from marketlog.db.schema import ensure_all_schemas
from marketlog.db.session import engine, wait_for_database

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await wait_for_database(
        engine,
        attempts=settings.database_connect_attempts,
        delay_seconds=settings.database_connect_delay_seconds,
    )
    await ensure_all_schemas(engine)
    logger.info("Ingestion service ready.")
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="marketlog",
        version="0.1.0",
        description="Ingestion service for application events and market data.",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Table, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketlog.errors import WriteError

logger = logging.getLogger(__name__)


def _as_table(destination) -> Table:
    return getattr(destination, "__table__", destination)


def _row_params(row: BaseModel | Mapping[str, Any], columns: set[str]) -> dict[str, Any]:
    values = row.model_dump() if isinstance(row, BaseModel) else dict(row)
    return {key: value for key, value in values.items() if key in columns}


async def _rollback(session: AsyncSession, table_name: str) -> None:
    try:
        await session.rollback()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Rollback on %s failed, connection discarded: %s", table_name, exc)


async def write_all(
    session: AsyncSession,
    destination,
    rows: Sequence[BaseModel | Mapping[str, Any]],
    *,
    timeout: float | None = None,
) -> int:
    """Insert every row in one transaction, or none of them.

    One INSERT statement is built for the destination table and executed per
    row in input order, then committed once. Any failure, including the
    deadline expiring or the server being unreachable, rolls the whole call
    back before WriteError is raised. Row fields that are not columns of the
    table are ignored.
    """
    if not rows:
        return 0

    table = _as_table(destination)
    columns = set(table.columns.keys())
    stmt = insert(table)

    try:
        async with asyncio.timeout(timeout):
            for row in rows:
                await session.execute(stmt, _row_params(row, columns))
            await session.commit()
    except TimeoutError as exc:
        await _rollback(session, table.name)
        logger.error("Write to %s timed out after %ss, rolled back %s rows", table.name, timeout, len(rows))
        raise WriteError(table.name, f"timed out after {timeout}s") from exc
    except (SQLAlchemyError, OSError) as exc:
        # asyncpg connection failures reach us as bare OSError subclasses.
        await _rollback(session, table.name)
        logger.error("Write to %s failed, rolled back %s rows: %s", table.name, len(rows), exc)
        raise WriteError(table.name, str(exc)) from exc

    logger.info("Committed %s rows to %s", len(rows), table.name)
    return len(rows)

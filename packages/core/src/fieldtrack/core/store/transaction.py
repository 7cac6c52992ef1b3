"""Write transactions

Every write runs on its own connection inside BEGIN IMMEDIATE, so SQLite's
write lock serializes concurrent writers across coroutines and processes.
The whole transaction is bounded by a timeout; on any error or cancellation
it rolls back, leaving no partially visible state.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite
import structlog

from ..config import TRANSACTION_TIMEOUT_S
from .activity_store import SqliteActivityStore
from .attachment_store import SqliteAttachmentStore
from .geo_store import SqliteGeoStore
from .task_store import SqliteTaskStore

log = structlog.get_logger()


class TransactionStores:
    """Stores bound to one transaction's connection"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.activity_store = SqliteActivityStore(conn)
        self.attachment_store = SqliteAttachmentStore(conn)
        self.geo_store = SqliteGeoStore(conn)


@asynccontextmanager
async def write_transaction(
    db_path: str,
    timeout_s: float | None = None,
) -> AsyncIterator[TransactionStores]:
    """Open a connection, BEGIN IMMEDIATE, commit on success, roll back otherwise

    Args:
        db_path: SQLite database file
        timeout_s: budget for acquiring the write lock plus the body;
            defaults to TRANSACTION_TIMEOUT_S

    Raises:
        TimeoutError: the budget was exceeded (after rollback)
    """
    budget = TRANSACTION_TIMEOUT_S if timeout_s is None else timeout_s
    conn = await aiosqlite.connect(db_path, timeout=budget, isolation_level=None)
    try:
        await conn.execute("PRAGMA foreign_keys = ON;")
        await conn.execute(f"PRAGMA busy_timeout = {int(budget * 1000)};")
        try:
            async with asyncio.timeout(budget):
                await conn.execute("BEGIN IMMEDIATE")
                yield TransactionStores(conn)
                await conn.commit()
        except BaseException as exc:
            if conn.in_transaction:
                await conn.rollback()
            log.debug("write_transaction_rolled_back", error_type=type(exc).__name__)
            raise
    finally:
        await conn.close()

"""fieldtrack Core Store -- SQLite persistence

Factory for a StoreGroup: stores bound to a shared read connection, plus
write_transaction() for atomic writes on a dedicated connection.
"""

from contextlib import AbstractAsyncContextManager
from pathlib import Path

import aiosqlite

from .activity_store import SqliteActivityStore
from .attachment_store import SqliteAttachmentStore, compute_hash_and_size
from .geo_store import SqliteGeoStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore
from .transaction import TransactionStores, write_transaction


class StoreGroup:
    """Store instances sharing one read connection"""

    def __init__(self, conn: aiosqlite.Connection, db_path: str) -> None:
        self.conn = conn
        self.db_path = db_path
        self.task_store = SqliteTaskStore(conn)
        self.activity_store = SqliteActivityStore(conn)
        self.attachment_store = SqliteAttachmentStore(conn)
        self.geo_store = SqliteGeoStore(conn)

    def transaction(
        self,
        timeout_s: float | None = None,
    ) -> AbstractAsyncContextManager[TransactionStores]:
        """Atomic write scope on a dedicated connection"""
        return write_transaction(self.db_path, timeout_s)

    async def close(self) -> None:
        await self.conn.close()


async def create_store_group(db_path: str) -> StoreGroup:
    """Create a StoreGroup

    Args:
        db_path: SQLite database file path

    Returns:
        StoreGroup instance with an initialized schema
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn, db_path=db_path)


__all__ = [
    "StoreGroup",
    "TransactionStores",
    "create_store_group",
    "write_transaction",
    "SqliteTaskStore",
    "SqliteActivityStore",
    "SqliteAttachmentStore",
    "SqliteGeoStore",
    "compute_hash_and_size",
    "init_db",
]

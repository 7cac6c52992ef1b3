"""AttachmentStore SQLite implementation

A row is inserted staged (task_id and activity_id NULL) once its bytes are
in the storage provider. link_to_activity() sets both links in the event
transaction; soft_delete() sets deleted_at. Nothing else updates a row.
"""

import hashlib
from datetime import datetime

import aiosqlite

from ..models.attachment import Attachment

_COLUMNS = (
    "attachment_id, task_id, activity_id, provider, storage_ref, mime_type, "
    "original_filename, size, hash, uploaded_by, created_at, deleted_at"
)


def compute_hash_and_size(content: bytes) -> tuple[str, int]:
    """SHA-256 hex digest and byte size of a file"""
    return hashlib.sha256(content).hexdigest(), len(content)


class SqliteAttachmentStore:
    """AttachmentStore backed by SQLite"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def insert_attachment(self, attachment: Attachment) -> None:
        """Insert an attachment row; does not commit"""
        await self._conn.execute(
            f"""
            INSERT INTO attachments ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attachment.attachment_id,
                attachment.task_id,
                attachment.activity_id,
                attachment.provider,
                attachment.storage_ref,
                attachment.mime_type,
                attachment.original_filename,
                attachment.size,
                attachment.hash,
                attachment.uploaded_by,
                attachment.created_at.isoformat(),
                attachment.deleted_at.isoformat() if attachment.deleted_at else None,
            ),
        )

    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM attachments WHERE attachment_id = ?",
            (attachment_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_attachment(row)

    async def list_for_task(
        self,
        task_id: str,
        include_deleted: bool = False,
    ) -> list[Attachment]:
        """Attachments linked to a task, oldest first"""
        deleted = "" if include_deleted else " AND deleted_at IS NULL"
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM attachments
            WHERE task_id = ?{deleted}
            ORDER BY created_at ASC, rowid ASC
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_attachment(row) for row in rows]

    async def list_for_activity(self, activity_id: str) -> list[Attachment]:
        """Attachments produced by one activity, oldest first"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM attachments
            WHERE activity_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (activity_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_attachment(row) for row in rows]

    async def link_to_activity(
        self,
        attachment_ids: list[str],
        task_id: str,
        activity_id: str,
    ) -> int:
        """Link staged attachments to a task and its activity in one statement

        Only staged, non-deleted rows are touched, so an attachment can never
        end up referenced by two events.

        Returns:
            Number of linked rows
        """
        if not attachment_ids:
            return 0
        placeholders = ", ".join("?" for _ in attachment_ids)
        cursor = await self._conn.execute(
            f"""
            UPDATE attachments
            SET task_id = ?, activity_id = ?
            WHERE attachment_id IN ({placeholders})
              AND task_id IS NULL AND activity_id IS NULL AND deleted_at IS NULL
            """,
            (task_id, activity_id, *attachment_ids),
        )
        return cursor.rowcount

    async def soft_delete(
        self,
        attachment_id: str,
        deleted_at: datetime,
        staged_only: bool = False,
    ) -> int:
        """Mark an attachment deleted; staged_only skips rows already linked"""
        staged = " AND task_id IS NULL AND activity_id IS NULL" if staged_only else ""
        cursor = await self._conn.execute(
            f"""
            UPDATE attachments SET deleted_at = ?
            WHERE attachment_id = ? AND deleted_at IS NULL{staged}
            """,
            (deleted_at.isoformat(), attachment_id),
        )
        return cursor.rowcount

    async def list_orphans(self, created_before: datetime) -> list[Attachment]:
        """Staged attachments never linked to an event"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM attachments
            WHERE task_id IS NULL AND activity_id IS NULL AND deleted_at IS NULL
              AND created_at < ?
            ORDER BY created_at ASC
            """,
            (created_before.isoformat(),),
        )
        rows = await cursor.fetchall()
        return [self._row_to_attachment(row) for row in rows]

    @staticmethod
    def _row_to_attachment(row: aiosqlite.Row) -> Attachment:
        """Map a database row to Attachment"""
        return Attachment(
            attachment_id=row[0],
            task_id=row[1],
            activity_id=row[2],
            provider=row[3],
            storage_ref=row[4],
            mime_type=row[5],
            original_filename=row[6],
            size=row[7],
            hash=row[8],
            uploaded_by=row[9],
            created_at=datetime.fromisoformat(row[10]),
            deleted_at=datetime.fromisoformat(row[11]) if row[11] else None,
        )

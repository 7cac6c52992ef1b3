"""ActivityStore SQLite implementation

The activities table is append-only: this class only inserts, and triggers
reject UPDATE/DELETE at the database level.
subject_seq is strictly increasing within a subject; it is assigned inside
the caller's write transaction, which serializes writers.
"""

import json
from datetime import UTC, datetime
from typing import Any

import aiosqlite
from ulid import ULID

from ..models.activity import ActivityPage, ActivityRecord
from ..models.enums import ActivityType

_COLUMNS = "activity_id, actor_id, subject_key, subject_seq, type, payload, created_at"


class SqliteActivityStore:
    """ActivityStore backed by SQLite"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append(
        self,
        actor_id: str | None,
        subject_key: str,
        activity_type: ActivityType,
        payload: dict[str, Any],
        created_at: datetime | None = None,
    ) -> ActivityRecord:
        """Append a record to a subject feed

        Does not commit; the caller owns the transaction.
        """
        record = ActivityRecord(
            activity_id=str(ULID()),
            actor_id=actor_id,
            subject_key=subject_key,
            subject_seq=await self.get_next_subject_seq(subject_key),
            type=activity_type,
            payload=payload,
            created_at=created_at or datetime.now(UTC),
        )
        await self._conn.execute(
            f"""
            INSERT INTO activities ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.activity_id,
                record.actor_id,
                record.subject_key,
                record.subject_seq,
                record.type.value,
                json.dumps(record.payload, ensure_ascii=False),
                record.created_at.isoformat(),
            ),
        )
        return record

    async def get_next_subject_seq(self, subject_key: str) -> int:
        """Next subject_seq (MAX+1); call inside the write transaction"""
        cursor = await self._conn.execute(
            "SELECT COALESCE(MAX(subject_seq), 0) FROM activities WHERE subject_key = ?",
            (subject_key,),
        )
        row = await cursor.fetchone()
        return (row[0] if row else 0) + 1

    async def get_activity(self, activity_id: str) -> ActivityRecord | None:
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM activities WHERE activity_id = ?",
            (activity_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    async def has_activity(
        self,
        subject_key: str,
        activity_type: ActivityType,
        actor_id: str,
    ) -> bool:
        """Whether the actor has a record of this type in the subject feed"""
        cursor = await self._conn.execute(
            """
            SELECT 1 FROM activities
            WHERE subject_key = ? AND type = ? AND actor_id = ?
            LIMIT 1
            """,
            (subject_key, activity_type.value, actor_id),
        )
        return await cursor.fetchone() is not None

    async def list_by_subject(
        self,
        subject_key: str,
        types: list[ActivityType] | None = None,
        actor_id: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ActivityPage:
        """Subject feed, newest first (descending subject_seq)

        Args:
            subject_key: e.g. TASK_<id>
            types: keep only these activity types
            actor_id: keep only this actor's records
            cursor: activity_id of the last record of the previous page
            limit: page size; None returns the whole feed
        """
        clauses = ["subject_key = ?"]
        params: list[Any] = [subject_key]
        if types:
            clauses.append(f"type IN ({', '.join('?' for _ in types)})")
            params.extend(t.value for t in types)
        if actor_id is not None:
            clauses.append("actor_id = ?")
            params.append(actor_id)
        if cursor is not None:
            clauses.append(
                "subject_seq < (SELECT subject_seq FROM activities WHERE activity_id = ?)"
            )
            params.append(cursor)

        sql = (
            f"SELECT {_COLUMNS} FROM activities WHERE {' AND '.join(clauses)} "
            "ORDER BY subject_seq DESC"
        )
        return await self._fetch_page(sql, params, limit)

    async def list_by_actor(
        self,
        actor_id: str,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ActivityPage:
        """All records written by an actor, newest first (insertion order)"""
        clauses = ["actor_id = ?"]
        params: list[Any] = [actor_id]
        if cursor is not None:
            clauses.append("rowid < (SELECT rowid FROM activities WHERE activity_id = ?)")
            params.append(cursor)

        sql = (
            f"SELECT {_COLUMNS} FROM activities WHERE {' AND '.join(clauses)} "
            "ORDER BY rowid DESC"
        )
        return await self._fetch_page(sql, params, limit)

    async def get_all_activities(self) -> list[ActivityRecord]:
        """Every record ordered by subject and subject_seq (projection replay)"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM activities ORDER BY subject_key, subject_seq ASC"
        )
        rows = await cursor.fetchall()
        return [self._row_to_record(row) for row in rows]

    async def _fetch_page(
        self,
        sql: str,
        params: list[Any],
        limit: int | None,
    ) -> ActivityPage:
        if limit is not None:
            # one extra row tells whether another page exists
            sql += " LIMIT ?"
            params = [*params, limit + 1]

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        records = [self._row_to_record(row) for row in rows]

        has_next_page = limit is not None and len(records) > limit
        if has_next_page:
            records = records[:limit]
        return ActivityPage(
            records=records,
            next_cursor=records[-1].activity_id if has_next_page else None,
            has_next_page=has_next_page,
        )

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> ActivityRecord:
        """Map a database row to ActivityRecord"""
        return ActivityRecord(
            activity_id=row[0],
            actor_id=row[1],
            subject_key=row[2],
            subject_seq=row[3],
            type=ActivityType(row[4]),
            payload=json.loads(row[5]) if row[5] else {},
            created_at=datetime.fromisoformat(row[6]),
        )

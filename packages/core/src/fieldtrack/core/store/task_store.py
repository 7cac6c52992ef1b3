"""TaskStore SQLite implementation

Status changes only go through update_status_if(), a conditional update
guarded by the expected current status. Callers run it inside the same
transaction that appends the backing activity record.
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import TaskStatus
from ..models.geo import GeoCoordinate
from ..models.task import Task, TaskPointers

_COLUMNS = (
    "task_id, title, status, assignee_ids, location, created_at, updated_at, "
    "started_at, completed_at, pointers"
)

# columns update_status_if() may stamp
_TIMESTAMP_FIELDS = {"started_at", "completed_at"}


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteTaskStore:
    """TaskStore backed by SQLite"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """Insert a task row"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.status.value,
                json.dumps(task.assignee_ids),
                task.location.model_dump_json() if task.location else None,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                task.started_at.isoformat() if task.started_at else None,
                task.completed_at.isoformat() if task.completed_at else None,
                task.pointers.model_dump_json(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """Fetch a task by id"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        status: str | None = None,
        assignee_id: str | None = None,
    ) -> list[Task]:
        """List tasks newest first, optionally filtered by status and assignee"""
        clauses: list[str] = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if assignee_id:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(tasks.assignee_ids) WHERE value = ?)"
            )
            params.append(assignee_id)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks {where} ORDER BY created_at DESC, task_id DESC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_status_if(
        self,
        task_id: str,
        expected_status: str,
        new_status: str,
        updated_at: str,
        latest_activity_id: str,
        timestamp_field: str | None = None,
    ) -> int:
        """Move a task to new_status only if it still has expected_status

        Returns:
            Number of affected rows; 0 means the status changed underneath
            the caller (or the task is gone).
        """
        stamp = ""
        if timestamp_field is not None:
            if timestamp_field not in _TIMESTAMP_FIELDS:
                raise ValueError(f"unknown timestamp field: {timestamp_field}")
            stamp = f", {timestamp_field} = :updated_at"

        cursor = await self._conn.execute(
            f"""
            UPDATE tasks
            SET status = :new_status, updated_at = :updated_at{stamp},
                pointers = json_set(pointers, '$.latest_activity_id', :activity_id)
            WHERE task_id = :task_id AND status = :expected_status
            """,
            {
                "new_status": new_status,
                "updated_at": updated_at,
                "activity_id": latest_activity_id,
                "task_id": task_id,
                "expected_status": expected_status,
            },
        )
        return cursor.rowcount

    async def touch(self, task_id: str, updated_at: str, latest_activity_id: str) -> int:
        """Advance updated_at and the latest activity pointer, status untouched"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET updated_at = ?,
                pointers = json_set(pointers, '$.latest_activity_id', ?)
            WHERE task_id = ?
            """,
            (updated_at, latest_activity_id, task_id),
        )
        return cursor.rowcount

    async def update_assignees(
        self,
        task_id: str,
        assignee_ids: list[str],
        updated_at: str,
        latest_activity_id: str,
    ) -> int:
        """Replace the assignee list"""
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET assignee_ids = ?, updated_at = ?,
                pointers = json_set(pointers, '$.latest_activity_id', ?)
            WHERE task_id = ?
            """,
            (json.dumps(assignee_ids), updated_at, latest_activity_id, task_id),
        )
        return cursor.rowcount

    async def restore_status(
        self,
        task_id: str,
        status: TaskStatus,
        started_at: datetime | None,
        completed_at: datetime | None,
    ) -> None:
        """Overwrite status columns with values replayed from the activity log"""
        await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, started_at = ?, completed_at = ?
            WHERE task_id = ?
            """,
            (
                status.value,
                started_at.isoformat() if started_at else None,
                completed_at.isoformat() if completed_at else None,
                task_id,
            ),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """Map a database row to Task"""
        location = GeoCoordinate.model_validate_json(row[4]) if row[4] else None
        return Task(
            task_id=row[0],
            title=row[1],
            status=TaskStatus(row[2]),
            assignee_ids=json.loads(row[3]) if row[3] else [],
            location=location,
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
            started_at=_dt(row[7]),
            completed_at=_dt(row[8]),
            pointers=TaskPointers(**json.loads(row[9])) if row[9] else TaskPointers(),
        )

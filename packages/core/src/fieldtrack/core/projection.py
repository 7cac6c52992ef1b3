"""Projection check and rebuild

The tasks table is a projection of the activity log: replaying every
status-bearing record in subject_seq order must reproduce each task's
status, started_at and completed_at.
"""

import time
from datetime import datetime

import structlog
from pydantic import BaseModel

from .models.activity import TASK_SUBJECT_PREFIX, ActivityRecord
from .models.enums import STATUS_ACTIVITY_TYPES, ActivityType, TaskStatus
from .store import StoreGroup

log = structlog.get_logger()


class ProjectedTask(BaseModel):
    """Task status fields derived from the activity log"""

    task_id: str
    status: TaskStatus = TaskStatus.PREPARING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    latest_activity_id: str | None = None


class ProjectionMismatch(BaseModel):
    """A field whose stored value differs from the replayed one"""

    task_id: str
    field: str
    expected: str | None
    actual: str | None


def apply_record(tasks: dict[str, ProjectedTask], record: ActivityRecord) -> None:
    """Apply one activity record to the in-memory projection

    Args:
        tasks: task_id -> ProjectedTask (modified in place)
        record: record to apply; non-task subjects are ignored
    """
    if not record.subject_key.startswith(TASK_SUBJECT_PREFIX):
        return
    task_id = record.subject_key.removeprefix(TASK_SUBJECT_PREFIX)

    if record.type == ActivityType.TASK_CREATED:
        tasks[task_id] = ProjectedTask(
            task_id=task_id,
            status=TaskStatus(record.payload.get("status", TaskStatus.PREPARING)),
            latest_activity_id=record.activity_id,
        )
        return

    task = tasks.get(task_id)
    if task is None:
        return

    update: dict = {"latest_activity_id": record.activity_id}
    to_status = record.payload.get("to_status")
    if record.type in STATUS_ACTIVITY_TYPES and to_status:
        update["status"] = TaskStatus(to_status)
        if record.type == ActivityType.TASK_CHECKED_IN:
            update["started_at"] = record.created_at
        elif record.type == ActivityType.TASK_CHECKED_OUT:
            update["completed_at"] = record.created_at
    tasks[task_id] = task.model_copy(update=update)


async def replay(store_group: StoreGroup) -> tuple[dict[str, ProjectedTask], int]:
    """Replay the whole activity log; returns (projection, record count)"""
    records = await store_group.activity_store.get_all_activities()
    tasks: dict[str, ProjectedTask] = {}
    for record in records:
        apply_record(tasks, record)
    return tasks, len(records)


def _fmt(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


async def verify_projection(store_group: StoreGroup) -> list[ProjectionMismatch]:
    """Compare the tasks table with the replayed activity log

    Returns:
        Mismatches; empty when the table matches the log
    """
    start_time = time.monotonic()
    projected, record_count = await replay(store_group)
    stored = {t.task_id: t for t in await store_group.task_store.list_tasks()}

    mismatches: list[ProjectionMismatch] = []
    for task_id in sorted(stored.keys() | projected.keys()):
        task = stored.get(task_id)
        expected = projected.get(task_id)
        if task is None or expected is None:
            mismatches.append(
                ProjectionMismatch(
                    task_id=task_id,
                    field="task",
                    expected=task_id if expected else None,
                    actual=task_id if task else None,
                )
            )
            continue
        for field in ("status", "started_at", "completed_at"):
            want = _fmt(getattr(expected, field))
            got = _fmt(getattr(task, field))
            if want != got:
                mismatches.append(
                    ProjectionMismatch(task_id=task_id, field=field, expected=want, actual=got)
                )

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_verified",
        record_count=record_count,
        task_count=len(stored),
        mismatch_count=len(mismatches),
        elapsed_ms=elapsed_ms,
    )
    return mismatches


async def rebuild_all(store_group: StoreGroup) -> int:
    """Overwrite task status columns with the replayed values

    Flow:
    1. Read all activity records (by subject, subject_seq)
    2. Apply them in memory
    3. Write status, started_at, completed_at in one transaction

    Returns:
        Number of replayed records
    """
    start_time = time.monotonic()
    projected, record_count = await replay(store_group)

    await log.ainfo("projection_rebuild_started", record_count=record_count)

    async with store_group.transaction() as tx:
        for task in projected.values():
            await tx.task_store.restore_status(
                task.task_id, task.status, task.started_at, task.completed_at
            )

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        record_count=record_count,
        task_count=len(projected),
        elapsed_ms=elapsed_ms,
    )
    return record_count

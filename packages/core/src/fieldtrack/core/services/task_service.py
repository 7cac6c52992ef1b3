"""TaskService -- task creation, scheduling transitions and assignment

Scheduling actions require an elevated actor (admin or system):
- PREPARING -> READY
- IN_PROGRESS <-> ON_HOLD

Presence-driven transitions (READY -> IN_PROGRESS, IN_PROGRESS -> COMPLETED)
belong to EventRecorder and are rejected here.
Every mutation writes exactly one activity record in the same transaction.
"""

from datetime import UTC, datetime

import structlog
from ulid import ULID

from ..errors import (
    ForbiddenError,
    InvalidStateError,
    TaskConflictError,
    TaskNotFoundError,
)
from ..messages import get_message
from ..models.activity import task_subject
from ..models.actor import Actor
from ..models.enums import (
    SCHEDULING_TRANSITIONS,
    ActivityType,
    TaskStatus,
    validate_transition,
)
from ..models.geo import GeoCoordinate
from ..models.payloads import (
    AssigneesUpdatedPayload,
    StatusUpdatedPayload,
    TaskCreatedPayload,
)
from ..models.task import Task, TaskPointers
from ..store import StoreGroup

log = structlog.get_logger()


class TaskService:
    """Task business service"""

    def __init__(self, store_group: StoreGroup, locale: str | None = None) -> None:
        self._stores = store_group
        self._locale = locale

    async def create_task(
        self,
        title: str,
        actor: Actor,
        location: GeoCoordinate | None = None,
        assignee_ids: list[str] | None = None,
    ) -> Task:
        """Create a task in PREPARING together with its TASK_CREATED record

        Raises:
            ForbiddenError: actor is not elevated
        """
        self._require_elevated(actor)

        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            title=title,
            status=TaskStatus.PREPARING,
            assignee_ids=assignee_ids or [],
            location=location,
            created_at=now,
            updated_at=now,
        )

        async with self._stores.transaction() as tx:
            await tx.task_store.create_task(task)
            record = await tx.activity_store.append(
                actor.actor_id,
                task_subject(task.task_id),
                ActivityType.TASK_CREATED,
                TaskCreatedPayload(
                    title=task.title,
                    status=task.status,
                    assignee_ids=task.assignee_ids,
                ).model_dump(mode="json"),
                created_at=now,
            )
            await tx.task_store.touch(task.task_id, now.isoformat(), record.activity_id)

        log.info("task_created", task_id=task.task_id, actor_id=actor.actor_id)
        return task.model_copy(
            update={"pointers": TaskPointers(latest_activity_id=record.activity_id)}
        )

    async def update_status(
        self,
        task_id: str,
        actor: Actor,
        target: TaskStatus,
    ) -> Task:
        """Apply a scheduling transition

        Raises:
            ForbiddenError: actor is not elevated
            TaskNotFoundError: unknown task
            InvalidStateError: illegal or presence-only transition
            TaskConflictError: status changed between read and write
        """
        self._require_elevated(actor)
        task = await self.get_task(task_id)

        current = task.status
        if (
            not validate_transition(current, target)
            or (current, target) not in SCHEDULING_TRANSITIONS
        ):
            raise InvalidStateError(
                get_message(
                    "task.invalid_transition",
                    self._locale,
                    from_status=current.value,
                    to_status=target.value,
                )
            )

        now = datetime.now(UTC)
        async with self._stores.transaction() as tx:
            record = await tx.activity_store.append(
                actor.actor_id,
                task_subject(task_id),
                ActivityType.TASK_STATUS_UPDATED,
                StatusUpdatedPayload(from_status=current, to_status=target).model_dump(
                    mode="json"
                ),
                created_at=now,
            )
            updated = await tx.task_store.update_status_if(
                task_id,
                expected_status=current.value,
                new_status=target.value,
                updated_at=now.isoformat(),
                latest_activity_id=record.activity_id,
            )
            if updated == 0:
                # aborts the transaction, the appended record goes with it
                raise TaskConflictError.from_key("task.conflict", self._locale)

        log.info(
            "task_status_updated",
            task_id=task_id,
            from_status=current.value,
            to_status=target.value,
        )
        return await self.get_task(task_id)

    async def update_assignees(
        self,
        task_id: str,
        actor: Actor,
        assignee_ids: list[str],
    ) -> Task:
        """Replace the assignee list of a task"""
        self._require_elevated(actor)
        task = await self.get_task(task_id)
        current = list(dict.fromkeys(assignee_ids))

        now = datetime.now(UTC)
        async with self._stores.transaction() as tx:
            record = await tx.activity_store.append(
                actor.actor_id,
                task_subject(task_id),
                ActivityType.TASK_ASSIGNEES_UPDATED,
                AssigneesUpdatedPayload(
                    previous=task.assignee_ids,
                    current=current,
                ).model_dump(mode="json"),
                created_at=now,
            )
            await tx.task_store.update_assignees(
                task_id, current, now.isoformat(), record.activity_id
            )

        log.info("task_assignees_updated", task_id=task_id, count=len(current))
        return await self.get_task(task_id)

    async def get_task(self, task_id: str) -> Task:
        """Fetch a task

        Raises:
            TaskNotFoundError: unknown task
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError.from_key("task.not_found", self._locale)
        return task

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
    ) -> list[Task]:
        """List tasks newest first"""
        return await self._stores.task_store.list_tasks(
            status=status.value if status else None,
            assignee_id=assignee_id,
        )

    def _require_elevated(self, actor: Actor) -> None:
        if not actor.is_elevated:
            raise ForbiddenError.from_key("task.forbidden", self._locale)

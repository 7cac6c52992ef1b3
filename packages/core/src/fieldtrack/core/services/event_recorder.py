"""EventRecorder -- arrival, departure and commentary on a task

One generic path, record_event(), parameterized by an EventConfig:
1. Load the task
2. Authorize the actor (assignee, or elevated when the config allows it)
3. Check the required status
4. Check the preceding activity (same actor, same task)
5. Check attachment count and location presence
6. Geofence the reading against the task location (warnings only)
7. Stage files through AttachmentService, before any task mutation
8. One write transaction: conditional status update, geo row, activity
   record, attachment cross-links
9. Return the updated task and the new record

Steps 1-6 fail without side effects. A failure in step 8 rolls back
everything it wrote; files staged in step 7 are left as orphans.
"""

from datetime import UTC, datetime
from typing import Any, TypeVar

import aiosqlite
import structlog
from pydantic import ValidationError

from ..config import TRANSACTION_TIMEOUT_S
from ..errors import (
    AttachmentsRequiredError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    PreconditionFailedError,
    TaskConflictError,
    TaskNotFoundError,
    TransactionTimeoutError,
)
from ..geo import verify
from ..logging_config import bind_event_context, clear_event_context
from ..models.activity import ActivityRecord, task_subject
from ..models.actor import Actor
from ..models.attachment import Attachment, AttachmentSummary
from ..models.enums import ActivityType, EventKind, TaskStatus
from ..models.event import (
    CommentaryInput,
    EventConfig,
    EventData,
    EventResult,
    PresenceEventInput,
)
from ..models.geo import GeoCoordinate, GeoLocation
from ..models.payloads import EventGeoPayload, TaskEventPayload
from ..store import StoreGroup
from .attachment_service import AttachmentService

log = structlog.get_logger()

InputT = TypeVar("InputT", PresenceEventInput, CommentaryInput)

ARRIVAL = EventConfig(
    kind=EventKind.ARRIVAL,
    activity_type=ActivityType.TASK_CHECKED_IN,
    required_status=TaskStatus.READY,
    target_status=TaskStatus.IN_PROGRESS,
    timestamp_field="started_at",
    requires_attachment=True,
    requires_location=True,
    max_files=10,
    invalid_state_message="arrival.invalid_state",
)

DEPARTURE = EventConfig(
    kind=EventKind.DEPARTURE,
    activity_type=ActivityType.TASK_CHECKED_OUT,
    required_status=TaskStatus.IN_PROGRESS,
    target_status=TaskStatus.COMPLETED,
    timestamp_field="completed_at",
    requires_attachment=True,
    requires_location=True,
    preceding_activity_type=ActivityType.TASK_CHECKED_IN,
    max_files=10,
    invalid_state_message="departure.invalid_state",
    precondition_message="departure.requires_arrival",
)

COMMENTARY = EventConfig(
    kind=EventKind.COMMENTARY,
    activity_type=ActivityType.TASK_COMMENTED,
    max_files=5,
    allow_elevated=True,
)

# Types listed by list_events() when no type filter is given
EVENT_ACTIVITY_TYPES: list[ActivityType] = [
    ActivityType.TASK_CHECKED_IN,
    ActivityType.TASK_CHECKED_OUT,
    ActivityType.TASK_COMMENTED,
]


class EventRecorder:
    """Records task events atomically"""

    def __init__(
        self,
        store_group: StoreGroup,
        attachment_service: AttachmentService,
        threshold_meters: float | None = None,
        locale: str | None = None,
        transaction_timeout_s: float | None = None,
    ) -> None:
        self._stores = store_group
        self._attachments = attachment_service
        self._threshold_meters = threshold_meters
        self._locale = locale
        self._timeout_s = (
            TRANSACTION_TIMEOUT_S if transaction_timeout_s is None else transaction_timeout_s
        )

    async def record_arrival(
        self,
        task_id: str,
        actor: Actor,
        event_input: PresenceEventInput | dict[str, Any],
    ) -> EventResult:
        """Check in: READY -> IN_PROGRESS, stamps started_at"""
        presence = self._parse(PresenceEventInput, event_input)
        return await self.record_event(self._presence_data(task_id, actor, presence), ARRIVAL)

    async def record_departure(
        self,
        task_id: str,
        actor: Actor,
        event_input: PresenceEventInput | dict[str, Any],
    ) -> EventResult:
        """Check out: IN_PROGRESS -> COMPLETED, stamps completed_at"""
        presence = self._parse(PresenceEventInput, event_input)
        return await self.record_event(
            self._presence_data(task_id, actor, presence), DEPARTURE
        )

    async def record_commentary(
        self,
        task_id: str,
        actor: Actor,
        event_input: CommentaryInput | dict[str, Any],
    ) -> EventResult:
        """Comment on a task; no status change"""
        commentary = self._parse(CommentaryInput, event_input)
        data = EventData(
            task_id=task_id,
            actor=actor,
            files=commentary.files,
            text=commentary.text,
        )
        return await self.record_event(data, COMMENTARY)

    async def list_events(
        self,
        task_id: str,
        type: ActivityType | None = None,
        actor_id: str | None = None,
    ) -> list[ActivityRecord]:
        """Event history of a task, newest first

        Args:
            task_id: task to list
            type: single activity type; defaults to check-in, check-out
                and commentary records
            actor_id: keep only this actor's events

        Raises:
            TaskNotFoundError: unknown task
        """
        if await self._stores.task_store.get_task(task_id) is None:
            raise TaskNotFoundError.from_key("task.not_found", self._locale)

        types = [type] if type is not None else EVENT_ACTIVITY_TYPES
        page = await self._stores.activity_store.list_by_subject(
            task_subject(task_id),
            types=types,
            actor_id=actor_id,
        )
        return page.records

    async def record_event(self, data: EventData, config: EventConfig) -> EventResult:
        """Record one event following its configuration

        Raises:
            TaskNotFoundError: unknown task
            ForbiddenError: actor may not record on this task
            InvalidStateError: task status differs from required_status
            PreconditionFailedError: preceding activity missing
            AttachmentsRequiredError: no files where at least one is required
            InvalidInputError: file limits or missing location
            UploadFailedError: storage provider failure
            TaskConflictError: lost the conditional update race
            TransactionTimeoutError: transaction budget exceeded
        """
        actor = data.actor
        bind_event_context(data.task_id, actor.actor_id, config.kind.value)
        try:
            # 1. Load
            task = await self._stores.task_store.get_task(data.task_id)
            if task is None:
                raise TaskNotFoundError.from_key("task.not_found", self._locale)

            # 2. Authorize
            allowed = task.is_assigned(actor.actor_id) or (
                config.allow_elevated and actor.is_elevated
            )
            if not allowed:
                raise ForbiddenError.from_key("event.not_assigned", self._locale)

            # 3. Status
            if config.required_status is not None and task.status != config.required_status:
                raise InvalidStateError.from_key(config.invalid_state_message, self._locale)

            # 4. Preceding activity
            subject = task_subject(task.task_id)
            if config.preceding_activity_type is not None:
                found = await self._stores.activity_store.has_activity(
                    subject, config.preceding_activity_type, actor.actor_id
                )
                if not found:
                    raise PreconditionFailedError.from_key(
                        config.precondition_message, self._locale
                    )

            # 5. Input
            if config.requires_attachment and not data.files:
                raise AttachmentsRequiredError.from_key(
                    "event.attachments_required", self._locale
                )
            if data.files:
                self._attachments.validate_files(data.files, max_files=config.max_files)
            if config.requires_location and data.coordinate is None:
                raise InvalidInputError.from_key("event.location_required", self._locale)

            # 6. Geofence
            distance_meters: float | None = None
            within_range: bool | None = None
            warnings: list[str] = []
            if config.requires_location and task.location is not None:
                geofence = verify(
                    task.location,
                    data.coordinate,
                    threshold_meters=self._threshold_meters,
                    locale=self._locale,
                )
                distance_meters = geofence.distance_meters
                within_range = geofence.within_range
                warnings = geofence.warnings
                if not within_range:
                    log.info("geofence_out_of_range", distance_meters=round(distance_meters))

            # 7. Stage files
            staged = await self._attachments.stage_files(
                task.task_id, actor.actor_id, data.files
            )

            # 8. Commit
            try:
                record, geo_location = await self._commit(
                    data, config, task.status, staged, distance_meters, within_range, warnings
                )
            except TimeoutError as e:
                self._log_transaction_failure(staged, e)
                raise TransactionTimeoutError.from_key(
                    "transaction.timeout", self._locale
                ) from e
            except aiosqlite.OperationalError as e:
                self._log_transaction_failure(staged, e)
                if "locked" in str(e):
                    raise TransactionTimeoutError.from_key(
                        "transaction.timeout", self._locale
                    ) from e
                raise
            except Exception as e:
                self._log_transaction_failure(staged, e)
                raise

            # 9. Result
            updated_task = await self._stores.task_store.get_task(task.task_id)
            linked = [
                a.model_copy(update={"task_id": task.task_id, "activity_id": record.activity_id})
                for a in staged
            ]
            log.info(
                "task_event_recorded",
                activity_id=record.activity_id,
                attachment_count=len(linked),
                within_range=within_range,
            )
            return EventResult(
                record=record,
                task=updated_task,
                attachments=linked,
                geo_location=geo_location,
                distance_meters=distance_meters,
                within_range=within_range,
                warnings=warnings,
            )
        finally:
            clear_event_context()

    async def _commit(
        self,
        data: EventData,
        config: EventConfig,
        expected_status: TaskStatus,
        staged: list[Attachment],
        distance_meters: float | None,
        within_range: bool | None,
        warnings: list[str],
    ) -> tuple[ActivityRecord, GeoLocation | None]:
        """Write the event in a single transaction; returns (record, geo_location)"""
        now = datetime.now(UTC)
        task_id = data.task_id

        async with self._stores.transaction(self._timeout_s) as tx:
            geo_location = None
            if data.coordinate is not None:
                geo_location = await tx.geo_store.create_geo_location(
                    data.coordinate, data.accuracy_meters
                )

            payload = TaskEventPayload(
                kind=config.kind,
                from_status=expected_status if config.transitions else None,
                to_status=config.target_status,
                geo_location=(
                    EventGeoPayload(
                        id=geo_location.geo_id,
                        lat=geo_location.coordinate.lat,
                        lng=geo_location.coordinate.lng,
                        accuracy_meters=geo_location.accuracy_meters,
                    )
                    if geo_location
                    else None
                ),
                distance_from_task=distance_meters,
                within_range=within_range,
                attachments=[AttachmentSummary.from_attachment(a) for a in staged],
                notes=data.notes,
                text=data.text,
                warnings=warnings,
            )
            record = await tx.activity_store.append(
                data.actor.actor_id,
                task_subject(task_id),
                config.activity_type,
                payload.model_dump(mode="json"),
                created_at=now,
            )

            if config.transitions:
                updated = await tx.task_store.update_status_if(
                    task_id,
                    expected_status=config.required_status.value,
                    new_status=config.target_status.value,
                    updated_at=now.isoformat(),
                    latest_activity_id=record.activity_id,
                    timestamp_field=config.timestamp_field,
                )
                if updated == 0:
                    raise TaskConflictError.from_key("event.conflict", self._locale)
            else:
                await tx.task_store.touch(task_id, now.isoformat(), record.activity_id)

            if staged:
                linked = await tx.attachment_store.link_to_activity(
                    [a.attachment_id for a in staged], task_id, record.activity_id
                )
                if linked != len(staged):
                    raise TaskConflictError.from_key("event.conflict", self._locale)

        return record, geo_location

    def _log_transaction_failure(self, staged: list[Attachment], error: Exception) -> None:
        log.error(
            "task_event_transaction_failed",
            error_type=type(error).__name__,
            orphaned_attachment_ids=[a.attachment_id for a in staged],
        )

    def _parse(self, model: type[InputT], value: InputT | dict[str, Any]) -> InputT:
        """Validate raw input into the given model"""
        if isinstance(value, model):
            return value
        try:
            return model.model_validate(value)
        except ValidationError as e:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or model.__name__
                for err in e.errors()
            )
            log.warning("task_event_input_invalid", model=model.__name__, fields=fields)
            raise InvalidInputError.from_key(
                "event.invalid_input", self._locale, fields=fields
            ) from e

    @staticmethod
    def _presence_data(task_id: str, actor: Actor, presence: PresenceEventInput) -> EventData:
        return EventData(
            task_id=task_id,
            actor=actor,
            coordinate=GeoCoordinate(lat=presence.lat, lng=presence.lng),
            accuracy_meters=presence.accuracy_meters,
            files=presence.files,
            notes=presence.notes or None,
        )

"""EventRecorder unit tests

1. Arrival / departure / commentary happy paths
2. Every failure code, each leaving the task untouched
3. Attachments linked to both the task and the event
4. Geofence warnings never block
5. Conflict and timeout inside the write transaction
"""

import asyncio
from datetime import timedelta

import pytest
from fieldtrack.core.errors import (
    AttachmentsRequiredError,
    ErrorCode,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    PreconditionFailedError,
    TaskConflictError,
    TaskNotFoundError,
    TransactionTimeoutError,
    UploadFailedError,
)
from fieldtrack.core.models import (
    ActivityType,
    Actor,
    CommentaryInput,
    PresenceEventInput,
    TaskStatus,
    task_subject,
)
from fieldtrack.core.services import AttachmentService, EventRecorder
from fieldtrack.core.storage import StorageError

ON_SITE = {"lat": 21.0286, "lng": 105.8543}
# about 170 m from the task site
NEAR_SITE = {"lat": 21.0299, "lng": 105.8548}


class BrokenStorage:
    """Provider that always fails"""

    name = "broken"

    async def put(self, key: str, body: bytes, content_type: str) -> str:
        raise StorageError("disk full")

    async def get(self, key: str) -> bytes:
        raise StorageError("disk full")

    async def delete(self, key: str) -> None:
        return None


def presence(make_upload, n_files: int = 1, **overrides) -> PresenceEventInput:
    data = {**ON_SITE, "files": [make_upload(f"p{i}.jpg") for i in range(n_files)]}
    data.update(overrides)
    return PresenceEventInput(**data)


async def task_records(store_group, task_id: str):
    page = await store_group.activity_store.list_by_subject(task_subject(task_id))
    return page.records


class TestArrival:
    """Check-in"""

    async def test_arrival_success(self, event_recorder, store_group, ready_task, worker, make_upload):
        result = await event_recorder.record_arrival(
            ready_task.task_id,
            worker,
            presence(make_upload, n_files=2, accuracy_meters=8.5, notes=" gate open "),
        )

        assert result.task.status == TaskStatus.IN_PROGRESS
        assert result.task.started_at == result.record.created_at
        assert result.task.pointers.latest_activity_id == result.record.activity_id
        assert result.record.type == ActivityType.TASK_CHECKED_IN
        assert result.within_range is True
        assert result.warnings == []
        assert result.distance_meters < 100

        payload = result.record.payload
        assert payload["kind"] == "ARRIVAL"
        assert payload["from_status"] == "READY"
        assert payload["to_status"] == "IN_PROGRESS"
        assert payload["notes"] == "gate open"
        assert payload["geo_location"]["accuracy_meters"] == 8.5
        assert payload["geo_location"]["id"] == result.geo_location.geo_id
        assert len(payload["attachments"]) == 2

        geo = await store_group.geo_store.get_geo_location(result.geo_location.geo_id)
        assert geo.accuracy_meters == 8.5

    async def test_attachments_linked_both_ways(
        self, event_recorder, attachment_service, ready_task, worker, make_upload
    ):
        result = await event_recorder.record_arrival(
            ready_task.task_id, worker, presence(make_upload, n_files=3)
        )

        ids = {a.attachment_id for a in result.attachments}
        by_task = await attachment_service.list_task_attachments(ready_task.task_id)
        by_event = await attachment_service.list_event_attachments(result.record.activity_id)
        assert {a.attachment_id for a in by_task} == ids
        assert {a.attachment_id for a in by_event} == ids
        assert {a["id"] for a in result.record.payload["attachments"]} == ids
        assert await attachment_service.list_orphans(timedelta(0)) == []

    async def test_out_of_range_warns_but_records(
        self, event_recorder, ready_task, worker, make_upload
    ):
        result = await event_recorder.record_arrival(
            ready_task.task_id, worker, presence(make_upload, **NEAR_SITE)
        )

        assert result.task.status == TaskStatus.IN_PROGRESS
        assert result.within_range is False
        assert len(result.warnings) == 1
        assert f"{round(result.distance_meters)}m" in result.warnings[0]
        assert result.record.payload["within_range"] is False
        assert result.record.payload["warnings"] == result.warnings

    async def test_accuracy_does_not_change_classification(
        self, event_recorder, ready_task, worker, make_upload
    ):
        result = await event_recorder.record_arrival(
            ready_task.task_id, worker, presence(make_upload, accuracy_meters=500, **NEAR_SITE)
        )
        assert result.within_range is False

    async def test_task_without_location_skips_geofence(
        self, event_recorder, task_service, admin, worker, make_upload
    ):
        task = await task_service.create_task("no site", admin, assignee_ids=[worker.actor_id])
        await task_service.update_status(task.task_id, admin, TaskStatus.READY)

        result = await event_recorder.record_arrival(task.task_id, worker, presence(make_upload))

        assert result.distance_meters is None
        assert result.within_range is None
        assert result.geo_location is not None

    async def test_not_ready(self, event_recorder, task_service, store_group, admin, worker, make_upload):
        task = await task_service.create_task("t", admin, assignee_ids=[worker.actor_id])

        with pytest.raises(InvalidStateError) as exc_info:
            await event_recorder.record_arrival(task.task_id, worker, presence(make_upload))

        assert exc_info.value.code == ErrorCode.INVALID_STATE
        assert exc_info.value.message == "The task is not ready for check-in"
        assert (await store_group.task_store.get_task(task.task_id)).status == TaskStatus.PREPARING
        assert len(await task_records(store_group, task.task_id)) == 1

    async def test_unknown_task(self, event_recorder, worker, make_upload):
        with pytest.raises(TaskNotFoundError) as exc_info:
            await event_recorder.record_arrival("missing", worker, presence(make_upload))
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    async def test_not_assigned(self, event_recorder, ready_task, make_upload):
        with pytest.raises(ForbiddenError) as exc_info:
            await event_recorder.record_arrival(
                ready_task.task_id, Actor(actor_id="stranger"), presence(make_upload)
            )
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    async def test_admin_cannot_check_in_unassigned(self, event_recorder, ready_task, admin, make_upload):
        with pytest.raises(ForbiddenError):
            await event_recorder.record_arrival(ready_task.task_id, admin, presence(make_upload))

    async def test_attachments_required(
        self, event_recorder, store_group, ready_task, worker, make_upload
    ):
        with pytest.raises(AttachmentsRequiredError) as exc_info:
            await event_recorder.record_arrival(
                ready_task.task_id, worker, presence(make_upload, n_files=0)
            )
        assert exc_info.value.code == ErrorCode.ATTACHMENTS_REQUIRED
        assert (await store_group.task_store.get_task(ready_task.task_id)).status == TaskStatus.READY

    async def test_too_many_files(self, event_recorder, ready_task, worker, make_upload):
        with pytest.raises(InvalidInputError) as exc_info:
            await event_recorder.record_arrival(
                ready_task.task_id, worker, presence(make_upload, n_files=11)
            )
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    async def test_raw_input_validated(self, event_recorder, ready_task, worker):
        with pytest.raises(InvalidInputError) as exc_info:
            await event_recorder.record_arrival(
                ready_task.task_id, worker, {"lat": 123, "lng": 105.0}
            )
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.message == "Invalid input: lat"

    async def test_raw_input_error_is_localized(
        self, store_group, attachment_service, ready_task, worker
    ):
        recorder = EventRecorder(store_group, attachment_service, locale="vi")
        with pytest.raises(InvalidInputError) as exc_info:
            await recorder.record_commentary(ready_task.task_id, worker, {"text": ""})
        assert exc_info.value.message == "Dữ liệu không hợp lệ: text"

    async def test_upload_failure_leaves_task_untouched(
        self, store_group, ready_task, worker, make_upload, upload_config
    ):
        recorder = EventRecorder(
            store_group,
            AttachmentService(store_group, BrokenStorage(), upload_config, locale="en"),
            locale="en",
        )

        with pytest.raises(UploadFailedError) as exc_info:
            await recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))

        assert exc_info.value.code == ErrorCode.UPLOAD_FAILED
        assert exc_info.value.recoverable is True
        task = await store_group.task_store.get_task(ready_task.task_id)
        assert task.status == TaskStatus.READY
        assert task.started_at is None
        records = await task_records(store_group, ready_task.task_id)
        assert ActivityType.TASK_CHECKED_IN not in {r.type for r in records}


class TestDeparture:
    """Check-out"""

    async def test_departure_success(self, event_recorder, ready_task, worker, make_upload):
        await event_recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))
        result = await event_recorder.record_departure(
            ready_task.task_id, worker, presence(make_upload)
        )

        assert result.task.status == TaskStatus.COMPLETED
        assert result.task.completed_at == result.record.created_at
        assert result.task.started_at is not None
        assert result.record.type == ActivityType.TASK_CHECKED_OUT

    async def test_requires_own_arrival(
        self, event_recorder, store_group, ready_task, worker, other_worker, make_upload
    ):
        """Another assignee's check-in does not count"""
        await event_recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))

        with pytest.raises(PreconditionFailedError) as exc_info:
            await event_recorder.record_departure(
                ready_task.task_id, other_worker, presence(make_upload)
            )

        assert exc_info.value.code == ErrorCode.PRECONDITION_FAILED
        assert exc_info.value.message == "You must check in before checking out"
        task = await store_group.task_store.get_task(ready_task.task_id)
        assert task.status == TaskStatus.IN_PROGRESS

    async def test_departure_before_start(self, event_recorder, ready_task, worker, make_upload):
        with pytest.raises(InvalidStateError, match="has not started"):
            await event_recorder.record_departure(
                ready_task.task_id, worker, presence(make_upload)
            )

    async def test_second_departure_rejected(self, event_recorder, ready_task, worker, make_upload):
        await event_recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))
        await event_recorder.record_departure(ready_task.task_id, worker, presence(make_upload))

        with pytest.raises(InvalidStateError):
            await event_recorder.record_departure(
                ready_task.task_id, worker, presence(make_upload)
            )


class TestCommentary:
    async def test_comment_keeps_status(self, event_recorder, store_group, ready_task, worker):
        result = await event_recorder.record_commentary(
            ready_task.task_id, worker, CommentaryInput(text="  meter is rusty ")
        )

        assert result.task.status == TaskStatus.READY
        assert result.record.type == ActivityType.TASK_COMMENTED
        assert result.record.payload["text"] == "meter is rusty"
        assert result.record.payload["from_status"] is None
        assert result.geo_location is None
        assert result.task.pointers.latest_activity_id == result.record.activity_id

    async def test_elevated_unassigned_may_comment(self, event_recorder, ready_task, admin, make_upload):
        result = await event_recorder.record_commentary(
            ready_task.task_id, admin, CommentaryInput(text="ok", files=[make_upload()])
        )
        assert len(result.attachments) == 1

    async def test_unassigned_worker_cannot_comment(self, event_recorder, ready_task):
        with pytest.raises(ForbiddenError):
            await event_recorder.record_commentary(
                ready_task.task_id, Actor(actor_id="stranger"), {"text": "hi"}
            )

    async def test_at_most_five_files(self, event_recorder, ready_task, worker, make_upload):
        files = [make_upload(f"{i}.jpg") for i in range(6)]
        with pytest.raises(InvalidInputError, match="5"):
            await event_recorder.record_commentary(
                ready_task.task_id, worker, CommentaryInput(text="pics", files=files)
            )

    async def test_comment_on_completed_task(self, event_recorder, ready_task, worker, make_upload):
        await event_recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))
        await event_recorder.record_departure(ready_task.task_id, worker, presence(make_upload))

        result = await event_recorder.record_commentary(
            ready_task.task_id, worker, {"text": "follow-up"}
        )
        assert result.task.status == TaskStatus.COMPLETED


class TestListEvents:
    async def test_newest_first_and_filters(
        self, event_recorder, ready_task, worker, other_worker, make_upload
    ):
        arrival = await event_recorder.record_arrival(
            ready_task.task_id, worker, presence(make_upload)
        )
        c1 = await event_recorder.record_commentary(ready_task.task_id, other_worker, {"text": "a"})
        c2 = await event_recorder.record_commentary(ready_task.task_id, worker, {"text": "b"})

        events = await event_recorder.list_events(ready_task.task_id)
        assert [e.activity_id for e in events] == [
            c2.record.activity_id,
            c1.record.activity_id,
            arrival.record.activity_id,
        ]

        comments = await event_recorder.list_events(
            ready_task.task_id, type=ActivityType.TASK_COMMENTED
        )
        assert len(comments) == 2

        mine = await event_recorder.list_events(ready_task.task_id, actor_id=worker.actor_id)
        assert [e.activity_id for e in mine] == [c2.record.activity_id, arrival.record.activity_id]

    async def test_scheduling_records_excluded(self, event_recorder, ready_task):
        """TASK_CREATED and TASK_STATUS_UPDATED are not events"""
        assert await event_recorder.list_events(ready_task.task_id) == []

    async def test_unknown_task(self, event_recorder):
        with pytest.raises(TaskNotFoundError):
            await event_recorder.list_events("missing")


class TestTransactionFailures:
    """Failures inside the write transaction"""

    async def test_status_changed_after_checks(
        self, event_recorder, attachment_service, store_group, ready_task, worker, make_upload, monkeypatch
    ):
        """The conditional update detects a status change after validation"""
        original_stage = attachment_service.stage_files

        async def stage_then_interfere(task_id, actor_id, files):
            staged = await original_stage(task_id, actor_id, files)
            async with store_group.transaction() as tx:
                await tx.conn.execute(
                    "UPDATE tasks SET status = 'ON_HOLD' WHERE task_id = ?", (task_id,)
                )
            return staged

        monkeypatch.setattr(attachment_service, "stage_files", stage_then_interfere)

        with pytest.raises(TaskConflictError) as exc_info:
            await event_recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))

        assert exc_info.value.code == ErrorCode.CONFLICT
        records = await task_records(store_group, ready_task.task_id)
        assert ActivityType.TASK_CHECKED_IN not in {r.type for r in records}
        assert (await store_group.task_store.get_task(ready_task.task_id)).started_at is None
        # staged files stay behind unlinked
        assert len(await attachment_service.list_orphans(timedelta(0))) == 1
        assert await attachment_service.list_task_attachments(ready_task.task_id) == []

    async def test_transaction_timeout(
        self, store_group, attachment_service, ready_task, worker, make_upload, monkeypatch
    ):
        """Waiting too long for the write lock rolls back and reports a timeout"""
        recorder = EventRecorder(
            store_group, attachment_service, locale="en", transaction_timeout_s=0.3
        )

        async def no_staging(task_id, actor_id, files):
            return []

        # staging takes the write lock as well
        monkeypatch.setattr(attachment_service, "stage_files", no_staging)

        holding = asyncio.Event()
        release = asyncio.Event()

        async def hold_write_lock():
            async with store_group.transaction(timeout_s=5):
                holding.set()
                await release.wait()

        holder = asyncio.create_task(hold_write_lock())
        await holding.wait()
        try:
            with pytest.raises(TransactionTimeoutError) as exc_info:
                await recorder.record_arrival(ready_task.task_id, worker, presence(make_upload))
        finally:
            release.set()
            await holder

        assert exc_info.value.code == ErrorCode.TRANSACTION_TIMEOUT
        task = await store_group.task_store.get_task(ready_task.task_id)
        assert task.status == TaskStatus.READY

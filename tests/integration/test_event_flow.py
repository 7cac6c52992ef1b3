"""End-to-end task lifecycle

create -> ready -> arrival -> hold -> resume -> commentary -> departure,
then the projection check and the orphan sweep.
"""

from datetime import timedelta

from fieldtrack.core.models import (
    ActivityType,
    CommentaryInput,
    PresenceEventInput,
    TaskStatus,
    task_subject,
)
from fieldtrack.core.projection import verify_projection


async def test_full_lifecycle(
    task_service,
    event_recorder,
    attachment_service,
    store_group,
    ready_task,
    admin,
    worker,
    make_upload,
):
    task_id = ready_task.task_id

    arrival = await event_recorder.record_arrival(
        task_id,
        worker,
        PresenceEventInput(
            lat=21.0286,
            lng=105.8543,
            accuracy_meters=12,
            files=[make_upload("before.jpg"), make_upload("meter.pdf", b"%PDF", "application/pdf")],
        ),
    )
    assert arrival.task.status == TaskStatus.IN_PROGRESS

    on_hold = await task_service.update_status(task_id, admin, TaskStatus.ON_HOLD)
    assert on_hold.status == TaskStatus.ON_HOLD
    resumed = await task_service.update_status(task_id, admin, TaskStatus.IN_PROGRESS)
    assert resumed.status == TaskStatus.IN_PROGRESS
    assert resumed.started_at == arrival.task.started_at

    comment = await event_recorder.record_commentary(
        task_id, admin, CommentaryInput(text="Customer asked for a receipt")
    )
    assert comment.task.status == TaskStatus.IN_PROGRESS

    departure = await event_recorder.record_departure(
        task_id,
        worker,
        PresenceEventInput(lat=21.0299, lng=105.8548, files=[make_upload("after.jpg")]),
    )
    assert departure.task.status == TaskStatus.COMPLETED
    assert departure.within_range is False
    assert len(departure.warnings) == 1

    # one record per action, in creation order
    page = await store_group.activity_store.list_by_subject(task_subject(task_id))
    assert [r.type for r in reversed(page.records)] == [
        ActivityType.TASK_CREATED,
        ActivityType.TASK_STATUS_UPDATED,
        ActivityType.TASK_CHECKED_IN,
        ActivityType.TASK_STATUS_UPDATED,
        ActivityType.TASK_STATUS_UPDATED,
        ActivityType.TASK_COMMENTED,
        ActivityType.TASK_CHECKED_OUT,
    ]
    assert [r.subject_seq for r in reversed(page.records)] == list(range(1, 8))

    attachments = await attachment_service.list_task_attachments(task_id)
    assert [a.original_filename for a in attachments] == ["before.jpg", "meter.pdf", "after.jpg"]

    # correcting an attachment is itself recorded
    await attachment_service.soft_delete(attachments[0].attachment_id, worker)
    remaining = await attachment_service.list_task_attachments(task_id)
    assert [a.original_filename for a in remaining] == ["meter.pdf", "after.jpg"]
    still_on_event = await attachment_service.list_event_attachments(arrival.record.activity_id)
    assert len(still_on_event) == 2

    events = await event_recorder.list_events(task_id)
    assert [e.type for e in events] == [
        ActivityType.TASK_CHECKED_OUT,
        ActivityType.TASK_COMMENTED,
        ActivityType.TASK_CHECKED_IN,
    ]

    assert await verify_projection(store_group) == []
    assert await attachment_service.list_orphans(timedelta(0)) == []

"""Activity payload schemas

Payloads are stored as opaque JSON; these models define what each activity
type writes. New fields must have defaults so older records still parse.
"""

from pydantic import BaseModel, Field

from .attachment import AttachmentSummary
from .enums import EventKind, TaskStatus


class TaskCreatedPayload(BaseModel):
    """TASK_CREATED payload"""

    title: str
    status: TaskStatus = TaskStatus.PREPARING
    assignee_ids: list[str] = Field(default_factory=list)


class StatusUpdatedPayload(BaseModel):
    """TASK_STATUS_UPDATED payload"""

    from_status: TaskStatus
    to_status: TaskStatus


class AssigneesUpdatedPayload(BaseModel):
    """TASK_ASSIGNEES_UPDATED payload"""

    previous: list[str] = Field(default_factory=list)
    current: list[str] = Field(default_factory=list)


class EventGeoPayload(BaseModel):
    """Coordinate recorded with a presence event"""

    id: str
    lat: float
    lng: float
    accuracy_meters: float | None = None


class TaskEventPayload(BaseModel):
    """TASK_CHECKED_IN / TASK_CHECKED_OUT / TASK_COMMENTED payload"""

    kind: EventKind
    from_status: TaskStatus | None = None
    to_status: TaskStatus | None = None
    geo_location: EventGeoPayload | None = None
    distance_from_task: float | None = Field(default=None, description="Meters")
    within_range: bool | None = None
    attachments: list[AttachmentSummary] = Field(default_factory=list)
    notes: str | None = None
    text: str | None = Field(default=None, description="Commentary text")
    warnings: list[str] = Field(default_factory=list)


class AttachmentDeletedPayload(BaseModel):
    """TASK_ATTACHMENT_DELETED payload"""

    attachment_id: str
    original_filename: str
    activity_id: str | None = Field(default=None, description="Event the file came from")

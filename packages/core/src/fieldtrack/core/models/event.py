"""Event recorder types -- configuration, input and result models

One EventConfig per event kind parameterizes the shared recording path.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from ..config import COMMENT_MAX_LENGTH, PRESENCE_NOTES_MAX_LENGTH
from .activity import ActivityRecord
from .actor import Actor
from .attachment import Attachment, UploadFile
from .enums import ActivityType, EventKind, TaskStatus
from .geo import GeoCoordinate, GeoLocation
from .task import Task


class EventConfig(BaseModel):
    """Pre/post-conditions of one event kind

    Message fields hold keys into fieldtrack.core.messages.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    activity_type: ActivityType
    required_status: TaskStatus | None = None
    target_status: TaskStatus | None = None
    timestamp_field: Literal["started_at", "completed_at"] | None = None
    requires_attachment: bool = False
    requires_location: bool = False
    preceding_activity_type: ActivityType | None = None
    max_files: int = Field(default=10, ge=0)
    allow_elevated: bool = Field(
        default=False,
        description="Elevated roles may record without being assigned",
    )
    invalid_state_message: str = "event.invalid_state"
    precondition_message: str = "event.precondition_failed"

    @property
    def transitions(self) -> bool:
        return self.target_status is not None


NotesText = Annotated[
    str, StringConstraints(strip_whitespace=True, max_length=PRESENCE_NOTES_MAX_LENGTH)
]
CommentText = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=COMMENT_MAX_LENGTH),
]


class PresenceEventInput(BaseModel):
    """Arrival / departure input"""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy_meters: float | None = Field(default=None, ge=0)
    files: list[UploadFile] = Field(default_factory=list)
    notes: NotesText | None = None


class CommentaryInput(BaseModel):
    """Free-form commentary input"""

    text: CommentText
    files: list[UploadFile] = Field(default_factory=list)


class EventData(BaseModel):
    """Normalized data handed to the recorder"""

    task_id: str
    actor: Actor
    coordinate: GeoCoordinate | None = None
    accuracy_meters: float | None = None
    files: list[UploadFile] = Field(default_factory=list)
    notes: str | None = None
    text: str | None = None


class EventResult(BaseModel):
    """Outcome of a successfully recorded event"""

    record: ActivityRecord
    task: Task
    attachments: list[Attachment] = Field(default_factory=list)
    geo_location: GeoLocation | None = None
    distance_meters: float | None = None
    within_range: bool | None = None
    warnings: list[str] = Field(default_factory=list)

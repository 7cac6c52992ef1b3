"""fieldtrack Core Domain Models -- public exports

Import every public model type from here.
"""

from .activity import (
    GENERAL_SUBJECT,
    ActivityPage,
    ActivityRecord,
    task_subject,
)
from .actor import Actor
from .attachment import Attachment, AttachmentSummary, UploadFile
from .enums import (
    SCHEDULING_TRANSITIONS,
    STATUS_ACTIVITY_TYPES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ActivityType,
    ActorRole,
    EventKind,
    TaskStatus,
    validate_transition,
)
from .event import (
    CommentaryInput,
    EventConfig,
    EventData,
    EventResult,
    PresenceEventInput,
)
from .geo import GeoCoordinate, GeoLocation
from .payloads import (
    AssigneesUpdatedPayload,
    AttachmentDeletedPayload,
    EventGeoPayload,
    StatusUpdatedPayload,
    TaskCreatedPayload,
    TaskEventPayload,
)
from .task import Task, TaskPointers

__all__ = [
    # Enums
    "TaskStatus",
    "ActivityType",
    "ActorRole",
    "EventKind",
    # State machine
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "SCHEDULING_TRANSITIONS",
    "STATUS_ACTIVITY_TYPES",
    "validate_transition",
    # Task
    "Task",
    "TaskPointers",
    # Geo
    "GeoCoordinate",
    "GeoLocation",
    # Activity
    "ActivityRecord",
    "ActivityPage",
    "GENERAL_SUBJECT",
    "task_subject",
    # Actor
    "Actor",
    # Attachment
    "Attachment",
    "AttachmentSummary",
    "UploadFile",
    # Event recorder
    "EventConfig",
    "EventData",
    "EventResult",
    "PresenceEventInput",
    "CommentaryInput",
    # Payloads
    "TaskCreatedPayload",
    "StatusUpdatedPayload",
    "AssigneesUpdatedPayload",
    "EventGeoPayload",
    "TaskEventPayload",
    "AttachmentDeletedPayload",
]

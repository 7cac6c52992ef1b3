"""fieldtrack Core Services -- business operations over the stores"""

from .activity_service import ActivityService
from .attachment_service import AttachmentService, build_storage_key
from .event_recorder import (
    ARRIVAL,
    COMMENTARY,
    DEPARTURE,
    EVENT_ACTIVITY_TYPES,
    EventRecorder,
)
from .task_service import TaskService

__all__ = [
    "ActivityService",
    "AttachmentService",
    "EventRecorder",
    "TaskService",
    "ARRIVAL",
    "DEPARTURE",
    "COMMENTARY",
    "EVENT_ACTIVITY_TYPES",
    "build_storage_key",
]

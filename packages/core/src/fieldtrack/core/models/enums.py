"""Enumerations -- task status state machine, activity types, actor roles

Contains the TaskStatus state machine with the VALID_TRANSITIONS map and
TERMINAL_STATES set, plus ActivityType, EventKind and ActorRole.
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task lifecycle status"""

    PREPARING = "PREPARING"
    READY = "READY"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"


# Legal transitions; no transition skips a state
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PREPARING: {TaskStatus.READY},
    TaskStatus.READY: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.ON_HOLD},
    TaskStatus.ON_HOLD: {TaskStatus.IN_PROGRESS},
    TaskStatus.COMPLETED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
}

# Transitions driven by scheduling actions rather than presence events
SCHEDULING_TRANSITIONS: set[tuple[TaskStatus, TaskStatus]] = {
    (TaskStatus.PREPARING, TaskStatus.READY),
    (TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD),
    (TaskStatus.ON_HOLD, TaskStatus.IN_PROGRESS),
}


class ActivityType(StrEnum):
    """Activity log entry type"""

    TASK_CREATED = "TASK_CREATED"
    TASK_STATUS_UPDATED = "TASK_STATUS_UPDATED"
    TASK_ASSIGNEES_UPDATED = "TASK_ASSIGNEES_UPDATED"
    TASK_CHECKED_IN = "TASK_CHECKED_IN"
    TASK_CHECKED_OUT = "TASK_CHECKED_OUT"
    TASK_COMMENTED = "TASK_COMMENTED"
    TASK_ATTACHMENT_DELETED = "TASK_ATTACHMENT_DELETED"


# Activity types that carry a status change
STATUS_ACTIVITY_TYPES: set[ActivityType] = {
    ActivityType.TASK_CREATED,
    ActivityType.TASK_STATUS_UPDATED,
    ActivityType.TASK_CHECKED_IN,
    ActivityType.TASK_CHECKED_OUT,
}


class EventKind(StrEnum):
    """Event kinds handled by the event recorder"""

    ARRIVAL = "ARRIVAL"
    DEPARTURE = "DEPARTURE"
    COMMENTARY = "COMMENTARY"


class ActorRole(StrEnum):
    """Role of a verified actor"""

    WORKER = "worker"
    ADMIN = "admin"
    SYSTEM = "system"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Check whether a status transition is legal

    Args:
        from_status: current status
        to_status: target status

    Returns:
        True if the transition is in VALID_TRANSITIONS
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed

"""ActivityRecord Domain Model

The activities table is append-only: no updates, no deletes.
activity_id is a ULID; subject_seq is strictly increasing within a subject.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import ActivityType

GENERAL_SUBJECT = "GENERAL"
TASK_SUBJECT_PREFIX = "TASK_"


def task_subject(task_id: str) -> str:
    """Subject key of a task's activity feed"""
    return f"{TASK_SUBJECT_PREFIX}{task_id}"


class ActivityRecord(BaseModel):
    """Immutable timestamped fact in a subject's feed"""

    activity_id: str = Field(description="ULID, time ordered")
    actor_id: str | None = Field(default=None, description="None for system actions")
    subject_key: str = Field(description="TASK_<id> or GENERAL")
    subject_seq: int = Field(description="Sequence within the subject")
    type: ActivityType
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ActivityPage(BaseModel):
    """One page of a cursor-paginated activity query (newest first)"""

    records: list[ActivityRecord] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, description="activity_id to continue from")
    has_next_page: bool = False

"""Task Domain Model

The tasks table holds the current status; every status change is backed by
exactly one activity record written in the same transaction.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .enums import TaskStatus
from .geo import GeoCoordinate


class TaskPointers(BaseModel):
    """Task pointers"""

    latest_activity_id: str | None = Field(default=None, description="Latest activity ID")


class Task(BaseModel):
    """Scheduled field-service task"""

    task_id: str = Field(description="ULID")
    title: str = Field(default="", description="Task title")
    status: TaskStatus = Field(default=TaskStatus.PREPARING, description="Current status")
    assignee_ids: list[str] = Field(default_factory=list, description="Assigned worker IDs")
    location: GeoCoordinate | None = Field(default=None, description="Task site")
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = Field(default=None, description="Set by arrival")
    completed_at: datetime | None = Field(default=None, description="Set by departure")
    pointers: TaskPointers = Field(default_factory=TaskPointers)

    @field_validator("assignee_ids")
    @classmethod
    def _dedupe_assignees(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def is_assigned(self, actor_id: str) -> bool:
        return actor_id in self.assignee_ids

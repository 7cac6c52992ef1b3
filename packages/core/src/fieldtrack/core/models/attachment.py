"""Attachment Domain Model

An attachment is staged (no task or event link) right after its bytes are
stored, then linked to both the task and the originating activity in the
event transaction. Only the link and soft-delete ever change a row.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class UploadFile(BaseModel):
    """File supplied by the caller"""

    filename: str = Field(min_length=1)
    content_type: str = Field(min_length=1)
    content: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


class Attachment(BaseModel):
    """Stored file descriptor"""

    attachment_id: str = Field(description="ULID")
    task_id: str | None = Field(default=None, description="Owning task, None while staged")
    activity_id: str | None = Field(default=None, description="Originating activity")
    provider: str = Field(description="Storage provider name")
    storage_ref: str = Field(description="Storage key, unique")
    mime_type: str
    original_filename: str
    size: int = 0
    hash: str = Field(default="", description="SHA-256")
    uploaded_by: str
    created_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_staged(self) -> bool:
        return self.task_id is None and self.activity_id is None


class AttachmentSummary(BaseModel):
    """Attachment entry embedded in an activity payload"""

    id: str
    mime_type: str
    original_filename: str
    size: int = 0

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "AttachmentSummary":
        return cls(
            id=attachment.attachment_id,
            mime_type=attachment.mime_type,
            original_filename=attachment.original_filename,
            size=attachment.size,
        )

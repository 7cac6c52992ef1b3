"""AttachmentService -- staging, listing, soft-delete and orphan sweep

Staging flow (runs before any event transaction):
1. Check file count, per-file and total size, MIME allow-list
2. Store every file through the StorageProvider under a unique key
3. Insert staged Attachment rows (no task/event link) in one transaction

Any failure in 2-3 removes the blobs already written and raises
UploadFailedError; the task is never touched.
"""

import re
from datetime import UTC, datetime, timedelta

import structlog
from ulid import ULID

from ..config import UploadConfig, load_upload_config
from ..errors import (
    AttachmentNotFoundError,
    ForbiddenError,
    InvalidInputError,
    UploadFailedError,
)
from ..messages import get_message
from ..models.activity import GENERAL_SUBJECT, task_subject
from ..models.actor import Actor
from ..models.attachment import Attachment, UploadFile
from ..models.enums import ActivityType
from ..models.payloads import AttachmentDeletedPayload
from ..storage.base import StorageProvider
from ..store import StoreGroup, compute_hash_and_size

log = structlog.get_logger()

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

_MB = 1024 * 1024


def build_storage_key(task_id: str, filename: str, now: datetime) -> str:
    """tasks/<task_id>/<yyyy>/<m>/<d>/<ulid>-<safe name>"""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    return f"tasks/{task_id}/{now.year}/{now.month}/{now.day}/{ULID()}-{safe_name}"


class AttachmentService:
    """Attachment business service"""

    def __init__(
        self,
        store_group: StoreGroup,
        storage: StorageProvider,
        upload_config: UploadConfig | None = None,
        locale: str | None = None,
    ) -> None:
        self._stores = store_group
        self._storage = storage
        self._config = upload_config or load_upload_config()
        self._locale = locale

    @property
    def upload_config(self) -> UploadConfig:
        return self._config

    def validate_files(self, files: list[UploadFile], max_files: int | None = None) -> None:
        """Reject uploads breaking the configured limits

        Raises:
            InvalidInputError: too many files, too large, or MIME not allowed
        """
        limit = self._config.max_files
        if max_files is not None:
            limit = min(limit, max_files)
        if len(files) > limit:
            raise InvalidInputError.from_key(
                "event.too_many_files", self._locale, max_files=limit
            )

        for f in files:
            if f.size > self._config.max_per_file_bytes:
                raise InvalidInputError.from_key(
                    "upload.file_too_large",
                    self._locale,
                    filename=f.filename,
                    size_mb=round(f.size / _MB),
                    max_mb=self._config.max_per_file_bytes // _MB,
                )
            if f.content_type not in self._config.allowed_mime_types:
                raise InvalidInputError.from_key(
                    "upload.mime_not_allowed",
                    self._locale,
                    mime_type=f.content_type,
                    allowed=", ".join(self._config.allowed_mime_types),
                )

        if sum(f.size for f in files) > self._config.max_total_bytes:
            raise InvalidInputError.from_key(
                "upload.total_too_large",
                self._locale,
                max_mb=self._config.max_total_bytes // _MB,
            )

    async def stage_files(
        self,
        task_id: str,
        actor_id: str,
        files: list[UploadFile],
    ) -> list[Attachment]:
        """Store files and insert staged attachment rows

        Returns:
            Staged attachments in input order; empty list for no files

        Raises:
            InvalidInputError: limits violated (nothing stored)
            UploadFailedError: provider or metadata failure (blobs removed)
        """
        if not files:
            return []
        self.validate_files(files)

        now = datetime.now(UTC)
        stored_keys: list[str] = []
        staged: list[Attachment] = []
        try:
            for f in files:
                key = build_storage_key(task_id, f.filename, now)
                await self._storage.put(key, f.content, f.content_type)
                stored_keys.append(key)

                hash_hex, size = compute_hash_and_size(f.content)
                staged.append(
                    Attachment(
                        attachment_id=str(ULID()),
                        provider=self._storage.name,
                        storage_ref=key,
                        mime_type=f.content_type,
                        original_filename=f.filename,
                        size=size,
                        hash=hash_hex,
                        uploaded_by=actor_id,
                        created_at=now,
                    )
                )

            async with self._stores.transaction() as tx:
                for attachment in staged:
                    await tx.attachment_store.insert_attachment(attachment)
        except Exception as e:
            log.error(
                "attachment_staging_failed",
                task_id=task_id,
                stored_count=len(stored_keys),
                error_type=type(e).__name__,
            )
            await self._discard_blobs(stored_keys)
            raise UploadFailedError(
                get_message("upload.failed", self._locale),
                original_error=e,
            ) from e

        log.info(
            "attachments_staged",
            task_id=task_id,
            count=len(staged),
            provider=self._storage.name,
        )
        return staged

    async def list_task_attachments(self, task_id: str) -> list[Attachment]:
        """Attachments linked to the task and not soft-deleted"""
        return await self._stores.attachment_store.list_for_task(task_id)

    async def list_event_attachments(self, activity_id: str) -> list[Attachment]:
        """Attachments produced by one event"""
        return await self._stores.attachment_store.list_for_activity(activity_id)

    async def read_content(self, attachment_id: str) -> bytes:
        """Bytes of a live attachment"""
        attachment = await self._stores.attachment_store.get_attachment(attachment_id)
        if attachment is None or attachment.deleted_at is not None:
            raise AttachmentNotFoundError.from_key("attachment.not_found", self._locale)
        return await self._storage.get(attachment.storage_ref)

    async def soft_delete(self, attachment_id: str, actor: Actor) -> Attachment:
        """Soft-delete an attachment and record the correction in the log

        Only the uploader or an elevated actor may delete. The blob is kept.

        Raises:
            AttachmentNotFoundError: unknown or already deleted
            ForbiddenError: actor is neither uploader nor elevated
        """
        attachment = await self._stores.attachment_store.get_attachment(attachment_id)
        if attachment is None or attachment.deleted_at is not None:
            raise AttachmentNotFoundError.from_key("attachment.not_found", self._locale)
        if attachment.uploaded_by != actor.actor_id and not actor.is_elevated:
            raise ForbiddenError.from_key("attachment.forbidden", self._locale)

        now = datetime.now(UTC)
        subject = task_subject(attachment.task_id) if attachment.task_id else GENERAL_SUBJECT
        async with self._stores.transaction() as tx:
            deleted = await tx.attachment_store.soft_delete(attachment_id, now)
            if deleted == 0:
                raise AttachmentNotFoundError.from_key("attachment.not_found", self._locale)
            await tx.activity_store.append(
                actor.actor_id,
                subject,
                ActivityType.TASK_ATTACHMENT_DELETED,
                AttachmentDeletedPayload(
                    attachment_id=attachment_id,
                    original_filename=attachment.original_filename,
                    activity_id=attachment.activity_id,
                ).model_dump(mode="json"),
                created_at=now,
            )

        log.info(
            "attachment_soft_deleted",
            attachment_id=attachment_id,
            actor_id=actor.actor_id,
        )
        return attachment.model_copy(update={"deleted_at": now})

    async def list_orphans(self, older_than: timedelta = timedelta(hours=1)) -> list[Attachment]:
        """Staged attachments left behind by aborted events"""
        cutoff = datetime.now(UTC) - older_than
        return await self._stores.attachment_store.list_orphans(cutoff)

    async def purge_orphans(self, older_than: timedelta = timedelta(hours=1)) -> int:
        """Soft-delete orphan rows, then remove their blobs

        The row is claimed first with a staged-only soft delete; a row that an
        event linked in the meantime keeps its blob.

        Returns:
            Number of purged attachments
        """
        purged = 0
        for orphan in await self.list_orphans(older_than):
            async with self._stores.transaction() as tx:
                claimed = await tx.attachment_store.soft_delete(
                    orphan.attachment_id, datetime.now(UTC), staged_only=True
                )
            if claimed == 0:
                log.info("orphan_attachment_skipped", attachment_id=orphan.attachment_id)
                continue

            purged += 1
            try:
                await self._storage.delete(orphan.storage_ref)
            except Exception as e:
                log.warning(
                    "orphan_blob_delete_failed",
                    attachment_id=orphan.attachment_id,
                    storage_ref=orphan.storage_ref,
                    error_type=type(e).__name__,
                )

        log.info("orphan_attachments_purged", count=purged)
        return purged

    async def _discard_blobs(self, keys: list[str]) -> None:
        """Best-effort removal of blobs written before a staging failure"""
        for key in keys:
            try:
                await self._storage.delete(key)
            except Exception as e:
                log.warning(
                    "attachment_blob_cleanup_failed",
                    storage_ref=key,
                    error_type=type(e).__name__,
                )

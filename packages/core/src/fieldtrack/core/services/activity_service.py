"""ActivityService -- append and query the activity log

Service-level appends run in their own write transaction. Appends that must
commit together with other writes go through TransactionStores instead.
"""

from typing import Any

import structlog

from ..models.activity import ActivityPage, ActivityRecord
from ..models.enums import ActivityType
from ..store import StoreGroup

log = structlog.get_logger()

DEFAULT_PAGE_SIZE = 50


class ActivityService:
    """Activity log service"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def append(
        self,
        actor_id: str | None,
        subject_key: str,
        activity_type: ActivityType,
        payload: dict[str, Any],
    ) -> ActivityRecord:
        """Append one record to a subject feed and commit it"""
        async with self._stores.transaction() as tx:
            record = await tx.activity_store.append(
                actor_id, subject_key, activity_type, payload
            )
        log.debug(
            "activity_appended",
            activity_id=record.activity_id,
            subject_key=subject_key,
            type=activity_type.value,
        )
        return record

    async def list_by_subject(
        self,
        subject_key: str,
        types: list[ActivityType] | None = None,
        actor_id: str | None = None,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ActivityPage:
        """One page of a subject feed, newest first"""
        return await self._stores.activity_store.list_by_subject(
            subject_key, types=types, actor_id=actor_id, cursor=cursor, limit=limit
        )

    async def list_by_actor(
        self,
        actor_id: str,
        cursor: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> ActivityPage:
        """One page of an actor's records, newest first"""
        return await self._stores.activity_store.list_by_actor(
            actor_id, cursor=cursor, limit=limit
        )

    async def has_activity(
        self,
        subject_key: str,
        activity_type: ActivityType,
        actor_id: str,
    ) -> bool:
        return await self._stores.activity_store.has_activity(
            subject_key, activity_type, actor_id
        )

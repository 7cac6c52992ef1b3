"""Global pytest configuration -- temporary SQLite database, storage and services"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from fieldtrack.core.config import UploadConfig
from fieldtrack.core.models import (
    Actor,
    ActorRole,
    GeoCoordinate,
    Task,
    TaskStatus,
    UploadFile,
)
from fieldtrack.core.services import AttachmentService, EventRecorder, TaskService
from fieldtrack.core.storage import LocalDiskStorage
from fieldtrack.core.store import StoreGroup, create_store_group

# Hoan Kiem lake, Hanoi
TASK_SITE = GeoCoordinate(lat=21.0285, lng=105.8542, label="Hoan Kiem")


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """Temporary SQLite database path"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """StoreGroup over an initialized temporary database"""
    sg = await create_store_group(str(tmp_db_path))
    yield sg
    await sg.close()


@pytest.fixture
def storage(tmp_path: Path) -> LocalDiskStorage:
    """Local disk storage under a temporary directory"""
    return LocalDiskStorage(tmp_path / "uploads")


@pytest.fixture
def upload_config() -> UploadConfig:
    return UploadConfig()


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def worker() -> Actor:
    return Actor(actor_id="worker-1")


@pytest.fixture
def other_worker() -> Actor:
    return Actor(actor_id="worker-2")


@pytest.fixture
def make_upload() -> Callable[..., UploadFile]:
    """Factory for in-memory upload files"""

    def _make(
        filename: str = "photo.jpg",
        content: bytes = b"\xff\xd8\xff\xe0fake-jpeg",
        content_type: str = "image/jpeg",
    ) -> UploadFile:
        return UploadFile(filename=filename, content_type=content_type, content=content)

    return _make


@pytest.fixture
def attachment_service(
    store_group: StoreGroup,
    storage: LocalDiskStorage,
    upload_config: UploadConfig,
) -> AttachmentService:
    return AttachmentService(store_group, storage, upload_config, locale="en")


@pytest.fixture
def task_service(store_group: StoreGroup) -> TaskService:
    return TaskService(store_group, locale="en")


@pytest.fixture
def event_recorder(
    store_group: StoreGroup,
    attachment_service: AttachmentService,
) -> EventRecorder:
    return EventRecorder(
        store_group,
        attachment_service,
        threshold_meters=100,
        locale="en",
        transaction_timeout_s=5,
    )


@pytest_asyncio.fixture
async def ready_task(
    task_service: TaskService,
    admin: Actor,
    worker: Actor,
    other_worker: Actor,
) -> Task:
    """Task at TASK_SITE in READY, assigned to both workers"""
    task = await task_service.create_task(
        "Replace water meter",
        admin,
        location=TASK_SITE,
        assignee_ids=[worker.actor_id, other_worker.actor_id],
    )
    return await task_service.update_status(task.task_id, admin, TaskStatus.READY)

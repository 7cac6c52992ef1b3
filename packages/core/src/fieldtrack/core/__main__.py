"""CLI entry -- python -m fieldtrack.core <command>

Commands:
  verify-projection    compare the tasks table with the activity log
  rebuild-projections  rewrite task status columns from the activity log
  list-orphans         list staged attachments never linked to an event
"""

import asyncio
import sys
from datetime import timedelta

from .config import get_db_path, get_uploads_dir
from .logging_config import setup_logging

_USAGE = """usage: python -m fieldtrack.core <command>
commands:
  verify-projection    compare the tasks table with the activity log
  rebuild-projections  rewrite task status columns from the activity log
  list-orphans [hours] list staged attachments older than [hours] (default 1)"""


def main() -> None:
    """CLI main entry"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]

    if command == "verify-projection":
        sys.exit(asyncio.run(verify_projection()))
    elif command == "rebuild-projections":
        asyncio.run(rebuild_projections())
    elif command == "list-orphans":
        hours = float(sys.argv[2]) if len(sys.argv) > 2 else 1.0
        asyncio.run(list_orphans(hours))
    else:
        print(f"unknown command: {command}")
        print(_USAGE)
        sys.exit(1)


async def verify_projection() -> int:
    """Print projection mismatches; returns the exit code"""
    from .projection import verify_projection as verify
    from .store import create_store_group

    db_path = get_db_path()
    print(f"database: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        mismatches = await verify(store_group)
    finally:
        await store_group.close()

    for m in mismatches:
        print(f"{m.task_id} {m.field}: expected={m.expected} actual={m.actual}")
    if mismatches:
        print(f"{len(mismatches)} mismatch(es)")
        return 1
    print("projection OK")
    return 0


async def rebuild_projections() -> None:
    """Run the projection rebuild"""
    from .projection import rebuild_all
    from .store import create_store_group

    db_path = get_db_path()
    print(f"database: {db_path}")
    print("rebuilding projection...")

    store_group = await create_store_group(db_path)
    try:
        record_count = await rebuild_all(store_group)
        print(f"done, replayed {record_count} records")
    finally:
        await store_group.close()


async def list_orphans(hours: float) -> None:
    """Print orphaned attachments"""
    from .services.attachment_service import AttachmentService
    from .storage import LocalDiskStorage
    from .store import create_store_group

    db_path = get_db_path()
    print(f"database: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        service = AttachmentService(store_group, LocalDiskStorage(get_uploads_dir()))
        orphans = await service.list_orphans(timedelta(hours=hours))
    finally:
        await store_group.close()

    for a in orphans:
        print(f"{a.attachment_id} {a.created_at.isoformat()} {a.provider}:{a.storage_ref}")
    print(f"{len(orphans)} orphan(s)")


if __name__ == "__main__":
    main()

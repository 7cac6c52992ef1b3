"""SQLite database initialization

PRAGMA settings, table DDL, indexes and append-only triggers.
"""

import aiosqlite

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id       TEXT PRIMARY KEY,
    title         TEXT NOT NULL DEFAULT '',
    status        TEXT NOT NULL DEFAULT 'PREPARING',
    assignee_ids  TEXT NOT NULL DEFAULT '[]',
    location      TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    started_at    TEXT,
    completed_at  TEXT,
    pointers      TEXT NOT NULL DEFAULT '{}'
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

_ACTIVITIES_DDL = """
CREATE TABLE IF NOT EXISTS activities (
    activity_id  TEXT PRIMARY KEY,
    actor_id     TEXT,
    subject_key  TEXT NOT NULL,
    subject_seq  INTEGER NOT NULL,
    type         TEXT NOT NULL,
    payload      TEXT NOT NULL DEFAULT '{}',
    created_at   TEXT NOT NULL
);
"""

_ACTIVITIES_INDEXES = [
    # one position per record within a subject feed
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_activities_subject_seq "
        "ON activities(subject_key, subject_seq);"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_activities_subject_type_actor "
        "ON activities(subject_key, type, actor_id);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_activities_actor ON activities(actor_id);",
]

_ACTIVITIES_TRIGGERS = [
    """
    CREATE TRIGGER IF NOT EXISTS trg_activities_no_update
    BEFORE UPDATE ON activities
    BEGIN
        SELECT RAISE(ABORT, 'activities are append-only');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_activities_no_delete
    BEFORE DELETE ON activities
    BEGIN
        SELECT RAISE(ABORT, 'activities are append-only');
    END;
    """,
]

_GEO_LOCATIONS_DDL = """
CREATE TABLE IF NOT EXISTS geo_locations (
    geo_id           TEXT PRIMARY KEY,
    lat              REAL NOT NULL,
    lng              REAL NOT NULL,
    label            TEXT,
    accuracy_meters  REAL,
    created_at       TEXT NOT NULL
);
"""

_ATTACHMENTS_DDL = """
CREATE TABLE IF NOT EXISTS attachments (
    attachment_id      TEXT PRIMARY KEY,
    task_id            TEXT,
    activity_id        TEXT,
    provider           TEXT NOT NULL,
    storage_ref        TEXT NOT NULL,
    mime_type          TEXT NOT NULL,
    original_filename  TEXT NOT NULL DEFAULT '',
    size               INTEGER NOT NULL DEFAULT 0,
    hash               TEXT NOT NULL DEFAULT '',
    uploaded_by        TEXT NOT NULL,
    created_at         TEXT NOT NULL,
    deleted_at         TEXT,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id),
    FOREIGN KEY (activity_id) REFERENCES activities(activity_id)
);
"""

_ATTACHMENTS_INDEXES = [
    # the same stored object is never referenced twice
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_attachments_storage_ref ON attachments(storage_ref);",
    "CREATE INDEX IF NOT EXISTS idx_attachments_task_id ON attachments(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_attachments_activity_id ON attachments(activity_id);",
]


async def init_db(conn: aiosqlite.Connection, busy_timeout_ms: int = 5000) -> None:
    """Initialize the database: PRAGMA + tables + indexes + triggers

    Args:
        conn: aiosqlite connection
        busy_timeout_ms: how long a writer waits for the write lock
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")

    await conn.execute(_TASKS_DDL)
    await conn.execute(_ACTIVITIES_DDL)
    await conn.execute(_GEO_LOCATIONS_DDL)
    await conn.execute(_ATTACHMENTS_DDL)

    for idx_sql in _TASKS_INDEXES + _ACTIVITIES_INDEXES + _ATTACHMENTS_INDEXES:
        await conn.execute(idx_sql)

    for trigger_sql in _ACTIVITIES_TRIGGERS:
        await conn.execute(trigger_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """Return True if WAL journal mode is active"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"

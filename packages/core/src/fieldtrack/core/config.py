"""Configuration -- overridable through environment variables

Database path, uploads directory, geofence threshold, transaction budget and
upload limits.
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """Project data base directory"""
    return Path(os.environ.get("FIELDTRACK_DATA_DIR", "data"))


def get_db_path() -> str:
    """SQLite database path"""
    return os.environ.get(
        "FIELDTRACK_DB_PATH",
        str(_get_base_dir() / "sqlite" / "fieldtrack.db"),
    )


def get_uploads_dir() -> Path:
    """Root directory of the local-disk storage provider"""
    return Path(
        os.environ.get(
            "FIELDTRACK_UPLOADS_DIR",
            str(_get_base_dir() / "uploads"),
        )
    )


def get_locale() -> str:
    """Locale used for user-facing messages (en / vi)"""
    return os.environ.get("FIELDTRACK_LOCALE", "en")


# Geofence radius around the task location (meters)
GEOFENCE_THRESHOLD_M: float = float(
    os.environ.get("FIELDTRACK_GEOFENCE_THRESHOLD_M", "100")
)

# Upper bound for one event transaction, also used as SQLite busy_timeout
TRANSACTION_TIMEOUT_S: float = float(
    os.environ.get("FIELDTRACK_TRANSACTION_TIMEOUT_S", "10")
)

# Notes attached to arrival/departure events
PRESENCE_NOTES_MAX_LENGTH: int = 500

# Commentary text bounds
COMMENT_MAX_LENGTH: int = 5000

DEFAULT_ALLOWED_MIME_TYPES: list[str] = [
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
    "video/mp4",
    "video/quicktime",
    "video/webm",
]

_MB = 1024 * 1024


class UploadConfig(BaseModel):
    """Upload limits -- loaded from environment variables

    Environment variables:
        FIELDTRACK_UPLOAD_MAX_FILES: files per request (default 10)
        FIELDTRACK_UPLOAD_MAX_PER_FILE_MB: per-file size (default 50)
        FIELDTRACK_UPLOAD_MAX_TOTAL_MB: combined size per request (default 50)
        FIELDTRACK_UPLOAD_ALLOWED_MIME_CSV: comma separated MIME allow-list
    """

    max_files: int = Field(default=10, ge=1)
    max_per_file_bytes: int = Field(default=50 * _MB, ge=1)
    max_total_bytes: int = Field(default=50 * _MB, ge=1)
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )


def _read_int_env(name: str) -> int | None:
    """Positive integer from the environment; invalid values are logged and ignored"""
    val = os.environ.get(name)
    if not val:
        return None
    try:
        parsed: int | None = int(val)
    except ValueError:
        parsed = None
    if parsed is None or parsed < 1:
        log.warning("invalid_upload_config", env_var=name, value=val)
        return None
    return parsed


def load_upload_config() -> UploadConfig:
    """Load UploadConfig from environment variables

    Non-numeric or non-positive values are logged and replaced by the defaults.

    Returns:
        UploadConfig instance
    """
    kwargs: dict = {}

    if (val := _read_int_env("FIELDTRACK_UPLOAD_MAX_FILES")) is not None:
        kwargs["max_files"] = val

    if (val := _read_int_env("FIELDTRACK_UPLOAD_MAX_PER_FILE_MB")) is not None:
        kwargs["max_per_file_bytes"] = val * _MB

    if (val := _read_int_env("FIELDTRACK_UPLOAD_MAX_TOTAL_MB")) is not None:
        kwargs["max_total_bytes"] = val * _MB

    if csv := os.environ.get("FIELDTRACK_UPLOAD_ALLOWED_MIME_CSV"):
        mime_types = [item.strip() for item in csv.split(",") if item.strip()]
        if mime_types:
            kwargs["allowed_mime_types"] = mime_types

    return UploadConfig(**kwargs)

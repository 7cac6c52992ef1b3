"""structlog configuration

dev mode: console renderer
json mode: one JSON object per line, exceptions rendered as structured data
Every line logged while an event is being recorded carries task_id,
actor_id and kind (see bind_event_context).
"""

import logging
import os

import structlog

_EVENT_CONTEXT_KEYS = ("task_id", "actor_id", "kind")


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """Initialize structlog on top of stdlib logging

    Args:
        log_format: "json" or "dev"; defaults to FIELDTRACK_LOG_FORMAT ("dev")
        log_level: root level name; defaults to FIELDTRACK_LOG_LEVEL ("INFO")
    """
    log_format = log_format or os.environ.get("FIELDTRACK_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("FIELDTRACK_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # aiosqlite logs every statement at DEBUG
    logging.getLogger("aiosqlite").setLevel(logging.INFO)


def bind_event_context(task_id: str, actor_id: str, kind: str) -> None:
    """Bind task/actor/kind to every log line of the current event"""
    structlog.contextvars.bind_contextvars(task_id=task_id, actor_id=actor_id, kind=kind)


def clear_event_context() -> None:
    structlog.contextvars.unbind_contextvars(*_EVENT_CONTEXT_KEYS)

"""structlog setup and event context binding"""

import json
import logging

import pytest
import structlog
from fieldtrack.core.logging_config import (
    bind_event_context,
    clear_event_context,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_json_lines_carry_event_context(self, restore_logging, capsys):
        setup_logging(log_format="json", log_level="INFO")
        bind_event_context("T1", "w1", "ARRIVAL")
        structlog.get_logger("fieldtrack.test").info("task_event_recorded", attachment_count=2)
        clear_event_context()
        structlog.get_logger("fieldtrack.test").info("after_event")

        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        recorded, after = lines
        assert recorded["event"] == "task_event_recorded"
        assert recorded["task_id"] == "T1"
        assert recorded["actor_id"] == "w1"
        assert recorded["kind"] == "ARRIVAL"
        assert recorded["attachment_count"] == 2
        assert recorded["level"] == "info"
        assert "task_id" not in after

    def test_level_from_env(self, restore_logging, monkeypatch):
        monkeypatch.setenv("FIELDTRACK_LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_defaults_to_info(self, restore_logging):
        setup_logging(log_level="chatty")
        assert logging.getLogger().level == logging.INFO

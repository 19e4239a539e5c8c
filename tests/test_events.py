"""
Tests for audit events
"""

import dataclasses
import json
import logging

import pytest

from solar_c2c.core.events import (INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS,
                                   INTEGRATION_CONTROL_INSTRUCTION_TAGS, AuditEvent,
                                   InMemoryEventAppender, LoggingEventAppender)


class TestAuditEvent:
    """Test cases for AuditEvent"""

    def test_immutable(self):
        event = AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_TAGS, "done", {"a": 1})
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.message = "changed"

    def test_data_detached_and_read_only(self):
        payload = {"instruction": {"id": 1}}
        event = AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_TAGS, data=payload)

        payload["instruction"]["id"] = 2
        payload["extra"] = True

        assert event.data == {"instruction": {"id": 1}}
        with pytest.raises(TypeError):
            event.data["extra"] = True

    def test_data_json(self):
        event = AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_TAGS, data={"instruction": {"id": 1}, "configId": 2})
        assert json.loads(event.data_json()) == {"instruction": {"id": 1}, "configId": 2}

    def test_error_tags_extend_tags(self):
        assert set(INTEGRATION_CONTROL_INSTRUCTION_TAGS) < set(INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS)


class TestAppenders:
    """Test cases for event appenders"""

    def test_logging_appender(self, caplog):
        appender = LoggingEventAppender()
        with caplog.at_level(logging.INFO, logger="solar_c2c.events"):
            appender.add_event(1, AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_TAGS, "done", {"state": "Completed"}))
            appender.add_event(1, AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS, "failed", {}))

        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]
        assert "c2c,control,instruction" in caplog.records[0].getMessage()
        assert '"state": "Completed"' in caplog.records[0].getMessage()

    def test_in_memory_appender_per_user(self):
        appender = InMemoryEventAppender()
        appender.add_event(1, AuditEvent(("a",)))
        appender.add_event(2, AuditEvent(("b",)))
        assert [e.tags for e in appender.events_for(2)] == [("b",)]

"""
Audit events for integration activity
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

INTEGRATION_TAG = "c2c"
CONTROL_TAG = "control"
INSTRUCTION_TAG = "instruction"
ERROR_TAG = "error"

INTEGRATION_CONTROL_INSTRUCTION_TAGS: Tuple[str, ...] = (
    INTEGRATION_TAG, CONTROL_TAG, INSTRUCTION_TAG)

INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS: Tuple[str, ...] = (
    INTEGRATION_TAG, CONTROL_TAG, INSTRUCTION_TAG, ERROR_TAG)


@dataclass(frozen=True)
class AuditEvent:
    """Immutable audit log entry"""
    tags: Tuple[str, ...]
    message: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # detached read-only copy of the payload
        object.__setattr__(self, "data", MappingProxyType(copy.deepcopy(dict(self.data or {}))))

    def data_json(self) -> str:
        return json.dumps(dict(self.data), sort_keys=True, default=str)


class EventAppender(Protocol):
    """Destination for audit events"""

    def add_event(self, user_id: int, event: AuditEvent) -> None:
        ...


class LoggingEventAppender:
    """Writes audit events to the ``solar_c2c.events`` logger"""

    def __init__(self, logger_name: str = "solar_c2c.events"):
        self.event_logger = logging.getLogger(logger_name)

    def add_event(self, user_id: int, event: AuditEvent) -> None:
        level = logging.WARNING if ERROR_TAG in event.tags else logging.INFO
        self.event_logger.log(
            level, f"user {user_id} [{','.join(event.tags)}] {event.message or ''} {event.data_json()}")


class InMemoryEventAppender:
    """Collects audit events per user"""

    def __init__(self):
        self.events: List[Tuple[int, AuditEvent]] = []

    def add_event(self, user_id: int, event: AuditEvent) -> None:
        self.events.append((user_id, event))

    def events_for(self, user_id: int) -> List[AuditEvent]:
        return [e for uid, e in self.events if uid == user_id]

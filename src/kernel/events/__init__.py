"""
Audit trail for permission changes.
"""

from src.kernel.events.event_store import EventSink, EventStore, logging_event_sink
from src.kernel.events.event_types import (
    BaseEvent,
    GrantsExpiredEvent,
    PermissionEvent,
    PermissionGrantedEvent,
    PermissionRevokedEvent,
)

__all__ = [
    "EventSink",
    "EventStore",
    "logging_event_sink",
    "BaseEvent",
    "GrantsExpiredEvent",
    "PermissionEvent",
    "PermissionGrantedEvent",
    "PermissionRevokedEvent",
]

"""
Kernel Data Models

SQLAlchemy models backing the durable grant ledger and its audit trail.
"""

from src.kernel.models.base import Base, generate_uuid, utcnow
from src.kernel.models.event_log import EventLog, EventType
from src.kernel.models.permission_grant import PermissionGrantRecord

__all__ = [
    "Base",
    "generate_uuid",
    "utcnow",
    "EventLog",
    "EventType",
    "PermissionGrantRecord",
]

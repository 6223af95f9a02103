"""
Immutable event log for the permission audit trail.

Grant and revoke mutations are appended here; rows are never updated.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""
    
    PERMISSION_GRANTED = "permission.granted"
    PERMISSION_REVOKED = "permission.revoked"
    GRANTS_EXPIRED = "permission.grants_expired"


class EventLog(Base):
    """
    Immutable audit event log.
    
    This table is append-only - no updates or deletes allowed.
    """
    
    __tablename__ = "event_logs"
    
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    
    # Subject of the event (the user whose grants changed; None for sweeps)
    subject_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    
    # Actor (None for system events such as the expiry sweep)
    actor_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    
    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    
    __table_args__ = (
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )
    
    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} subject={self.subject_id}>"

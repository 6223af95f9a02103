"""
Durable rows for per-user permission grants.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid, utcnow


class PermissionGrantRecord(Base):
    """
    One grant of one permission to one user.

    Several rows may share the same (user_id, permission) pair; re-issuing a
    grant appends rather than updates.
    """
    
    __tablename__ = "permission_grants"
    
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    
    # Subject (who holds the grant)
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    permission: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    
    # Grant metadata
    granted_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    conditions: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )
    scope: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    
    __table_args__ = (
        Index("ix_permission_grants_user_permission", "user_id", "permission"),
    )
    
    def __repr__(self) -> str:
        return f"<PermissionGrantRecord user={self.user_id} permission={self.permission}>"

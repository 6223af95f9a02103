"""
Event type definitions using Pydantic for validation.

These are the payload schemas for permission events logged to the audit trail.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseEvent(BaseModel):
    """Base event payload structure."""
    
    model_config = ConfigDict(extra="allow")
    
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PermissionEvent(BaseEvent):
    """Payloads about a single user's grants."""
    
    user_id: str
    permission: str


class PermissionGrantedEvent(PermissionEvent):
    """A grant was appended to the ledger."""
    
    granted_by: str
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    conditions: List[Dict[str, Any]] = Field(default_factory=list)


class PermissionRevokedEvent(PermissionEvent):
    """All grants for a user/permission pair were removed."""
    
    removed_count: int = 0


class GrantsExpiredEvent(BaseEvent):
    """The expiry sweep removed grants."""
    
    removed_count: int

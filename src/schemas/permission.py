"""
Permission introspection schemas.
"""

from typing import List

from pydantic import BaseModel, Field

from src.kernel.permissions.grants import PermissionGrant


class UserPermissionExport(BaseModel):
    """Point-in-time snapshot of a user's effective permissions (audit/debug aid)."""
    
    user_id: str
    role: str
    role_permissions: List[str] = Field(default_factory=list)
    granted_permissions: List[PermissionGrant] = Field(
        default_factory=list,
        description="Raw ledger entries, including expired ones not yet swept",
    )
    all_permissions: List[str] = Field(default_factory=list)

"""
Authenticated principal types consumed by the permission engine.

Users are owned by the host application; the engine only reads ``id`` and
``role`` (plus optional scoping fields used to build a permission context).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Union


class UserRole(str, Enum):
    """User roles in the assessment console."""
    SUPER_ADMIN = "super_admin"
    ORG_ADMIN = "org_admin"
    TEAM_LEAD = "team_lead"
    REVIEWER = "reviewer"
    EMPLOYEE = "employee"
    SUBSCRIBER = "subscriber"


class PermissionSubject(Protocol):
    """Anything the engine can evaluate: an object exposing id and role."""

    @property
    def id(self) -> str: ...

    @property
    def role(self) -> Union[UserRole, str]: ...


@dataclass(frozen=True)
class User:
    """Snapshot of an already-authenticated user."""

    id: str
    role: Union[UserRole, str]
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    email: Optional[str] = None

    def __repr__(self) -> str:
        role = self.role.value if isinstance(self.role, UserRole) else self.role
        return f"<User {self.id} role={role}>"


def role_key(role: Union[UserRole, str, None]) -> str:
    """Normalize a role (enum or raw string) to its string key."""
    if isinstance(role, UserRole):
        return role.value
    return role or ""

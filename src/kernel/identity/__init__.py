"""
Identity Core - principal types handed to the permission engine.
"""

from src.kernel.identity.principal import PermissionSubject, User, UserRole, role_key

__all__ = [
    "PermissionSubject",
    "User",
    "UserRole",
    "role_key",
]

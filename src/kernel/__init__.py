"""
Stable Kernel Layer

- Identity Core (principal types handed in by the host application)
- Permission Core (catalog, role matrix, grant ledger, evaluator)
- Audit events for every grant mutation
"""

from src.kernel.identity import User, UserRole
from src.kernel.permissions import (
    PermissionContext,
    PermissionService,
    create_permission_service,
)

__all__ = [
    "User",
    "UserRole",
    "PermissionContext",
    "PermissionService",
    "create_permission_service",
]

"""
Permission Core - role defaults, per-user grants and conditional access.
"""

from src.kernel.permissions.catalog import (
    ConditionType,
    Permission,
    PermissionCatalog,
    PermissionCategory,
    PermissionCondition,
    SubPermission,
)
from src.kernel.permissions.conditions import ConditionEvaluator, PermissionContext
from src.kernel.permissions.errors import InvalidConditionError, PermissionEngineError
from src.kernel.permissions.grants import (
    GrantLedger,
    InMemoryGrantLedger,
    PermissionGrant,
    SqlAlchemyGrantLedger,
)
from src.kernel.permissions.role_matrix import ROLE_PERMISSIONS, RoleMatrix
from src.kernel.permissions.permission_service import (
    PermissionService,
    create_permission_service,
)

__all__ = [
    "ConditionType",
    "Permission",
    "PermissionCatalog",
    "PermissionCategory",
    "PermissionCondition",
    "SubPermission",
    "ConditionEvaluator",
    "PermissionContext",
    "InvalidConditionError",
    "PermissionEngineError",
    "GrantLedger",
    "InMemoryGrantLedger",
    "PermissionGrant",
    "SqlAlchemyGrantLedger",
    "ROLE_PERMISSIONS",
    "RoleMatrix",
    "PermissionService",
    "create_permission_service",
]

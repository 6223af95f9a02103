"""
Pydantic schemas for permission introspection and the health endpoint.
"""

from src.schemas.common import ErrorResponse, HealthResponse
from src.schemas.permission import UserPermissionExport

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "UserPermissionExport",
]

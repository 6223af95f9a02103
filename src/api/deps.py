"""
FastAPI dependencies for resolving the current user and gating routes on permissions.

Authentication happens upstream: the host's auth layer stores the
authenticated user on ``request.state.user`` before these run.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from src.kernel.identity.principal import PermissionSubject
from src.kernel.permissions.conditions import PermissionContext
from src.kernel.permissions.permission_service import PermissionService
from src.logging_config import get_logger

logger = get_logger(__name__)

# request.state attribute written by the host approval workflow
APPROVAL_STATE_ATTR = "permission_approved"

# Request parameters copied into the permission context when present
_CONTEXT_PARAMS = ("owner_id", "organization_id", "department_id")


def get_permission_service(request: Request) -> PermissionService:
    """The process-wide service registered on app.state at startup."""
    service = getattr(request.app.state, "permission_service", None)
    if service is None:
        raise RuntimeError("Permission service is not configured on app.state")
    return service


PermissionServiceDep = Annotated[PermissionService, Depends(get_permission_service)]


def get_current_user_optional(request: Request) -> Optional[PermissionSubject]:
    """Get current user if authenticated, None otherwise."""
    return getattr(request.state, "user", None)


def get_current_user(request: Request) -> PermissionSubject:
    """Get current authenticated user or raise 401."""
    user = get_current_user_optional(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUser = Annotated[PermissionSubject, Depends(get_current_user)]


def build_permission_context(request: Request, user: PermissionSubject) -> PermissionContext:
    """
    Assemble the condition context for a request.

    Scoping ids come from path parameters first, then query parameters.
    Approval is never taken from the client: the host's approval layer
    records it server-side as ``request.state.permission_approved``.
    """
    values = {"user_id": getattr(user, "id", None)}
    for name in _CONTEXT_PARAMS:
        value = request.path_params.get(name) or request.query_params.get(name)
        if value is not None:
            values[name] = value
    approved = getattr(request.state, APPROVAL_STATE_ATTR, None)
    if approved is not None:
        values["approved"] = approved is True
    return PermissionContext(**values)


class RequirePermission:
    """
    Dependency class for gating a route on a permission id.
    
    Usage:
        @router.delete("/users/{user_id}")
        async def delete_user(
            user_id: str,
            user: Annotated[PermissionSubject, Depends(RequirePermission("users.delete"))],
        ):
            ...
    """
    
    def __init__(self, permission_id: str):
        self.permission_id = permission_id
    
    async def __call__(
        self,
        request: Request,
        user: CurrentUser,
        service: PermissionServiceDep,
    ) -> PermissionSubject:
        context = build_permission_context(request, user)
        if not service.has_permission(user, self.permission_id, context):
            logger.info(
                "Request blocked by permission check",
                extra={"permission": self.permission_id, "path": request.url.path},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {self.permission_id}",
            )
        return user


# Convenience permission dependencies for the console's most gated actions
RequireTeamManagement = Annotated[PermissionSubject, Depends(RequirePermission("teams.manage"))]
RequireUserDeletion = Annotated[PermissionSubject, Depends(RequirePermission("users.delete"))]
RequireBulkUserCreation = Annotated[PermissionSubject, Depends(RequirePermission("users.create.bulk"))]

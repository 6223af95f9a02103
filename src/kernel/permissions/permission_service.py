"""
Permission service - the single decision point for "may this user do X?".
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Mapping, Optional, Type, Union

from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.kernel.events.event_store import EventSink, EventStore, logging_event_sink
from src.kernel.events.event_types import (
    BaseEvent,
    GrantsExpiredEvent,
    PermissionGrantedEvent,
    PermissionRevokedEvent,
)
from src.kernel.identity.principal import PermissionSubject, role_key
from src.kernel.models.event_log import EventType
from src.kernel.permissions.catalog import (
    Permission,
    PermissionCatalog,
    PermissionCategory,
    PermissionCondition,
)
from src.kernel.permissions.conditions import (
    ConditionEvaluator,
    PermissionContext,
    coerce_conditions,
)
from src.kernel.permissions.errors import InvalidConditionError
from src.kernel.permissions.grants import (
    GrantLedger,
    InMemoryGrantLedger,
    PermissionGrant,
    SqlAlchemyGrantLedger,
)
from src.kernel.permissions.role_matrix import RoleMatrix
from src.logging_config import get_logger

if TYPE_CHECKING:
    from src.schemas.permission import UserPermissionExport

logger = get_logger(__name__)

Clock = Callable[[], datetime]
ContextInput = Union[PermissionContext, Mapping[str, Any], None]
ConditionInput = Iterable[Union[PermissionCondition, Mapping[str, Any]]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _user_id(user: PermissionSubject) -> Optional[str]:
    value = getattr(user, "id", None)
    return None if value is None else str(value)


class PermissionService:
    """
    Evaluates permissions from three sources:
    - Role defaults (static role matrix)
    - Per-user grants (time-boxed, optionally conditional)
    - Conditions on the catalog entry itself, applied to every check

    Construct one per process and share it; tests build their own.
    """

    def __init__(
        self,
        catalog: Optional[PermissionCatalog] = None,
        role_matrix: Optional[RoleMatrix] = None,
        ledger: Optional[GrantLedger] = None,
        evaluator: Optional[ConditionEvaluator] = None,
        clock: Optional[Clock] = None,
        event_sink: Optional[EventSink] = None,
    ):
        self.catalog = catalog or PermissionCatalog()
        self.role_matrix = role_matrix or RoleMatrix()
        self.ledger: GrantLedger = ledger if ledger is not None else InMemoryGrantLedger()
        self.evaluator = evaluator or ConditionEvaluator()
        self._clock = clock or utc_now
        self._event_sink = event_sink

    def has_permission(
        self,
        user: Optional[PermissionSubject],
        permission_id: str,
        context: ContextInput = None,
    ) -> bool:
        """
        Check if user holds a permission.

        Order of evaluation:
        1. No user - deny
        2. Role matrix
        3. Otherwise any current grant for the permission (grant conditions included)
        4. Conditions declared on the catalog entry, regardless of how access was found

        Args:
            user: Authenticated user (needs ``id`` and ``role``)
            permission_id: Permission id, e.g. ``teams.manage``
            context: PermissionContext or mapping with approval/ownership/scope data

        Returns:
            True if access is allowed. Storage or condition handler
            failures are logged and deny.
        """
        if user is None:
            return False

        try:
            return self._check(user, permission_id, context)
        except Exception:
            logger.exception(
                "Permission check failed, denying",
                extra={"user_id": _user_id(user), "permission": permission_id},
            )
            return False

    def _check(
        self,
        user: PermissionSubject,
        permission_id: str,
        context: ContextInput,
    ) -> bool:
        ctx = self._coerce_context(context)
        now = self._clock()
        condition_time = ctx.request_timestamp if ctx and ctx.request_timestamp else now

        if not self.role_matrix.has_permission(getattr(user, "role", None), permission_id):
            user_id = _user_id(user)
            grants = self.ledger.list_for_user(user_id) if user_id is not None else []
            has_grant = any(
                grant.permission == permission_id
                and self._is_grant_valid(grant, ctx, now, condition_time)
                for grant in grants
            )
            if not has_grant:
                logger.debug(
                    "Permission denied",
                    extra={"user_id": user_id, "permission": permission_id},
                )
                return False

        permission = self.catalog.get_permission(permission_id)
        if permission is not None and permission.conditions:
            return self.evaluator.evaluate_all(permission.conditions, user, ctx, condition_time)

        return True

    def grant_permission(
        self,
        user_id: str,
        permission_id: str,
        granted_by: str,
        expires_at: Optional[datetime] = None,
        conditions: Optional[ConditionInput] = None,
        scope: Optional[str] = None,
    ) -> bool:
        """
        Grant a permission to a user outside their role defaults.

        Issuing the same grant twice keeps both entries. Never raises:
        failures are logged and reported as False.
        """
        try:
            grant = PermissionGrant(
                user_id=str(user_id),
                permission=permission_id,
                granted_by=str(granted_by),
                granted_at=self._clock(),
                expires_at=expires_at,
                conditions=coerce_conditions(conditions),
                scope=scope,
            )
            if permission_id not in self.catalog:
                logger.warning(
                    "Granting permission that is not in the catalog",
                    extra={"permission": permission_id},
                )
            self.ledger.add(grant)
        except Exception:
            logger.exception(
                "Failed to grant permission",
                extra={"user_id": str(user_id), "permission": permission_id},
            )
            return False

        logger.info(
            "Permission granted",
            extra={
                "user_id": grant.user_id,
                "permission": permission_id,
                "granted_by": grant.granted_by,
                "expires_at": grant.expires_at.isoformat() if grant.expires_at else None,
            },
        )
        self._emit(
            EventType.PERMISSION_GRANTED,
            PermissionGrantedEvent,
            user_id=grant.user_id,
            permission=permission_id,
            granted_by=grant.granted_by,
            expires_at=grant.expires_at,
            scope=scope,
            conditions=[c.model_dump(mode="json") for c in grant.conditions or ()],
        )
        return True

    def revoke_permission(self, user_id: str, permission_id: str) -> bool:
        """
        Remove every grant of a permission from a user.

        Role defaults are unaffected. Never raises: failures are logged and
        reported as False.
        """
        try:
            removed = self.ledger.remove(str(user_id), permission_id)
        except Exception:
            logger.exception(
                "Failed to revoke permission",
                extra={"user_id": str(user_id), "permission": permission_id},
            )
            return False

        logger.info(
            "Permission revoked",
            extra={"user_id": str(user_id), "permission": permission_id, "removed": removed},
        )
        self._emit(
            EventType.PERMISSION_REVOKED,
            PermissionRevokedEvent,
            user_id=str(user_id),
            permission=permission_id,
            removed_count=removed,
        )
        return True

    def get_user_permissions(self, user: Optional[PermissionSubject]) -> List[str]:
        """Role permissions plus currently valid grants, without duplicates."""
        if user is None:
            return []

        now = self._clock()
        role_permissions = sorted(self.role_matrix.get_permissions(getattr(user, "role", None)))
        user_id = _user_id(user)
        grants = self.ledger.list_for_user(user_id) if user_id is not None else []
        granted = [g.permission for g in grants if self._is_grant_valid(g, None, now, now)]

        return list(dict.fromkeys(role_permissions + granted))

    def get_permission(self, permission_id: str) -> Optional[Permission]:
        return self.catalog.get_permission(permission_id)

    def get_permissions_by_category(
        self,
        category: Union[PermissionCategory, str],
    ) -> List[Permission]:
        return self.catalog.get_permissions_by_category(category)

    def cleanup_expired_grants(self) -> int:
        """
        Drop every grant whose expiry has passed.

        Meant to be called on a schedule by the host; nothing here
        schedules it.

        Returns:
            Number of grants removed
        """
        removed = self.ledger.remove_expired(self._clock())
        if removed > 0:
            logger.info("Expired permission grants cleaned up", extra={"removed": removed})
            self._emit(EventType.GRANTS_EXPIRED, GrantsExpiredEvent, removed_count=removed)
        return removed

    def export_user_permissions(self, user: PermissionSubject) -> "UserPermissionExport":
        """Snapshot of role, raw grants and resolved permissions. No side effects."""
        from src.schemas.permission import UserPermissionExport

        user_id = _user_id(user) or ""
        role = getattr(user, "role", None)
        return UserPermissionExport(
            user_id=user_id,
            role=role_key(role),
            role_permissions=sorted(self.role_matrix.get_permissions(role)),
            granted_permissions=self.ledger.list_for_user(user_id) if user_id else [],
            all_permissions=self.get_user_permissions(user),
        )

    def _is_grant_valid(
        self,
        grant: PermissionGrant,
        context: Optional[PermissionContext],
        now: datetime,
        condition_time: datetime,
    ) -> bool:
        if not grant.is_current(now):
            return False
        if grant.conditions:
            # Grant conditions are evaluated without the user
            return self.evaluator.evaluate_all(grant.conditions, None, context, condition_time)
        return True

    def _coerce_context(self, context: ContextInput) -> Optional[PermissionContext]:
        try:
            return PermissionContext.coerce(context)
        except InvalidConditionError:
            logger.warning("Ignoring invalid permission context", exc_info=True)
            return None

    def _emit(self, event_type: EventType, event_cls: Type[BaseEvent], **fields: Any) -> None:
        if self._event_sink is None:
            return
        try:
            self._event_sink(event_type, event_cls(**fields))
        except Exception:
            logger.warning(
                "Permission event sink failed",
                extra={"event_type": event_type.value},
                exc_info=True,
            )


# Application wiring

def create_permission_service(
    settings: Optional[Settings] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    clock: Optional[Clock] = None,
) -> PermissionService:
    """
    Build a fully wired service from settings.

    With ``rbac_grant_store="database"`` grants live in ``permission_grants``
    and, if ``rbac_audit_events`` is set, events go to ``event_logs``.
    Otherwise grants are in memory and events are logged.
    """
    settings = settings or get_settings()

    ledger: GrantLedger
    event_sink: EventSink = logging_event_sink
    if settings.rbac_grant_store == "database":
        if session_factory is None:
            from src.database import session_maker

            session_factory = session_maker
        ledger = SqlAlchemyGrantLedger(session_factory)
        if settings.rbac_audit_events:
            event_sink = EventStore(session_factory)
    else:
        ledger = InMemoryGrantLedger()

    return PermissionService(
        ledger=ledger,
        evaluator=ConditionEvaluator.from_settings(settings),
        clock=clock,
        event_sink=event_sink,
    )

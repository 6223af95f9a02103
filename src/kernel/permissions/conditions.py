"""
Runtime conditions on permissions and grants.

A condition is a ``(type, rule, value)`` triple. Handlers are registered per
``(type, rule)`` pair; a list of conditions passes only if every one passes.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator

from src.config import Settings
from src.kernel.identity.principal import PermissionSubject
from src.kernel.permissions.catalog import ConditionType, PermissionCondition
from src.kernel.permissions.errors import InvalidConditionError
from src.logging_config import get_logger

logger = get_logger(__name__)


class PermissionContext(BaseModel):
    """
    Caller-supplied request data that conditions are evaluated against.

    Accepts snake_case field names or the camelCase keys used by the
    front end (``ownerId``, ``organizationId``...).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    approved: Optional[StrictBool] = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    organization_id: Optional[str] = Field(default=None, alias="organizationId")
    department_id: Optional[str] = Field(default=None, alias="departmentId")
    request_timestamp: Optional[datetime] = Field(default=None, alias="requestTimestamp")

    @field_validator("owner_id", "user_id", "organization_id", "department_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def coerce(
        cls,
        value: Union["PermissionContext", Mapping[str, Any], None],
    ) -> Optional["PermissionContext"]:
        """Build a context from a mapping; raises InvalidConditionError on bad data."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls.model_validate(dict(value))
        except (ValidationError, TypeError, ValueError) as exc:
            raise InvalidConditionError(f"Invalid permission context: {exc}") from exc


def coerce_conditions(
    conditions: Optional[Iterable[Union[PermissionCondition, Mapping[str, Any]]]],
) -> Optional[Tuple[PermissionCondition, ...]]:
    """Validate caller-supplied conditions (models or plain dicts)."""
    if conditions is None:
        return None
    result = []
    for condition in conditions:
        if isinstance(condition, PermissionCondition):
            result.append(condition)
            continue
        try:
            result.append(PermissionCondition.model_validate(condition))
        except ValidationError as exc:
            raise InvalidConditionError(f"Invalid permission condition: {exc}") from exc
    return tuple(result)


def to_instant(value: Any) -> datetime:
    """
    Interpret a time bound as an aware datetime.

    Numbers are epoch milliseconds, strings are ISO-8601, naive datetimes are UTC.
    """
    if isinstance(value, bool):
        raise InvalidConditionError("Boolean is not a valid instant")
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, (int, float)):
        instant = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            instant = datetime.fromisoformat(value)
        except ValueError as exc:
            raise InvalidConditionError(f"Invalid instant: {value!r}") from exc
    else:
        raise InvalidConditionError(f"Invalid instant: {value!r}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


ConditionHandler = Callable[
    [PermissionCondition, Optional[PermissionSubject], Optional[PermissionContext], datetime],
    bool,
]


class ConditionEvaluator:
    """
    Evaluates condition triples against a user, a context and the current time.

    Built-in rules:
        time/business_hours       local hour in [start, end)
        time/specific_time        now in [value.start, value.end]
        context/require_approval  context.approved is True
        context/resource_owner    context.owner_id == context.user_id
        resource/same_organization  context.organization_id == value
        resource/same_department    context.department_id == value

    Pairs without a handler evaluate to ``fail_open_unknown`` (True by default).
    """

    def __init__(
        self,
        *,
        business_hours_start: int = 9,
        business_hours_end: int = 17,
        business_timezone: Optional[str] = None,
        fail_open_unknown: bool = True,
    ):
        self.business_hours_start = business_hours_start
        self.business_hours_end = business_hours_end
        self._zone = ZoneInfo(business_timezone) if business_timezone else None
        self.fail_open_unknown = fail_open_unknown
        self._handlers: Dict[Tuple[str, str], ConditionHandler] = {}

        self.register(ConditionType.TIME, "business_hours", self._business_hours)
        self.register(ConditionType.TIME, "specific_time", self._specific_time)
        self.register(ConditionType.CONTEXT, "require_approval", self._require_approval)
        self.register(ConditionType.CONTEXT, "resource_owner", self._resource_owner)
        self.register(ConditionType.RESOURCE, "same_organization", self._same_organization)
        self.register(ConditionType.RESOURCE, "same_department", self._same_department)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConditionEvaluator":
        return cls(
            business_hours_start=settings.rbac_business_hours_start,
            business_hours_end=settings.rbac_business_hours_end,
            business_timezone=settings.rbac_business_timezone,
            fail_open_unknown=settings.rbac_fail_open_unknown_conditions,
        )

    def register(
        self,
        condition_type: Union[ConditionType, str],
        rule: str,
        handler: ConditionHandler,
    ) -> None:
        """Add or replace the handler for a (type, rule) pair."""
        self._handlers[(ConditionType(condition_type).value, rule)] = handler

    def evaluate(
        self,
        condition: PermissionCondition,
        user: Optional[PermissionSubject],
        context: Optional[PermissionContext],
        now: datetime,
    ) -> bool:
        handler = self._handlers.get((condition.type.value, condition.rule))
        if handler is None:
            logger.warning(
                "Unrecognized permission condition, defaulting to %s",
                "allow" if self.fail_open_unknown else "deny",
                extra={"condition_type": condition.type.value, "rule": condition.rule},
            )
            return self.fail_open_unknown
        return handler(condition, user, context, now)

    def evaluate_all(
        self,
        conditions: Iterable[PermissionCondition],
        user: Optional[PermissionSubject],
        context: Optional[PermissionContext],
        now: datetime,
    ) -> bool:
        return all(self.evaluate(c, user, context, now) for c in conditions)

    # Time

    def _business_hours(self, condition, user, context, now: datetime) -> bool:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(self._zone) if self._zone else now.astimezone()
        return self.business_hours_start <= local.hour < self.business_hours_end

    def _specific_time(self, condition, user, context, now: datetime) -> bool:
        window = condition.value
        if not isinstance(window, Mapping):
            return False
        try:
            start = to_instant(window.get("start"))
            end = to_instant(window.get("end"))
        except InvalidConditionError:
            return False
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return start <= now <= end

    # Context

    def _require_approval(self, condition, user, context, now) -> bool:
        return context is not None and context.approved is True

    def _resource_owner(self, condition, user, context, now) -> bool:
        if context is None or context.owner_id is None:
            return False
        return context.owner_id == context.user_id

    # Resource

    def _same_organization(self, condition, user, context, now) -> bool:
        if context is None or context.organization_id is None:
            return False
        return context.organization_id == _as_id(condition.value)

    def _same_department(self, condition, user, context, now) -> bool:
        if context is None or context.department_id is None:
            return False
        return context.department_id == _as_id(condition.value)


def _as_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return str(value)

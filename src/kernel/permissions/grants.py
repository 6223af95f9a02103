"""
Grant ledger - per-user permission grants layered over the role matrix.

Re-issuing a grant appends a new entry; nothing is ever updated in place.
Removal is either explicit (all entries for a user/permission pair) or by
the expiry sweep.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import delete, distinct, select
from sqlalchemy.orm import Session

from src.kernel.models.permission_grant import PermissionGrantRecord
from src.kernel.permissions.catalog import PermissionCondition


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PermissionGrant(BaseModel):
    """One permission handed to one user outside their role defaults."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    permission: str
    granted_by: str
    granted_at: datetime
    expires_at: Optional[datetime] = None
    conditions: Optional[Tuple[PermissionCondition, ...]] = None
    scope: Optional[str] = None

    @field_validator("granted_at", "expires_at")
    @classmethod
    def _normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def is_expired(self, now: datetime) -> bool:
        """Past its expiry; eligible for the sweep."""
        return self.expires_at is not None and self.expires_at < ensure_utc(now)

    def is_current(self, now: datetime) -> bool:
        """No expiry, or expiry strictly in the future."""
        return self.expires_at is None or self.expires_at > ensure_utc(now)


class GrantLedger(Protocol):
    """Storage for permission grants, keyed by user id."""

    def add(self, grant: PermissionGrant) -> None: ...

    def list_for_user(self, user_id: str) -> List[PermissionGrant]: ...

    def remove(self, user_id: str, permission_id: str) -> int: ...

    def remove_expired(self, now: datetime) -> int: ...

    def user_ids(self) -> List[str]: ...


class InMemoryGrantLedger:
    """Process-local ledger; lost on restart."""

    def __init__(self) -> None:
        self._grants: Dict[str, List[PermissionGrant]] = {}

    def add(self, grant: PermissionGrant) -> None:
        self._grants.setdefault(grant.user_id, []).append(grant)

    def list_for_user(self, user_id: str) -> List[PermissionGrant]:
        return list(self._grants.get(user_id, ()))

    def remove(self, user_id: str, permission_id: str) -> int:
        grants = self._grants.get(user_id)
        if grants is None:
            return 0
        kept = [g for g in grants if g.permission != permission_id]
        self._grants[user_id] = kept
        return len(grants) - len(kept)

    def remove_expired(self, now: datetime) -> int:
        removed = 0
        for user_id, grants in self._grants.items():
            kept = [g for g in grants if not g.is_expired(now)]
            removed += len(grants) - len(kept)
            self._grants[user_id] = kept
        return removed

    def user_ids(self) -> List[str]:
        return list(self._grants)


class SqlAlchemyGrantLedger:
    """
    Durable ledger stored in the ``permission_grants`` table.

    Each call opens and commits its own short-lived session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @staticmethod
    def _to_grant(record: PermissionGrantRecord) -> PermissionGrant:
        return PermissionGrant(
            user_id=record.user_id,
            permission=record.permission,
            granted_by=record.granted_by,
            granted_at=record.granted_at,
            expires_at=record.expires_at,
            conditions=(
                tuple(PermissionCondition.model_validate(c) for c in record.conditions)
                if record.conditions is not None
                else None
            ),
            scope=record.scope,
        )

    def add(self, grant: PermissionGrant) -> None:
        record = PermissionGrantRecord(
            user_id=grant.user_id,
            permission=grant.permission,
            granted_by=grant.granted_by,
            granted_at=grant.granted_at,
            expires_at=grant.expires_at,
            conditions=(
                [c.model_dump(mode="json") for c in grant.conditions]
                if grant.conditions is not None
                else None
            ),
            scope=grant.scope,
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()

    def list_for_user(self, user_id: str) -> List[PermissionGrant]:
        query = (
            select(PermissionGrantRecord)
            .where(PermissionGrantRecord.user_id == user_id)
            .order_by(PermissionGrantRecord.granted_at)
        )
        with self._session_factory() as session:
            records = session.execute(query).scalars().all()
            return [self._to_grant(r) for r in records]

    def remove(self, user_id: str, permission_id: str) -> int:
        statement = delete(PermissionGrantRecord).where(
            PermissionGrantRecord.user_id == user_id,
            PermissionGrantRecord.permission == permission_id,
        )
        with self._session_factory() as session:
            result = session.execute(statement)
            session.commit()
            return result.rowcount or 0

    def remove_expired(self, now: datetime) -> int:
        # Compare in Python: SQLite hands back naive datetimes
        now = ensure_utc(now)
        query = select(PermissionGrantRecord).where(PermissionGrantRecord.expires_at.is_not(None))
        with self._session_factory() as session:
            removed = 0
            for record in session.execute(query).scalars().all():
                if ensure_utc(record.expires_at) < now:
                    session.delete(record)
                    removed += 1
            session.commit()
            return removed

    def user_ids(self) -> List[str]:
        query = select(distinct(PermissionGrantRecord.user_id))
        with self._session_factory() as session:
            return list(session.execute(query).scalars().all())

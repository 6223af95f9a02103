"""
Pytest fixtures for permission engine tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.kernel.identity.principal import User, UserRole
from src.kernel.models.base import Base
from src.kernel.permissions.conditions import ConditionEvaluator
from src.kernel.permissions.grants import InMemoryGrantLedger
from src.kernel.permissions.permission_service import PermissionService


# Monday, inside business hours (UTC)
START_TIME = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock; call it to read, advance() to move forward."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSink:
    """Event sink that keeps everything it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event_type, payload) -> None:
        self.events.append((event_type, payload))

    @property
    def types(self) -> list:
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    """Evaluator pinned to UTC so business-hours tests don't depend on the host."""
    return ConditionEvaluator(business_timezone="UTC")


@pytest.fixture
def event_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def service(clock: FakeClock, evaluator: ConditionEvaluator, event_sink: RecordingSink) -> PermissionService:
    """Isolated in-memory permission service."""
    return PermissionService(
        ledger=InMemoryGrantLedger(),
        evaluator=evaluator,
        clock=clock,
        event_sink=event_sink,
    )


@pytest.fixture
def session_factory() -> Generator[Callable[[], Session], None, None]:
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(engine, class_=Session, expire_on_commit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


# Users

@pytest.fixture
def employee() -> User:
    return User(id="E1", role=UserRole.EMPLOYEE, organization_id="org-1", department_id="dept-1")


@pytest.fixture
def org_admin() -> User:
    return User(id="A1", role=UserRole.ORG_ADMIN, organization_id="org-1")


@pytest.fixture
def super_admin() -> User:
    return User(id="S1", role=UserRole.SUPER_ADMIN)


@pytest.fixture
def team_lead() -> User:
    return User(id="T1", role=UserRole.TEAM_LEAD, organization_id="org-1")

"""Pytest configuration and shared fixtures.

- `backend`: in-memory `ScheduleBackend` for engine tests
- `client`: FastAPI TestClient on a temporary SQLite database, with the
  token dependency replaced by `auth.payload`
"""

import asyncio
import os
from datetime import time

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULE_FETCH_TIMEOUT", "5")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from diary_schedule.core.errors import ScheduleError
from diary_schedule.services.collaborators import (
    ClassTimeSlotOverride,
    DateRange,
    ScheduleEntry,
    SubgroupRef,
    TimeSlotDefault,
)


# =============================================================================
# In-memory backend
# =============================================================================


class FakeBackend:
    """Dictionary-backed `ScheduleBackend`.

    `fail` names methods that raise, `delay` makes every read sleep first.
    """

    def __init__(self):
        self.defaults: dict[int, TimeSlotDefault] = {}
        self.overrides: dict[tuple[int, int], ClassTimeSlotOverride] = {}
        self.entries: list[ScheduleEntry] = []
        self.memberships: dict[int, list[int]] = {}
        self.subgroups: dict[int, list[SubgroupRef]] = {}
        self.children: dict[int, list[int]] = {}
        self.student_classes: dict[int, list[int]] = {}
        self.fail: set[str] = set()
        self.delay: float = 0
        self.writes: list[tuple] = []
        self._next_id = 1

    def add_default(self, slot_number, start, end):
        self.defaults[slot_number] = TimeSlotDefault(slot_number, start, end)

    def add_override(self, class_id, slot_number, start, end):
        override = ClassTimeSlotOverride(self._next_id, class_id, slot_number, start, end)
        self._next_id += 1
        self.overrides[(class_id, slot_number)] = override
        return override

    async def _read(self, name):
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.fail:
            raise ConnectionError(f"{name} failed")

    async def get_default_slots(self):
        await self._read("get_default_slots")
        return list(self.defaults.values())

    async def get_class_overrides(self, class_id):
        await self._read("get_class_overrides")
        return [o for (cid, _), o in self.overrides.items() if cid == class_id]

    async def upsert_class_override(self, class_id, slot_number, start_time, end_time):
        self.writes.append(("upsert", class_id, slot_number))
        existing = self.overrides.get((class_id, slot_number))
        override_id = existing.id if existing else self._next_id
        if not existing:
            self._next_id += 1
        override = ClassTimeSlotOverride(override_id, class_id, slot_number, start_time, end_time)
        self.overrides[(class_id, slot_number)] = override
        return override

    async def delete_class_override(self, override_id):
        self.writes.append(("delete", override_id))
        for key, override in list(self.overrides.items()):
            if override.id == override_id:
                del self.overrides[key]

    async def reset_class_overrides(self, class_id):
        self.writes.append(("reset", class_id))
        if "reset_class_overrides" in self.fail:
            raise ScheduleError("reset rejected")
        self.overrides = {k: v for k, v in self.overrides.items() if k[0] != class_id}

    async def get_schedule_entries(self, class_id, date_range: DateRange):
        await self._read("get_schedule_entries")
        return [
            e for e in self.entries
            if e.class_id == class_id and e.schedule_date in date_range
        ]

    async def get_subgroup_memberships(self, student_id):
        await self._read("get_subgroup_memberships")
        return list(self.memberships.get(student_id, []))

    async def get_subgroups_by_class(self, class_id):
        await self._read("get_subgroups_by_class")
        return list(self.subgroups.get(class_id, []))

    async def get_linked_children(self, parent_id):
        await self._read("get_linked_children")
        return list(self.children.get(parent_id, []))

    async def get_student_class_ids(self, student_id):
        await self._read("get_student_class_ids")
        return list(self.student_classes.get(student_id, []))


@pytest.fixture
def backend() -> FakeBackend:
    """Backend with the standard first three slots of the day."""
    fake = FakeBackend()
    fake.add_default(1, time(8, 0), time(8, 45))
    fake.add_default(2, time(9, 0), time(9, 45))
    fake.add_default(3, time(9, 55), time(10, 40))
    return fake


# =============================================================================
# HTTP fixtures
# =============================================================================


class AuthState:
    """Token payload returned by the overridden `verify_token`."""

    def __init__(self):
        self.payload: dict = {}

    def login(self, username: str, *roles: str) -> None:
        self.payload = {
            "preferred_username": username,
            "email": f"{username}@school.test",
            "realm_access": {"roles": list(roles)},
        }


@pytest.fixture
def auth() -> AuthState:
    return AuthState()


@pytest.fixture
def engine(tmp_path):
    """SQLite file database; backend reads run on their own connections."""
    from diary_schedule.db import Base
    from diary_schedule import models  # noqa: F401

    engine = create_engine(
        f"sqlite:///{tmp_path / 'diary.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def published(monkeypatch) -> list[tuple[str, dict]]:
    """Captures events instead of publishing them to RabbitMQ."""
    from diary_schedule.services import rabbitmq_client

    events: list[tuple[str, dict]] = []

    def _publish(event_type, event_data):
        events.append((event_type, event_data))
        return True

    monkeypatch.setattr(rabbitmq_client, "publish_notification_event", _publish)
    return events


@pytest.fixture
def client(session_factory, auth, published):
    from diary_schedule.core.security import verify_token
    from diary_schedule.db import get_db, get_session_factory
    from diary_schedule.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[verify_token] = lambda: auth.payload
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

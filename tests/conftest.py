import os

# Settings are read at import time; keep tests off any real database and services
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-bookings.db")
os.environ.setdefault("SEED_CATALOG", "false")
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["GOOGLE_CALENDAR_KEY_PATH"] = ""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.clock import fixed_clock
from app.core.db import build_engine, build_session_maker, init_db
from app.models.service import Service
from app.models.slot import TimeSlot
from app.models.user import User
from app.services.calendar_service import CalendarError

NOW = datetime(2025, 2, 28, 12, 0)
SLOT_TIME = datetime(2025, 3, 1, 10, 0)


class FakeCalendar:
    def __init__(self) -> None:
        self.events: dict[str, tuple] = {}
        self.updated: list[tuple] = []
        self.deleted: list[str] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_delete = False

    async def create_event(self, title, body, start, end):
        if self.fail_create:
            raise CalendarError("calendar down")
        event_id = f"evt-{len(self.events) + 1}"
        self.events[event_id] = (title, body, start, end)
        return event_id

    async def update_event(self, event_id, title, body, start, end):
        if self.fail_update:
            raise CalendarError("calendar down")
        self.updated.append((event_id, title, start, end))

    async def delete_event(self, event_id):
        if self.fail_delete:
            raise CalendarError("calendar down")
        self.deleted.append(event_id)


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.fail = False
        self.raise_error = False

    async def send(self, chat_id, message):
        if self.raise_error:
            raise RuntimeError("telegram down")
        if self.fail:
            return False
        self.sent.append((chat_id, message))
        return True


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def catalog(session_maker):
    """Two users, an active and an inactive service, and one free slot at SLOT_TIME."""
    async with session_maker() as s:
        ann = User(telegram_user_id=1001, username="ann", first_name="Ann", last_name="Lee", phone_number="+1555")
        bob = User(telegram_user_id=1002, first_name="Bob")
        swedish = Service(name="Swedish Massage", price=Decimal("80"), duration_minutes=60)
        retired = Service(name="Retired Massage", price=Decimal("50"), duration_minutes=30, is_active=False)
        slot = TimeSlot(start_time=SLOT_TIME, end_time=SLOT_TIME + timedelta(hours=1))
        s.add_all([ann, bob, swedish, retired, slot])
        await s.commit()
        return SimpleNamespace(
            ann=ann.id,
            bob=bob.id,
            service=swedish.id,
            retired_service=retired.id,
            slot=slot.id,
        )


@pytest.fixture
def add_slot(session_maker):
    async def _add(start: datetime, *, available: bool = True) -> int:
        async with session_maker() as s:
            slot = TimeSlot(start_time=start, end_time=start + timedelta(hours=1), available=available)
            s.add(slot)
            await s.commit()
            return slot.id

    return _add


@pytest.fixture
def load(session_maker):
    """Read a row through a fresh session, bypassing any identity map."""

    async def _load(model, pk):
        async with session_maker() as s:
            return await s.get(model, pk)

    return _load

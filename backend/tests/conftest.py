"""
Pytest fixtures for test database, client, and authentication.

Runs against a throwaway SQLite file (aiosqlite) created per test, with
Redis disabled so the slot cache always misses.
"""

import os
import tempfile
from datetime import date, datetime, timedelta
from typing import AsyncGenerator

_TEST_DIR = tempfile.mkdtemp(prefix="gymbook-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/gymbook_test.db"
os.environ["DATABASE_URL_SYNC"] = f"sqlite:///{_TEST_DIR}/gymbook_test.db"
os.environ["REDIS_ENABLED"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.main import app
from gymbook.db.base import Base
from gymbook.db.session import SessionLocal, engine, get_db
from gymbook.core.security import create_access_token, hash_password
from gymbook.models.recurring_booking import RecurringBooking, RecurringBookingStatus
from gymbook.models.room import CoachSettings, Room
from gymbook.models.availability import WeeklyAvailability
from gymbook.models.training_session import SessionStatus, SessionType, TrainingSession
from gymbook.models.user import Role, User

CRON_SECRET = "test-cron-secret"

# Fixed clock for service-level tests: Tuesday 1 January 2030, 08:00
NOW = datetime(2030, 1, 1, 8, 0)
MONDAY = date(2030, 1, 7)


def next_monday() -> date:
    """First Monday strictly after today, for tests that run on the real clock."""
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, email: str, name: str, role: str) -> User:
    user = User(
        email=email,
        name=name,
        role=role,
        hashed_password=hash_password("testpassword123"),
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def member(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "member@example.com", "Mia Member", Role.MEMBER)


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "other@example.com", "Otto Other", Role.MEMBER)


@pytest_asyncio.fixture
async def coach(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "coach@example.com", "Cora Coach", Role.COACH)


@pytest_asyncio.fixture
async def room(db_session: AsyncSession) -> Room:
    room = Room(name="Studio A", capacity=8)
    db_session.add(room)
    await db_session.commit()
    return room


@pytest_asyncio.fixture
async def coach_settings(db_session: AsyncSession, coach: User, room: Room) -> CoachSettings:
    """Coach with a default room, so sessions can be generated."""
    coach_settings = CoachSettings(coach_id=coach.id, default_room_id=room.id, default_duration=60)
    db_session.add(coach_settings)
    await db_session.commit()
    return coach_settings


@pytest_asyncio.fixture
async def monday_template(db_session: AsyncSession, coach: User) -> WeeklyAvailability:
    """Individual availability every Monday 09:00-12:00."""
    row = WeeklyAvailability(
        coach_id=coach.id,
        day_of_week=1,
        start_time="09:00",
        end_time="12:00",
        is_individual=True,
        is_group=False,
    )
    db_session.add(row)
    await db_session.commit()
    return row


@pytest_asyncio.fixture
async def weekly_booking(
    db_session: AsyncSession,
    coach: User,
    member: User,
    coach_settings: CoachSettings,
    monday_template: WeeklyAvailability,
) -> RecurringBooking:
    """Member's standing Monday 10:00-11:00 slot, starting 1 January 2030."""
    booking = RecurringBooking(
        coach_id=coach.id,
        member_id=member.id,
        day_of_week=1,
        start_time="10:00",
        end_time="11:00",
        start_date=NOW.date(),
        frequency=1,
        status=RecurringBookingStatus.ACTIVE,
    )
    db_session.add(booking)
    await db_session.commit()
    return booking


@pytest_asyncio.fixture
async def group_session(db_session: AsyncSession, coach: User, room: Room) -> TrainingSession:
    """A GROUP class next week with 2 seats."""
    start = datetime.combine(next_monday(), datetime.min.time()).replace(hour=18)
    session = TrainingSession(
        coach_id=coach.id,
        room_id=room.id,
        title="Evening circuit",
        type=SessionType.GROUP,
        capacity=2,
        booked_count=0,
        start_time=start,
        end_time=start + timedelta(hours=1),
        status=SessionStatus.SCHEDULED,
    )
    db_session.add(session)
    await db_session.commit()
    return session


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers(member: User) -> dict:
    """Authorization headers with Bearer token."""
    return _headers(member)


@pytest.fixture
def other_member_headers(other_member: User) -> dict:
    return _headers(other_member)


@pytest.fixture
def coach_headers(coach: User) -> dict:
    return _headers(coach)


@pytest.fixture
def cron_headers() -> dict:
    return {"Authorization": f"Bearer {CRON_SECRET}"}

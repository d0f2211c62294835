"""
Shared fixtures: in-memory SQLite engine, per-test AsyncSession, manual clock.

Every test gets a fresh schema, so tests never see each other's sessions or
session codes.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import date, datetime, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from crowdqa.clock import ManualClock
from crowdqa.database import Base
import crowdqa.models  # noqa: F401
from crowdqa.services.attendee_service import join
from crowdqa.services.session_service import activate_session, create_session

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
SESSION_START = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)


def enable_sqlite_transactions(engine: AsyncEngine, begin_statement: str = "BEGIN") -> None:
    """Make pysqlite emit real BEGIN/SAVEPOINT statements (SQLAlchemy sqlite recipe)."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql(begin_statement)


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    enable_sqlite_transactions(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(SESSION_START)


@pytest.fixture
def make_session(db, clock):
    """Factory: create a session, optionally activate it and join attendees."""

    async def _make(duration_minutes: int = 60, *, activate: bool = True, attendees: int = 0):
        session = await create_session(
            db,
            course_name="CS 101 - Intro to Programming",
            session_date=date(2026, 10, 17),
            duration_minutes=duration_minutes,
            creator_name="Dana",
            clock=clock,
        )
        if activate:
            session = await activate_session(db, session.id, clock=clock)
        joined = []
        for _ in range(attendees):
            _, attendee = await join(db, session.session_code, clock=clock)
            joined.append(attendee)
        return session, joined

    return _make

"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from peertutor.database import enable_sqlite_foreign_keys, get_db, make_session_factory, transaction
from peertutor.main import app
from peertutor.models import AccountRole, Base, SessionType
from peertutor.services.accounts import register_account
from peertutor.services.state_machine import SessionEvent, book_session, transition_session
from tests.helpers import tomorrow


@pytest.fixture
async def engine(tmp_path):
    """
    Fresh SQLite database file per test.

    A file (not :memory:) so concurrent sessions get their own connections
    and SQLite's locking behaves like a real shared database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'peertutor.db'}",
        connect_args={"timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def uow(session_factory):
    """Committed unit of work: `async with uow() as db: ...` rolls back if the block raises."""
    return lambda: transaction(session_factory)


@pytest.fixture
async def accounts(uow):
    """One tutor, two learners, and a second tutor who is not part of any session."""
    async with uow() as db:
        tutor = await register_account(db, "tina@example.com", "secret123", "Tina Tutor", AccountRole.TUTOR)
        learner = await register_account(db, "leo@example.com", "secret123", "Leo Learner", AccountRole.LEARNER)
        other_learner = await register_account(db, "lara@example.com", "secret123", "Lara Learner", AccountRole.LEARNER)
        other_tutor = await register_account(db, "omar@example.com", "secret123", "Omar Tutor", AccountRole.TUTOR)
    return SimpleNamespace(
        tutor=tutor,
        learner=learner,
        other_learner=other_learner,
        other_tutor=other_tutor,
    )


@pytest.fixture
def book(uow, accounts):
    """Book a pending session (default: accounts.learner with accounts.tutor)."""

    async def _book(learner=None, tutor=None, **overrides):
        learner = learner or accounts.learner
        tutor = tutor or accounts.tutor
        fields = {
            "subject": "Calculus",
            "session_type": SessionType.ONE_ON_ONE,
            "scheduled_at": tomorrow(),
            "duration_minutes": 60,
            "notes": "",
        }
        fields.update(overrides)
        async with uow() as db:
            return await book_session(db, learner.id, tutor.id, **fields)

    return _book


@pytest.fixture
def completed_session(uow, accounts, book):
    """Book, accept and complete a session for the given learner."""

    async def _completed(learner=None, tutor=None):
        tutor = tutor or accounts.tutor
        session = await book(learner=learner, tutor=tutor)
        async with uow() as db:
            await transition_session(db, session.id, tutor.id, SessionEvent.ACCEPT)
        async with uow() as db:
            return await transition_session(db, session.id, tutor.id, SessionEvent.COMPLETE)

    return _completed


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with get_db bound to the test database."""

    async def override_get_db():
        async with transaction(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

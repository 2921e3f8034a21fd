"""
Shared fixtures: in-memory SQLite per test, the real app with its database,
event queue and mailer dependencies overridden.
"""

import os

os.environ.setdefault("TL_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TL_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("TL_SENDGRID_API_KEY", "")

import uuid
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import hash_password, issue_token
from app.core.database import get_session
from app.core.events import EventQueue, get_event_queue
from app.core.mailer import Mailer, get_mailer
from app.main import app as fastapi_app
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember

PASSWORD = "longenough1"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def event_queue():
    return EventQueue()


@pytest.fixture
def mailer():
    return AsyncMock(spec=Mailer)


@pytest.fixture
async def client(session_factory, event_queue, mailer):
    async def _get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = _get_session
    fastapi_app.dependency_overrides[get_event_queue] = lambda: event_queue
    fastapi_app.dependency_overrides[get_mailer] = lambda: mailer
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    async def _make(name: str = "Ana", email: str | None = None, **kwargs) -> User:
        user = User(
            name=name,
            email=email or f"{name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=PASSWORD_HASH,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def make_workspace(db_session):
    async def _make(name: str, *members: tuple[User, str]) -> Workspace:
        workspace = Workspace(name=name)
        db_session.add(workspace)
        await db_session.flush()
        for user, role in members:
            db_session.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=role))
        await db_session.commit()
        return workspace

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user.id)}"}

    return _headers


@pytest.fixture
def drain():
    """Pop everything currently queued, in order."""
    def _drain(queue: EventQueue) -> list:
        items = []
        while len(queue):
            items.append(queue.get_nowait())
            queue.task_done()
        return items

    return _drain

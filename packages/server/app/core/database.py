"""
Database engine and session management.

Production runs on PostgreSQL through asyncpg; tests and local runs may point
`TL_DATABASE_URL` at SQLite through aiosqlite. Handlers commit explicitly
before queueing realtime events, so the session dependency only rolls back
what a failed request left behind.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()
log = structlog.get_logger()


def engine_options(database_url: str, debug: bool = False) -> dict[str, Any]:
    """Backend-specific keyword arguments for `create_async_engine`."""
    options: dict[str, Any] = {"echo": debug}
    if make_url(database_url).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


engine: AsyncEngine = create_async_engine(
    settings.database_url, **engine_options(settings.database_url, settings.debug)
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create all tables (development only; use migrations in production)."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def check_database() -> bool:
    """True when the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        log.exception("database.unreachable")
        return False
    return True


async def dispose_engine() -> None:
    await engine.dispose()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context():
    """Session for code outside a request (realtime handshake, scripts). Commits on exit."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

"""
Health check endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from app.core.database import engine_options
from app.core.middleware import SECURITY_HEADERS
from app.main import app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok without a token."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_ready_check(client: AsyncClient):
    """Ready endpoint pings the configured database."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


async def test_security_headers(client: AsyncClient):
    response = await client.get("/health")
    for header, value in SECURITY_HEADERS.items():
        assert response.headers[header] == value


async def test_not_ready_when_database_is_down(client: AsyncClient):
    with patch("app.main.check_database", AsyncMock(return_value=False)):
        response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json() == {"error": "InternalError", "message": "Database unavailable"}


def test_engine_options_per_backend():
    assert engine_options("sqlite+aiosqlite:///:memory:")["connect_args"] == {"check_same_thread": False}
    pg = engine_options("postgresql+asyncpg://u:p@db/tasklane", debug=True)
    assert pg == {"echo": True, "pool_pre_ping": True}

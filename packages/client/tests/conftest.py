"""
Shared fixtures for client tests: sample server payloads, a REST client
backed by `httpx.MockTransport`, and a config pointing at a temporary state db.
"""

import json
import uuid
from datetime import datetime, timezone

import httpx
import pytest

from tasklane_client.api import ApiClient
from tasklane_client.config import ClientConfig
from tasklane_client.signals import EventBus
from tasklane_client.store import Store
from tasklane_shared.schemas.users import UserResponse
from tasklane_shared.schemas.workspaces import WorkspaceResponse

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def user() -> UserResponse:
    return UserResponse(id=uuid.uuid4(), name="Ana", email="ana@x.com", created_at=NOW, updated_at=NOW)


@pytest.fixture
def make_workspace():
    def _make(name: str = "Design", role: str = "member") -> WorkspaceResponse:
        return WorkspaceResponse(id=uuid.uuid4(), name=name, role=role, created_at=NOW, updated_at=NOW)

    return _make


@pytest.fixture
def routes():
    """Map of (method, path) -> (status, body) served by the mock transport."""
    return {}


@pytest.fixture
def requests_seen():
    return []


@pytest.fixture
async def api(routes, requests_seen):
    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        key = (request.method, request.url.path)
        if key not in routes:
            return httpx.Response(404, json={"error": "NotFound", "message": "Not found"})
        status, body = routes[key]
        if isinstance(body, (dict, list)):
            return httpx.Response(status, content=json.dumps(body), headers={"content-type": "application/json"})
        return httpx.Response(status, text=body or "")

    client = ApiClient("http://tasklane.test", transport=httpx.MockTransport(handler))
    yield client
    await client.close()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(api, bus):
    return Store(api, bus)


@pytest.fixture
def config(tmp_path):
    return ClientConfig.model_validate({
        "server": {"url": "http://tasklane.test"},
        "search": {"debounce_ms": 10},
        "state": {"db_path": str(tmp_path / "client.db")},
    })

"""
REST client for the Tasklane API.

Wraps one `httpx.AsyncClient`. The bearer token is held as a default header
on that client: `set_token` installs it, `clear_token` removes it. Non-2xx
responses raise `ApiError` built from the server's `{error, message}` body.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
import structlog

from tasklane_shared.schemas.common import ErrorEnvelope
from tasklane_shared.schemas.notifications import NotificationResponse
from tasklane_shared.schemas.search import SearchSuggestions
from tasklane_shared.schemas.users import LogInResponse, SignUpResponse, UserResponse
from tasklane_shared.schemas.workspaces import (
    InviteAcceptResponse,
    InviteResponse,
    MemberResponse,
    WorkspaceResponse,
)

from .errors import ApiError

log = structlog.get_logger()

API_PREFIX = "/api"


class ApiClient:
    def __init__(
        self,
        base_url: str,
        verify_tls: bool = True,
        request_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            timeout=httpx.Timeout(request_timeout),
            verify=verify_tls,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # --- Credentials ---

    @property
    def authorization(self) -> str | None:
        return self._client.headers.get("Authorization")

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    def clear_token(self) -> None:
        self._client.headers.pop("Authorization", None)

    # --- Transport ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._client.request(method, path, **kwargs)
        if resp.is_success:
            return resp.json() if resp.content else None

        kind, message = "InternalError", resp.reason_phrase
        try:
            envelope = ErrorEnvelope.model_validate(resp.json())
            kind, message = envelope.error, envelope.message
        except ValueError:
            # Not an envelope (proxy page, empty body): keep the status line.
            pass
        log.warning("api.request_failed", method=method, path=path, status=resp.status_code, error=kind)
        raise ApiError(resp.status_code, kind, message)

    # --- Auth ---

    async def log_in(self, email: str, password: str) -> LogInResponse:
        data = await self._request("POST", "/auth/log_in", json={"email": email, "password": password})
        return LogInResponse.model_validate(data)

    async def sign_up(self, name: str, email: str, password: str) -> SignUpResponse:
        data = await self._request(
            "POST", "/auth/sign_up", json={"name": name, "email": email, "password": password}
        )
        return SignUpResponse.model_validate(data)

    async def accept_invite(self, token: str) -> InviteAcceptResponse:
        data = await self._request("POST", "/auth/invite_accept", json={"token": token})
        return InviteAcceptResponse.model_validate(data)

    # --- Users ---

    async def me(self) -> UserResponse:
        return UserResponse.model_validate(await self._request("GET", "/users/me"))

    # --- Workspaces ---

    async def list_workspaces(self) -> list[WorkspaceResponse]:
        data = await self._request("GET", "/workspaces")
        return [WorkspaceResponse.model_validate(w) for w in data]

    async def create_workspace(self, name: str) -> WorkspaceResponse:
        data = await self._request("POST", "/workspaces", json={"name": name})
        return WorkspaceResponse.model_validate(data)

    async def list_members(self, workspace_id: uuid.UUID | str) -> list[MemberResponse]:
        data = await self._request("GET", f"/workspaces/{workspace_id}/members")
        return [MemberResponse.model_validate(m) for m in data]

    async def invite_member(self, workspace_id: uuid.UUID | str, email: str) -> InviteResponse:
        data = await self._request("POST", f"/workspaces/{workspace_id}/invites", json={"email": email})
        return InviteResponse.model_validate(data)

    # --- Notifications ---

    async def inbox_count(self) -> int:
        data = await self._request("GET", "/notifications/inbox_count")
        return int(data["unread_count"])

    async def list_notifications(self, unread_only: bool = False, limit: int = 50) -> list[NotificationResponse]:
        params = {"unread_only": str(unread_only).lower(), "limit": limit}
        data = await self._request("GET", "/notifications", params=params)
        return [NotificationResponse.model_validate(n) for n in data]

    async def set_read(self, notification_id: uuid.UUID | str, is_read: bool = True) -> NotificationResponse:
        data = await self._request("PATCH", f"/notifications/{notification_id}", json={"is_read": is_read})
        return NotificationResponse.model_validate(data)

    async def mark_all_read(self) -> None:
        await self._request("POST", "/notifications/mark_all_read")

    # --- Search ---

    async def search(self, query: str) -> SearchSuggestions:
        data = await self._request("GET", "/search", params={"query": query})
        return SearchSuggestions.model_validate(data)

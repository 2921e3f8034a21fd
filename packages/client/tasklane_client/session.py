"""
Client session root.

Owns the signal bus, the store, the REST client, the realtime connection,
search and persistence, and drives the flows that touch more than one of
them: log in, rehydrate, fetch-on-load and log out.
"""

from __future__ import annotations

import uuid

import structlog

from tasklane_shared.schemas.users import UserResponse
from tasklane_shared.schemas.workspaces import InviteResponse, WorkspaceResponse

from .api import ApiClient
from .config import ClientConfig
from .errors import ApiError, RealtimeAuthError
from .persistence import StatePersistence
from .realtime import RealtimeConnection
from .search import SearchController
from .signals import OPEN_INVITE_MEMBERS, EventBus
from .store import Store

log = structlog.get_logger()


class ClientSession:
    def __init__(
        self,
        config: ClientConfig,
        api: ApiClient | None = None,
        realtime: RealtimeConnection | None = None,
        persistence: StatePersistence | None = None,
    ):
        self._config = config
        self.bus = EventBus()
        self.api = api or ApiClient(
            config.server.url,
            verify_tls=config.server.verify_tls,
            request_timeout=config.server.request_timeout_seconds,
        )
        self.store = Store(self.api, self.bus)
        self.realtime = realtime or RealtimeConnection(
            self.store, config.server.url, socketio_path=config.server.socketio_path
        )
        self.search = SearchController(self.store, self.api, debounce=config.search.debounce_ms / 1000)
        self.persistence = persistence or StatePersistence(config.state.db_path)
        self._opened = False

    # --- Lifecycle ---

    async def start(self) -> bool:
        """Open persistence and rehydrate. Returns True if a stored session is still valid."""
        await self.persistence.open()
        self._opened = True
        self.store.restore(await self.persistence.load())

        if not self.store.auth.authenticated:
            return False

        try:
            user = await self.api.me()
        except ApiError as exc:
            if not exc.is_unauthorized:
                raise
            log.info("session.stored_token_rejected")
            await self.logout()
            return False

        self.store.set_auth(self.store.auth.token, user)
        await self.fetch_on_load()
        await self.init_realtime()
        await self.persist()
        log.info("session.rehydrated", user_id=str(user.id))
        return True

    async def close(self) -> None:
        await self.search.close()
        await self.realtime.disconnect()
        if self._opened:
            await self.persist()
            await self.persistence.close()
            self._opened = False
        await self.api.close()

    async def persist(self) -> None:
        if self._opened:
            await self.persistence.save(self.store.snapshot())

    # --- Auth ---

    async def login(self, email: str, password: str) -> UserResponse:
        resp = await self.api.log_in(email, password)
        self.store.set_auth(resp.token, resp.user)
        log.info("session.logged_in", user_id=str(resp.user.id))

        await self.fetch_on_load()
        await self.init_realtime()
        await self.persist()
        return resp.user

    async def logout(self) -> None:
        # Credentials go first: nothing may send the old token while the
        # realtime teardown is still in progress.
        self.store.clear_auth()
        self.store.reset_user_data()
        await self.realtime.disconnect()
        await self.persist()
        log.info("session.logged_out")

    async def init_realtime(self) -> None:
        token = self.store.auth.token
        if token is None:
            raise RealtimeAuthError("Not authenticated")
        try:
            await self.realtime.init(token)
        except RealtimeAuthError:
            await self.logout()
            raise

    # --- Data ---

    async def fetch_on_load(self) -> None:
        self.store.set_workspaces(await self.api.list_workspaces())
        self.store.set_unread_count(await self.api.inbox_count())

    async def create_workspace(self, name: str) -> WorkspaceResponse:
        workspace = await self.api.create_workspace(name)
        self.store.add_workspace(workspace)
        self.store.set_current_workspace_id(workspace.id)
        await self.persist()
        return workspace

    async def accept_invite(self, token: str) -> uuid.UUID:
        resp = await self.api.accept_invite(token)
        self.store.set_workspaces(await self.api.list_workspaces())
        await self.persist()
        return resp.workspace_id

    async def invite_member(self, workspace_id: uuid.UUID, email: str) -> InviteResponse:
        return await self.api.invite_member(workspace_id, email)

    def select_workspace(self, workspace_id: uuid.UUID) -> None:
        if not any(w.id == workspace_id for w in self.store.workspaces):
            raise KeyError(f"Unknown workspace: {workspace_id}")
        self.store.set_current_workspace_id(workspace_id)

    async def mark_all_read(self) -> None:
        await self.api.mark_all_read()
        self.store.set_unread_count(0)

    # --- UI signals ---

    def open_invite_members(self, workspace_id: uuid.UUID | None = None) -> None:
        self.bus.publish(OPEN_INVITE_MEMBERS, workspace_id or self.store.current_workspace_id)

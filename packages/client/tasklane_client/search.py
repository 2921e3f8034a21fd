"""
Debounced top-bar search.

Each query change restarts the debounce timer. When it fires, the store's
`loading` flag goes up and the request is sent; the flag comes down when that
request's response lands, success or error. Only the newest request may
write results: a response overtaken by a newer query or a clear is dropped.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import httpx
import structlog

from tasklane_shared.schemas.search import SearchSuggestions

from .errors import ApiError
from .store import Store

log = structlog.get_logger()

DEFAULT_DEBOUNCE_SECONDS = 0.3


class SearchApi(Protocol):
    async def search(self, query: str) -> SearchSuggestions: ...


class SearchController:
    def __init__(self, store: Store, api: SearchApi, debounce: float = DEFAULT_DEBOUNCE_SECONDS):
        self._store = store
        self._api = api
        self._debounce = debounce
        self._pending: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._generation = 0

    def set_query(self, query: str) -> None:
        self._store.set_search_query(query)
        self._cancel_pending()
        if not query.strip():
            self.clear()
            return
        self._pending = asyncio.create_task(self._debounced(query))

    def blur(self) -> None:
        self.clear()

    def escape(self) -> None:
        self._store.set_search_query("")
        self.clear()

    def clear(self) -> None:
        self._cancel_pending()
        self._generation += 1
        self._store.clear_search_suggestions()

    async def wait_idle(self) -> None:
        """Wait for the pending debounce and any in-flight request."""
        if self._pending is not None:
            await asyncio.gather(self._pending, return_exceptions=True)
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def close(self) -> None:
        self._cancel_pending()
        for task in list(self._inflight):
            task.cancel()
        await asyncio.gather(*self._inflight, return_exceptions=True)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounced(self, query: str) -> None:
        await asyncio.sleep(self._debounce)
        # Past the timer: the request is no longer cancellable by typing.
        self._pending = None
        task = asyncio.create_task(self._fetch(query))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _fetch(self, query: str) -> None:
        self._generation += 1
        generation = self._generation
        self._store.set_search_loading(True)
        try:
            suggestions = await self._api.search(query)
        except Exception as exc:
            level = log.warning if isinstance(exc, (ApiError, httpx.HTTPError)) else log.exception
            level("search.failed", query=query, error=str(exc))
            return
        finally:
            if generation == self._generation:
                self._store.set_search_loading(False)

        if generation == self._generation:
            self._store.set_search_suggestions(suggestions)
        else:
            log.debug("search.stale_response_dropped", query=query)

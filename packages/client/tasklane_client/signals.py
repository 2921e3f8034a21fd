"""
In-process signal bus.

Replaces module-level listener lists: every subscription is handed back as a
`Subscription` whose `unsubscribe()` removes exactly that handler. The bus is
owned by `ClientSession`, so its lifetime is the session's lifetime.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

import structlog

log = structlog.get_logger()

Handler = Callable[..., Any]

# Topics published by the client itself
STATE_CHANGED = "state.changed"
OPEN_INVITE_MEMBERS = "ui.open_invite_members"


class Subscription:
    def __init__(self, bus: "EventBus", topic: str, handler: Handler):
        self._bus = bus
        self.topic = topic
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False


class EventBus:
    """Synchronous publish/subscribe by topic name."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        sub = Subscription(self, topic, handler)
        self._subscriptions[topic].append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscriptions.get(sub.topic, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subscriptions.pop(sub.topic, None)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    def publish(self, topic: str, *args: Any, **kwargs: Any) -> int:
        """Call every handler of `topic` in subscription order. Returns how many ran.

        A failing handler is logged and does not stop the others.
        """
        delivered = 0
        for sub in list(self._subscriptions.get(topic, ())):
            try:
                sub.handler(*args, **kwargs)
                delivered += 1
            except Exception:
                log.exception("signals.handler_failed", topic=topic)
        return delivered

    def clear(self) -> None:
        for subs in self._subscriptions.values():
            for sub in subs:
                sub.active = False
        self._subscriptions.clear()

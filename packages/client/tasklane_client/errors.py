"""Client-side errors."""

from __future__ import annotations


class ApiError(Exception):
    """A non-2xx REST response, parsed from the `{error, message}` envelope."""

    def __init__(self, status: int, kind: str, message: str):
        self.status = status
        self.kind = kind
        self.message = message
        super().__init__(f"{status} {kind}: {message}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


class RealtimeAuthError(Exception):
    """The realtime handshake was refused; the session token must be renewed."""

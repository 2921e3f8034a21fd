"""
Transactional email through SendGrid dynamic templates.

Every send either succeeds or raises `MailerError`; callers that send inside
a transaction let the error abort it.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import httpx
import structlog

from app.core.config import Settings, get_settings

log = structlog.get_logger()

REQUEST_TIMEOUT_SECONDS = 10.0


class MailerError(Exception):
    pass


class Mailer:
    """Thin SendGrid v3 `mail/send` client."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._client = client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _link(self, path: str, token: str) -> str:
        return f"{self._settings.frontend_base_url.rstrip('/')}/{path}?token={token}"

    async def send_template(self, to: str, template_id: str, data: dict[str, Any]) -> None:
        if not self._settings.sendgrid_api_key:
            # Local development without credentials: log instead of sending.
            log.warning("mailer.disabled", to=to, template_id=template_id, data=data)
            return
        if not template_id:
            raise MailerError("SendGrid template id is not configured")

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS))

        body = {
            "personalizations": [{"to": [{"email": to}], "dynamic_template_data": data}],
            "from": {"email": self._settings.sendgrid_from_email},
            "template_id": template_id,
        }
        headers = {"Authorization": f"Bearer {self._settings.sendgrid_api_key}"}
        try:
            resp = await self._client.post(self._settings.sendgrid_api_url, json=body, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.error("mailer.rejected", status=exc.response.status_code, template_id=template_id)
            raise MailerError(f"SendGrid rejected the message ({exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            log.error("mailer.unreachable", error=str(exc))
            raise MailerError("SendGrid is unreachable") from exc

        log.info("mailer.sent", template_id=template_id)

    async def send_verification_email(self, email: str, token: str) -> None:
        await self.send_template(
            email,
            self._settings.sendgrid_verification_template_id,
            {"verification_link": self._link("verify-email", token), "token": token},
        )

    async def send_password_reset_email(self, email: str, token: str) -> None:
        await self.send_template(
            email,
            self._settings.sendgrid_reset_template_id,
            {"reset_link": self._link("reset-password", token), "token": token},
        )

    async def send_workspace_invite_email(self, email: str, token: str) -> None:
        await self.send_template(
            email,
            self._settings.sendgrid_workspace_invite_template_id,
            {"invite_link": self._link("accept-invite", token), "token": token},
        )

    async def send_email_change_email(self, new_email: str, token: str) -> None:
        await self.send_template(
            new_email,
            self._settings.sendgrid_email_change_template_id,
            {"confirm_link": self._link("confirm-email-change", token), "token": token},
        )


@lru_cache
def get_mailer() -> Mailer:
    """FastAPI dependency (overridable in tests)."""
    return Mailer(get_settings())

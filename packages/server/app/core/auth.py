"""
Authentication for Tasklane.

Supports:
- Password hashing (bcrypt)
- Stateless JWT session tokens shared by REST and the realtime handshake
- Request-scoped current-user dependencies

Tokens are never persisted or revoked server-side: validity is a function of
signature and expiry only.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import InvalidToken, Unauthorized
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# Session tokens (JWT)
# ---------------------------------------------------------------------------

def issue_token(
    subject_id: uuid.UUID | str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token for a subject (user id)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(days=settings.token_expire_days))
    payload = {
        "sub": str(subject_id),
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> str:
    """Return the subject id of a valid token.

    Raises InvalidToken on a bad signature, a passed expiry or malformed input.
    """
    if not token or not isinstance(token, str):
        raise InvalidToken()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as exc:
        raise InvalidToken() from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidToken()
    return subject


def parse_bearer(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` value."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


# ---------------------------------------------------------------------------
# Request dependencies
# ---------------------------------------------------------------------------

async def get_current_user_id(request: Request) -> uuid.UUID:
    """Subject attached by BearerAuthMiddleware."""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise Unauthorized("No token provided")
    try:
        return uuid.UUID(user_id)
    except ValueError:
        raise InvalidToken()


async def get_current_user(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Load the authenticated user; a token for a missing user is rejected."""
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        log.warning("auth.unknown_subject", user_id=str(user_id))
        raise Unauthorized("User not found")
    return user

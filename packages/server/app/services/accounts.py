"""
Account service: sign-up, log-in, password reset, email verification and
email change.

Operations that mail a one-time token commit only after the mail went out;
a failed send rolls the whole operation back.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, issue_token, verify_password
from app.core.config import get_settings
from app.core.errors import BadRequest, Conflict, InternalError, NotFound, Unauthorized
from app.core.mailer import Mailer, MailerError
from app.models.one_time_token import EmailChangeRequest, EmailVerificationToken, PasswordResetToken
from app.models.user import User
from tasklane_shared.schemas.common import EmailChangeStatus
from tasklane_shared.schemas.users import (
    EmailChangeCreateRequest,
    EmailChangeCreateResponse,
    LogInRequest,
    LogInResponse,
    ResetPasswordRequest,
    SignUpRequest,
    SignUpResponse,
    UserResponse,
)

log = structlog.get_logger()
settings = get_settings()

MIN_PASSWORD_LENGTH = 8
INVALID_TOKEN_MESSAGE = "Invalid or expired token"

TokenModel = TypeVar("TokenModel", EmailVerificationToken, PasswordResetToken)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        avatar_url=user.avatar_url,
        notify_in_app=user.notify_in_app,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _new_token() -> str:
    return str(uuid.uuid4())


def _token_expiry(now: datetime) -> datetime:
    return now + timedelta(hours=settings.one_time_token_hours)


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


async def _get_user_by_email(email: str, session: AsyncSession) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def _claim_token(model: type[TokenModel], token: Optional[str], session: AsyncSession) -> TokenModel:
    """Load an unused, unexpired one-time token or raise NotFound."""
    if not token:
        raise BadRequest("token required")
    now = datetime.now(timezone.utc)
    result = await session.execute(
        select(model).where(
            model.token == token,
            model.used_at.is_(None),
            model.expires_at >= now,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFound(INVALID_TOKEN_MESSAGE)
    row.used_at = now
    session.add(row)
    return row


# ---------------------------------------------------------------------------
# Sign-up / log-in
# ---------------------------------------------------------------------------

async def sign_up(req: SignUpRequest, session: AsyncSession, mailer: Mailer) -> SignUpResponse:
    """Create a user and a verification token, then mail the token."""
    if not req.name or not req.email or not req.password:
        raise BadRequest("name,email,password required")
    _check_password(req.password)

    if await _get_user_by_email(req.email, session):
        raise Conflict("Email already registered")

    now = datetime.now(timezone.utc)
    user = User(
        name=req.name,
        email=req.email,
        password_hash=hash_password(req.password),
        created_at=now,
        updated_at=now,
    )
    verification = EmailVerificationToken(
        user_id=user.id,
        token=_new_token(),
        expires_at=_token_expiry(now),
        created_at=now,
    )
    session.add(user)
    session.add(verification)

    try:
        await session.flush()
        await mailer.send_verification_email(user.email, verification.token)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Email already registered")
    except MailerError as exc:
        await session.rollback()
        log.error("user.sign_up_failed", email=req.email, error=str(exc))
        raise InternalError("Failed to send verification email") from exc

    log.info("user.registered", user_id=str(user.id))
    return SignUpResponse(user=user_to_response(user), verification_expires_at=verification.expires_at)


async def log_in(req: LogInRequest, session: AsyncSession) -> LogInResponse:
    if not req.email or not req.password:
        raise BadRequest("email,password required")

    user = await _get_user_by_email(req.email, session)
    if user is None or not verify_password(req.password, user.password_hash):
        log.warning("auth.login_failure", email=req.email)
        raise Unauthorized("Invalid credentials")

    log.info("auth.login_success", user_id=str(user.id))
    return LogInResponse(token=issue_token(user.id), user=user_to_response(user))


# ---------------------------------------------------------------------------
# Password reset / email verification
# ---------------------------------------------------------------------------

async def forgot_password(email: Optional[str], session: AsyncSession, mailer: Mailer) -> None:
    """Mail a reset token when the address belongs to a user. Silent otherwise."""
    if not email:
        raise BadRequest("email required")

    user = await _get_user_by_email(email, session)
    if user is None:
        log.info("auth.reset_requested_unknown")
        return

    now = datetime.now(timezone.utc)
    reset = PasswordResetToken(user_id=user.id, token=_new_token(), expires_at=_token_expiry(now), created_at=now)
    session.add(reset)
    try:
        await session.flush()
        await mailer.send_password_reset_email(user.email, reset.token)
        await session.commit()
    except MailerError as exc:
        await session.rollback()
        raise InternalError("Failed to send reset email") from exc

    log.info("auth.reset_requested", user_id=str(user.id))


async def reset_password(req: ResetPasswordRequest, session: AsyncSession) -> None:
    if not req.token or not req.new_password:
        raise BadRequest("token,new_password required")
    _check_password(req.new_password)

    reset = await _claim_token(PasswordResetToken, req.token, session)
    result = await session.execute(select(User).where(User.id == reset.user_id))
    user = result.scalar_one()
    user.password_hash = hash_password(req.new_password)
    user.updated_at = datetime.now(timezone.utc)
    session.add(user)
    await session.commit()
    log.info("auth.password_reset", user_id=str(user.id))


async def verify_email(token: Optional[str], session: AsyncSession) -> None:
    verification = await _claim_token(EmailVerificationToken, token, session)
    await session.commit()
    log.info("user.email_verified", user_id=str(verification.user_id))


# ---------------------------------------------------------------------------
# Email change
# ---------------------------------------------------------------------------

async def request_email_change(
    user: User,
    req: EmailChangeCreateRequest,
    session: AsyncSession,
    mailer: Mailer,
) -> EmailChangeCreateResponse:
    if not req.new_email:
        raise BadRequest("new_email required")
    if await _get_user_by_email(req.new_email, session):
        raise Conflict("Email already in use")

    now = datetime.now(timezone.utc)
    change = EmailChangeRequest(
        user_id=user.id,
        new_email=req.new_email,
        token=_new_token(),
        status=EmailChangeStatus.PENDING.value,
        expires_at=_token_expiry(now),
        created_at=now,
    )
    session.add(change)
    try:
        await session.flush()
        await mailer.send_email_change_email(change.new_email, change.token)
        await session.commit()
    except MailerError as exc:
        await session.rollback()
        log.error("user.email_change_failed", user_id=str(user.id), error=str(exc))
        raise InternalError("Failed to send email-change confirmation") from exc

    log.info("user.email_change_requested", user_id=str(user.id), request_id=str(change.id))
    return EmailChangeCreateResponse(request_id=change.id, expires_at=change.expires_at)


async def confirm_email_change(token: Optional[str], session: AsyncSession) -> UserResponse:
    if not token:
        raise BadRequest("token required")

    now = datetime.now(timezone.utc)
    result = await session.execute(
        select(EmailChangeRequest).where(
            EmailChangeRequest.token == token,
            EmailChangeRequest.status == EmailChangeStatus.PENDING.value,
            EmailChangeRequest.expires_at >= now,
        )
    )
    change = result.scalar_one_or_none()
    if change is None:
        raise NotFound(INVALID_TOKEN_MESSAGE)

    taken = await _get_user_by_email(change.new_email, session)
    if taken is not None and taken.id != change.user_id:
        raise Conflict("Email already in use")

    result = await session.execute(select(User).where(User.id == change.user_id))
    user = result.scalar_one()
    user.email = change.new_email
    user.updated_at = now
    change.status = EmailChangeStatus.CONFIRMED.value
    change.confirmed_at = now
    session.add(user)
    session.add(change)
    await session.commit()

    log.info("user.email_changed", user_id=str(user.id))
    return user_to_response(user)

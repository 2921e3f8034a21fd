"""
Authentication endpoints.

POST /api/auth/sign_up          Register and mail a verification link
POST /api/auth/log_in           Exchange credentials for a session token
POST /api/auth/forgot_password  Mail a password reset link
POST /api/auth/reset_password   Set a new password with a reset token
POST /api/auth/verify_email     Consume a verification token
POST /api/auth/invite_accept    Join a workspace with an invite token (authenticated)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.events import EventQueue, get_event_queue
from app.core.mailer import Mailer, get_mailer
from app.models.user import User
from app.services import accounts as account_service
from app.services import workspaces as workspace_service
from tasklane_shared.schemas.common import MessageResponse, TokenBody
from tasklane_shared.schemas.users import (
    ForgotPasswordRequest,
    LogInRequest,
    LogInResponse,
    ResetPasswordRequest,
    SignUpRequest,
    SignUpResponse,
)
from tasklane_shared.schemas.workspaces import InviteAcceptResponse

router = APIRouter()


@router.post("/sign_up", response_model=SignUpResponse, status_code=201)
async def sign_up(
    body: SignUpRequest,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    return await account_service.sign_up(body, session, mailer)


@router.post("/log_in", response_model=LogInResponse)
async def log_in(
    body: LogInRequest,
    session: AsyncSession = Depends(get_session),
):
    return await account_service.log_in(body, session)


@router.post("/forgot_password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    """Same answer whether or not the address is registered."""
    await account_service.forgot_password(body.email, session, mailer)
    return MessageResponse(message="If that email exists, a reset link was sent")


@router.post("/reset_password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    session: AsyncSession = Depends(get_session),
):
    await account_service.reset_password(body, session)
    return MessageResponse(message="Password reset successful")


@router.post("/verify_email", response_model=MessageResponse)
async def verify_email(
    body: TokenBody,
    session: AsyncSession = Depends(get_session),
):
    await account_service.verify_email(body.token, session)
    return MessageResponse(message="Email verified")


@router.post("/invite_accept", response_model=InviteAcceptResponse)
async def invite_accept(
    body: TokenBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    queue: EventQueue = Depends(get_event_queue),
):
    return await workspace_service.accept_invite(user, body.token, session, queue)

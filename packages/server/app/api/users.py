"""
Current-user endpoints and the email change flow.

GET  /api/users/me
POST /api/email_change_requests           Start an email change (authenticated)
POST /api/email_change_requests/confirm   Confirm with the mailed token
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.mailer import Mailer, get_mailer
from app.models.user import User
from app.services import accounts as account_service
from tasklane_shared.schemas.common import TokenBody
from tasklane_shared.schemas.users import (
    EmailChangeCreateRequest,
    EmailChangeCreateResponse,
    UserResponse,
)

router = APIRouter()
email_change_router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return account_service.user_to_response(user)


@email_change_router.post("", response_model=EmailChangeCreateResponse, status_code=201)
async def request_email_change(
    body: EmailChangeCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    return await account_service.request_email_change(user, body, session, mailer)


@email_change_router.post("/confirm", response_model=UserResponse)
async def confirm_email_change(
    body: TokenBody,
    session: AsyncSession = Depends(get_session),
):
    return await account_service.confirm_email_change(body.token, session)

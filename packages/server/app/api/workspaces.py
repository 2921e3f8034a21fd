"""
Workspace endpoints.

GET  /api/workspaces                  Workspaces of the caller, with role
POST /api/workspaces                  Create a workspace (caller becomes admin)
GET  /api/workspaces/{id}/members     Members of a workspace
POST /api/workspaces/{id}/invites     Invite by email (admin only)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.database import get_session
from app.core.events import EventQueue, get_event_queue
from app.core.mailer import Mailer, get_mailer
from app.services import workspaces as workspace_service
from tasklane_shared.schemas.workspaces import (
    InviteCreateRequest,
    InviteResponse,
    MemberResponse,
    WorkspaceCreateRequest,
    WorkspaceResponse,
)

router = APIRouter()


@router.get("", response_model=list[WorkspaceResponse])
async def list_workspaces(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_workspaces(user_id, session)


@router.post("", response_model=WorkspaceResponse, status_code=201)
async def create_workspace(
    body: WorkspaceCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    queue: EventQueue = Depends(get_event_queue),
):
    return await workspace_service.create_workspace(user_id, body, session, queue)


@router.get("/{workspace_id}/members", response_model=list[MemberResponse])
async def list_members(
    workspace_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_members(workspace_id, user_id, session)


@router.post("/{workspace_id}/invites", response_model=InviteResponse, status_code=201)
async def create_invite(
    workspace_id: uuid.UUID,
    body: InviteCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    mailer: Mailer = Depends(get_mailer),
):
    return await workspace_service.create_invite(workspace_id, user_id, body, session, mailer)

"""
Workspace service: workspaces, memberships and invites.

Membership changes are committed first, then announced: the member's live
connections are moved into the workspace room before the event for that
room is queued, so the new member receives it too.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import BadRequest, Conflict, Forbidden, InternalError, NotFound
from app.core.events import EventQueue, room_for_user, room_for_workspace
from app.core.mailer import Mailer, MailerError
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceInvite, WorkspaceMember
from app.services import notifications as notification_service
from tasklane_shared.schemas.common import InviteStatus, Role
from tasklane_shared.schemas.events import EntityEvent, WorkspaceMemberAdded
from tasklane_shared.schemas.workspaces import (
    InviteAcceptResponse,
    InviteCreateRequest,
    InviteResponse,
    MemberResponse,
    MemberUser,
    WorkspaceCreateRequest,
    WorkspaceResponse,
)

log = structlog.get_logger()


def _workspace_response(workspace: Workspace, role: str) -> WorkspaceResponse:
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        role=Role(role),
        created_at=workspace.created_at,
        updated_at=workspace.updated_at,
    )


def _member_response(member: WorkspaceMember, user: User) -> MemberResponse:
    return MemberResponse(
        id=member.id,
        user=MemberUser(id=user.id, name=user.name, email=user.email, avatar_url=user.avatar_url),
        role=Role(member.role),
        joined_at=member.joined_at,
    )


async def get_membership(
    workspace_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> WorkspaceMember:
    """Membership of a user in a workspace. Non-members see the workspace as missing."""
    result = await session.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise NotFound("Workspace not found")
    return member


async def list_workspaces(user_id: uuid.UUID, session: AsyncSession) -> list[WorkspaceResponse]:
    result = await session.execute(
        select(Workspace, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user_id)
        .order_by(Workspace.name)
    )
    return [_workspace_response(ws, role) for ws, role in result.all()]


async def list_members(
    workspace_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[MemberResponse]:
    await get_membership(workspace_id, user_id, session)
    result = await session.execute(
        select(WorkspaceMember, User)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.joined_at)
    )
    return [_member_response(member, user) for member, user in result.all()]


async def create_workspace(
    user_id: uuid.UUID,
    req: WorkspaceCreateRequest,
    session: AsyncSession,
    queue: EventQueue,
) -> WorkspaceResponse:
    """Create a workspace with the caller as its admin."""
    workspace = Workspace(name=req.name)
    session.add(workspace)
    await session.flush()

    session.add(WorkspaceMember(workspace_id=workspace.id, user_id=user_id, role=Role.ADMIN.value))
    await session.commit()

    response = _workspace_response(workspace, Role.ADMIN.value)
    queue.join_room(user_id, room_for_workspace(workspace.id))
    queue.publish(
        EntityEvent(entity="workspace", action="created", data=response.model_dump(mode="json")),
        room_for_user(user_id),
    )
    log.info("workspace.created", workspace_id=str(workspace.id), user_id=str(user_id))
    return response


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------

async def create_invite(
    workspace_id: uuid.UUID,
    inviter_id: uuid.UUID,
    req: InviteCreateRequest,
    session: AsyncSession,
    mailer: Mailer,
) -> InviteResponse:
    member = await get_membership(workspace_id, inviter_id, session)
    if member.role != Role.ADMIN.value:
        raise Forbidden("Only workspace admins can invite members")

    result = await session.execute(
        select(WorkspaceMember)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(WorkspaceMember.workspace_id == workspace_id, User.email == req.email)
    )
    if result.scalar_one_or_none():
        raise Conflict("User is already a member of this workspace")

    invite = WorkspaceInvite(
        workspace_id=workspace_id,
        email=req.email,
        token=str(uuid.uuid4()),
        status=InviteStatus.PENDING.value,
        invited_by=inviter_id,
    )
    session.add(invite)
    try:
        await session.flush()
        await mailer.send_workspace_invite_email(invite.email, invite.token)
        await session.commit()
    except MailerError as exc:
        await session.rollback()
        raise InternalError("Failed to send workspace invite email") from exc

    log.info("workspace.invite_sent", workspace_id=str(workspace_id), invite_id=str(invite.id))
    return InviteResponse(
        id=invite.id,
        workspace_id=invite.workspace_id,
        email=invite.email,
        status=InviteStatus(invite.status),
        created_at=invite.created_at,
    )


async def accept_invite(
    user: User,
    token: Optional[str],
    session: AsyncSession,
    queue: EventQueue,
) -> InviteAcceptResponse:
    if not token:
        raise BadRequest("token required")

    result = await session.execute(
        select(WorkspaceInvite).where(
            WorkspaceInvite.token == token,
            WorkspaceInvite.status == InviteStatus.PENDING.value,
        )
    )
    invite = result.scalar_one_or_none()
    if invite is None:
        raise BadRequest("Invalid or already used invite")

    result = await session.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == invite.workspace_id,
            WorkspaceMember.user_id == user.id,
        )
    )
    if result.scalar_one_or_none():
        raise Conflict("Already a member of this workspace")

    workspace = await session.get(Workspace, invite.workspace_id)
    if workspace is None:
        raise BadRequest("Invalid or already used invite")

    now = datetime.now(timezone.utc)
    invite.status = InviteStatus.ACCEPTED.value
    invite.responded_at = now
    member = WorkspaceMember(
        workspace_id=invite.workspace_id,
        user_id=user.id,
        role=Role.MEMBER.value,
        joined_at=now,
    )
    session.add(invite)
    session.add(member)
    try:
        await session.flush()
    except IntegrityError:
        # Lost a race with a concurrent accept for the same user.
        await session.rollback()
        raise Conflict("Already a member of this workspace")

    notification = None
    if invite.invited_by is not None and invite.invited_by != user.id:
        notification = await notification_service.create_notification(
            session,
            recipient_id=invite.invited_by,
            notification_type="invite_accepted",
            entity_type="workspace",
            entity_id=workspace.id,
            actor_id=user.id,
            message=f"{user.name} joined {workspace.name}",
        )
    await session.commit()

    workspace_room = room_for_workspace(invite.workspace_id)
    queue.join_room(user.id, workspace_room)
    queue.publish(
        WorkspaceMemberAdded(workspace_id=invite.workspace_id, user=_member_response(member, user)),
        workspace_room,
    )
    if notification is not None:
        notification_service.publish_created(queue, notification)

    log.info("workspace.invite_accepted", workspace_id=str(invite.workspace_id), user_id=str(user.id))
    return InviteAcceptResponse(workspace_id=invite.workspace_id, joined_at=member.joined_at)

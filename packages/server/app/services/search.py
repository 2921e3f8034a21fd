"""
Typeahead search over projects and tasks in the caller's workspaces.
"""

from __future__ import annotations

import uuid

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.project import Project
from app.models.task import Task
from app.models.workspace import WorkspaceMember
from tasklane_shared.schemas.search import ProjectSuggestion, SearchSuggestions, TaskSuggestion

SUGGESTION_LIMIT = 10


async def search(user_id: uuid.UUID, query: str, session: AsyncSession) -> SearchSuggestions:
    """Case-insensitive substring match on project names and task titles."""
    needle = (query or "").strip().lower()
    if not needle:
        return SearchSuggestions()

    workspace_ids = select(WorkspaceMember.workspace_id).where(WorkspaceMember.user_id == user_id)

    projects = await session.execute(
        select(Project)
        .where(
            Project.workspace_id.in_(workspace_ids),
            func.lower(Project.name).contains(needle, autoescape=True),
        )
        .order_by(Project.name)
        .limit(SUGGESTION_LIMIT)
    )
    tasks = await session.execute(
        select(Task)
        .join(Project, Project.id == Task.project_id)
        .where(
            Project.workspace_id.in_(workspace_ids),
            func.lower(Task.title).contains(needle, autoescape=True),
        )
        .order_by(Task.title)
        .limit(SUGGESTION_LIMIT)
    )

    return SearchSuggestions(
        projects=[ProjectSuggestion(id=p.id, name=p.name, color=p.color) for p in projects.scalars().all()],
        tasks=[TaskSuggestion(id=t.id, title=t.title, project_id=t.project_id) for t in tasks.scalars().all()],
    )

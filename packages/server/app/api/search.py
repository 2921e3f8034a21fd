"""
GET /api/search?query=  Project and task suggestions for the top-bar search.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user_id
from app.core.database import get_session
from app.services import search as search_service
from tasklane_shared.schemas.search import SearchSuggestions

router = APIRouter()


@router.get("", response_model=SearchSuggestions)
async def search(
    query: str = Query("", max_length=200),
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await search_service.search(user_id, query, session)

"""Search suggestion schemas (top-bar typeahead)."""

from __future__ import annotations

import uuid
from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectSuggestion(BaseModel):
    id: uuid.UUID
    name: str
    color: Optional[str] = None


class TaskSuggestion(BaseModel):
    id: uuid.UUID
    title: str
    project_id: uuid.UUID


class SearchSuggestions(BaseModel):
    projects: List[ProjectSuggestion] = Field(default_factory=list)
    tasks: List[TaskSuggestion] = Field(default_factory=list)

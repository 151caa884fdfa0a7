"""Pydantic schemas for the user roster."""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ccstats.core.config import settings
from ccstats.schemas.usage import CamelModel


class UserRead(CamelModel):
    """A user together with their tag names."""

    id: int = Field(..., description="User identifier")
    username: str = Field(..., description="Unique username")
    tags: List[str] = Field(default_factory=list, description="Tag names sorted by name")
    created_at: datetime
    updated_at: datetime


class UserListFilters(CamelModel):
    """Roster listing options."""

    search: Optional[str] = Field(default=None, description="Substring matched against usernames")
    tags: List[str] = Field(default_factory=list, description="Users must have all of these tags")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default_factory=lambda: settings.pagination.default_limit, ge=1)
    sort_by: Literal["username", "createdAt", "updatedAt"] = "createdAt"
    order: Literal["asc", "desc"] = "desc"

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        return min(value, settings.pagination.max_limit)

    @field_validator("search")
    @classmethod
    def _blank_search_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _single_tag_as_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AppliedFilters(CamelModel):
    search: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class UserListResponse(CamelModel):
    users: List[UserRead] = Field(default_factory=list)
    pagination: Pagination
    filters: AppliedFilters


class AvailableFilters(CamelModel):
    """Values a UI can offer as stats filters."""

    users: List[str] = Field(default_factory=list)
    users_with_tags: List[UserRead] = Field(default_factory=list)
    models: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

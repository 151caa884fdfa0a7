"""Paginated, searchable, tag-filtered user listing."""
from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.core.exceptions import StoreError, ValidationError
from ccstats.repositories.tag_repo import TagRepo
from ccstats.repositories.user_repo import UserRepo
from ccstats.schemas.user import (
    AppliedFilters,
    Pagination,
    UserListFilters,
    UserListResponse,
    UserRead,
)
from ccstats.services.tag_resolver import TagResolver


logger = logging.getLogger(__name__)


def parse_filters(
    filters: Optional[Union[UserListFilters, Mapping[str, Any]]]
) -> UserListFilters:
    if isinstance(filters, UserListFilters):
        return filters
    try:
        return UserListFilters.model_validate(dict(filters or {}))
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid user list filters",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


class RosterQueryEngine:
    """Lists users one page at a time, loading tags only for that page."""

    def __init__(self, session: AsyncSession, tags: Optional[TagResolver] = None) -> None:
        self.session = session
        self.users = UserRepo(session)
        self.tag_repo = TagRepo(session)
        self.tags = tags or TagResolver(session)

    async def list(
        self, filters: Optional[Union[UserListFilters, Mapping[str, Any]]] = None
    ) -> UserListResponse:
        options = parse_filters(filters)
        applied = AppliedFilters(search=options.search, tags=list(options.tags))

        try:
            user_ids = await self.tags.resolve_tag_filter(options.tags)
            if user_ids is not None and not user_ids:
                return UserListResponse(
                    users=[],
                    pagination=Pagination(
                        page=options.page, limit=options.limit, total=0, total_pages=0
                    ),
                    filters=applied,
                )

            total = await self.users.count_matching(options.search, user_ids)
            page_users = await self.users.page_matching(
                options.search,
                user_ids,
                options.sort_by,
                options.order,
                offset=(options.page - 1) * options.limit,
                limit=options.limit,
            )
            tags_by_user = await self.tag_repo.names_for_users([u.id for u in page_users])
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list users") from exc

        logger.debug(
            f"Roster page {options.page} returned {len(page_users)} of {total} users"
        )
        return UserListResponse(
            users=[
                UserRead(
                    id=user.id,
                    username=user.username,
                    tags=tags_by_user.get(user.id, []),
                    created_at=user.created_at,
                    updated_at=user.updated_at,
                )
                for user in page_users
            ],
            pagination=Pagination(
                page=options.page,
                limit=options.limit,
                total=total,
                total_pages=math.ceil(total / options.limit),
            ),
            filters=applied,
        )

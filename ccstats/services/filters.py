"""Best-effort listing of the values a UI can filter stats by."""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.repositories.usage_repo import UsageRepo
from ccstats.repositories.user_repo import UserRepo
from ccstats.schemas.user import AvailableFilters, UserRead


logger = logging.getLogger(__name__)


class FilterCatalog:
    """Collects usernames, tagged users, models, and tags for filter pickers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserRepo(session)
        self.usage = UsageRepo(session)

    async def available_filters(self) -> AvailableFilters:
        """Return every filter value, or empty lists if the store fails."""

        try:
            users = await self.users.list_with_tags()
            models = await self.usage.distinct_models()
        except SQLAlchemyError:
            logger.exception("Failed to get filters")
            return AvailableFilters()

        users_with_tags = [
            UserRead(
                id=user.id,
                username=user.username,
                tags=[tag.name for tag in user.tags],
                created_at=user.created_at,
                updated_at=user.updated_at,
            )
            for user in users
        ]

        canonical: dict[str, str] = {}
        for user in users_with_tags:
            for tag in user.tags:
                canonical.setdefault(tag.lower(), tag)

        return AvailableFilters(
            users=[user.username for user in users_with_tags],
            users_with_tags=users_with_tags,
            models=[f"{provider}/{model}" for provider, model in models],
            tags=sorted(canonical.values()),
        )

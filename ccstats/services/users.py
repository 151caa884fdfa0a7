"""User creation, lookup, and removal."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.core.exceptions import ConflictError, NotFoundError, StoreError
from ccstats.core.validation import normalize_tag_names, validate_username
from ccstats.db.models.user import User
from ccstats.repositories.tag_repo import TagRepo
from ccstats.repositories.user_repo import UserRepo
from ccstats.schemas.user import UserRead


logger = logging.getLogger(__name__)


def _to_read(user: User, tags: Sequence[str]) -> UserRead:
    return UserRead(
        id=user.id,
        username=user.username,
        tags=list(tags),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserDirectory:
    """Maintains the set of users that may upload usage."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserRepo(session)
        self.tags = TagRepo(session)

    async def create_user(
        self, username: str, tags: Optional[Sequence[str]] = None
    ) -> UserRead:
        """Create a user, optionally with initial tags, in one transaction."""

        validate_username(username)
        tag_names = normalize_tag_names(tags or [])
        try:
            if await self.users.get_by_username(username) is not None:
                raise ConflictError(
                    f"User already exists: {username}", details={"username": username}
                )
            user = await self.users.create(username)
            if tag_names:
                await self.tags.replace_for_user(user.id, tag_names)
            created = _to_read(user, sorted(tag_names))
            await self.session.commit()
        except ConflictError:
            await self.session.rollback()
            raise
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError(
                f"User already exists: {username}", details={"username": username}
            ) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to create user {username}") from exc

        logger.info(f"Created user {username} with {len(tag_names)} tags")
        return created

    async def get_user(self, username: str) -> UserRead:
        try:
            user = await self.users.get_with_tags(username)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load user {username}") from exc
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        return _to_read(user, [tag.name for tag in user.tags])

    async def list_users(self) -> List[UserRead]:
        """Every user with tags, unpaginated, in creation order."""

        try:
            users = await self.users.list_with_tags()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list users") from exc
        return [_to_read(user, [tag.name for tag in user.tags]) for user in users]

    async def delete_user(self, username: str) -> None:
        """Delete a user; tags, usage days, and breakdowns go with it."""

        try:
            user = await self.users.get_by_username(username)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to look up user {username}") from exc
        if user is None:
            raise NotFoundError(f"User not found: {username}")
        try:
            await self.users.delete(user)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to delete user {username}") from exc
        logger.info(f"Deleted user {username}")

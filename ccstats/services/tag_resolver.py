"""Tag CRUD and "has all tags" user resolution."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.core.exceptions import ConflictError, StoreError
from ccstats.core.validation import normalize_tag_names
from ccstats.repositories.tag_repo import TagRepo


logger = logging.getLogger(__name__)


class TagResolver:
    """Manages user tags and resolves tag filters with AND semantics."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = TagRepo(session)

    async def set_user_tags(self, user_id: int, names: Sequence[str]) -> List[str]:
        """Replace every tag of ``user_id`` with ``names``.

        All names are validated before anything is written; an empty list
        clears the user's tags. Returns the names actually stored.
        """

        unique = normalize_tag_names(names)
        try:
            await self.repo.replace_for_user(user_id, unique)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError(
                f"Could not store tags for user {user_id}",
                details={"user_id": user_id, "tags": unique},
            ) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to set tags for user {user_id}") from exc

        logger.info(f"Set {len(unique)} tags for user {user_id}")
        return unique

    async def get_user_tags(self, user_id: int) -> List[str]:
        try:
            return await self.repo.names_for_user(user_id)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load tags for user {user_id}") from exc

    async def remove_tag(self, user_id: int, name: str) -> None:
        """Remove ``name`` from the user, ignoring case; absent tags are fine."""

        try:
            removed = await self.repo.delete_by_name(user_id, name)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(f"Failed to remove tag {name!r} from user {user_id}") from exc
        if removed:
            logger.info(f"Removed tag {name!r} from user {user_id}")

    async def resolve_users_with_all_tags(self, names: Iterable[str]) -> List[int]:
        """Return ids of users whose tags include every requested name.

        Matching ignores case. An empty request yields an empty list; use
        :meth:`resolve_tag_filter` when "no filter" must be told apart from
        "nobody matched". A blank name matches nobody, since no stored tag
        can be blank.
        """

        lowered = {(name or "").strip().lower() for name in names}
        if not lowered or "" in lowered:
            return []
        try:
            return await self.repo.user_ids_with_all(sorted(lowered))
        except SQLAlchemyError as exc:
            raise StoreError("Failed to resolve users by tags") from exc

    async def resolve_tag_filter(
        self, names: Optional[Iterable[str]]
    ) -> Optional[List[int]]:
        """``None`` when no tag filter was requested, else the matching ids."""

        requested = list(names or [])
        if not requested:
            return None
        return await self.resolve_users_with_all_tags(requested)

    async def list_all_tag_names(self) -> List[str]:
        try:
            return await self.repo.distinct_names()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list tag names") from exc

    async def get_users_by_tag(self, name: str) -> List[Tuple[int, str]]:
        """Return ``(id, username)`` of users holding ``name``, by username."""

        try:
            return await self.repo.users_with_tag(name.strip())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list users tagged {name!r}") from exc

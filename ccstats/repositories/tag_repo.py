"""Repository helpers for user tags."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from sqlalchemy import delete, distinct, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.db.models.tag import Tag
from ccstats.db.models.user import User


class TagRepo:
    """Data-access helpers for :class:`Tag`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def names_for_user(self, user_id: int) -> List[str]:
        result = await self.session.execute(
            select(Tag.name).where(Tag.user_id == user_id).order_by(Tag.name)
        )
        return list(result.scalars().all())

    async def names_for_users(self, user_ids: Sequence[int]) -> Dict[int, List[str]]:
        """Return tag names keyed by user id for only the given users."""

        if not user_ids:
            return {}
        result = await self.session.execute(
            select(Tag.user_id, Tag.name)
            .where(Tag.user_id.in_(list(user_ids)))
            .order_by(Tag.user_id, Tag.name)
        )
        grouped: Dict[int, List[str]] = defaultdict(list)
        for user_id, name in result.all():
            grouped[user_id].append(name)
        return dict(grouped)

    async def replace_for_user(self, user_id: int, names: Sequence[str]) -> None:
        await self.session.execute(delete(Tag).where(Tag.user_id == user_id))
        if names:
            await self.session.execute(
                insert(Tag), [{"user_id": user_id, "name": name} for name in names]
            )
        await self.session.flush()

    async def delete_by_name(self, user_id: int, name: str) -> int:
        """Delete a user's tag matching ``name`` regardless of case."""

        result = await self.session.execute(
            delete(Tag).where(
                Tag.user_id == user_id,
                func.lower(Tag.name) == name.lower(),
            )
        )
        await self.session.flush()
        return int(result.rowcount or 0)

    async def user_ids_with_all(self, lowered_names: Sequence[str]) -> List[int]:
        """Return ids of users holding every name in ``lowered_names``."""

        wanted = set(lowered_names)
        lowered = func.lower(Tag.name)
        result = await self.session.execute(
            select(Tag.user_id)
            .where(lowered.in_(wanted))
            .group_by(Tag.user_id)
            .having(func.count(distinct(lowered)) == len(wanted))
            .order_by(Tag.user_id)
        )
        return list(result.scalars().all())

    async def distinct_names(self) -> List[str]:
        """One spelling per case-insensitive group, the lexicographically first."""

        lowered = func.lower(Tag.name)
        result = await self.session.execute(
            select(func.min(Tag.name)).group_by(lowered).order_by(lowered)
        )
        return list(result.scalars().all())

    async def users_with_tag(self, name: str) -> List[Tuple[int, str]]:
        result = await self.session.execute(
            select(User.id, User.username)
            .join(Tag, Tag.user_id == User.id)
            .where(func.lower(Tag.name) == name.lower())
            .order_by(User.username)
        )
        return [(row.id, row.username) for row in result.all()]

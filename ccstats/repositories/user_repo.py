"""Repository utilities for working with User records."""
from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy import ColumnElement, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ccstats.db.models.user import User

SORT_COLUMNS = {
    "username": User.username,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}


def roster_conditions(
    search: Optional[str], user_ids: Optional[Sequence[int]]
) -> List[ColumnElement[bool]]:
    """Build the WHERE clauses shared by the roster count and page queries."""

    conditions: List[ColumnElement[bool]] = []
    if search:
        conditions.append(User.username.icontains(search, autoescape=True))
    if user_ids is not None:
        conditions.append(User.id.in_(list(user_ids)))
    return conditions


class UserRepo:
    """Simple data-access helper for User entities."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def get_with_tags(self, username: str) -> Optional[User]:
        result = await self.session.execute(
            select(User)
            .options(selectinload(User.tags))
            .where(User.username == username)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_with_tags(self) -> List[User]:
        result = await self.session.execute(
            select(User)
            .options(selectinload(User.tags))
            .order_by(User.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def create(self, username: str) -> User:
        user = User(username=username)
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def delete(self, user: User) -> None:
        await self.session.delete(user)
        await self.session.flush()

    async def count_matching(
        self, search: Optional[str], user_ids: Optional[Sequence[int]]
    ) -> int:
        result = await self.session.execute(
            select(func.count(distinct(User.id))).where(
                *roster_conditions(search, user_ids)
            )
        )
        value = result.scalar_one()
        return int(value or 0)

    async def page_matching(
        self,
        search: Optional[str],
        user_ids: Optional[Sequence[int]],
        sort_by: str,
        order: str,
        offset: int,
        limit: int,
    ) -> List[User]:
        column = SORT_COLUMNS[sort_by]
        ordering = column.asc() if order == "asc" else column.desc()
        tiebreak = User.id.asc() if order == "asc" else User.id.desc()
        result = await self.session.execute(
            select(User)
            .where(*roster_conditions(search, user_ids))
            .order_by(ordering, tiebreak)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

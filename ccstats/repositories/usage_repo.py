"""Repository helpers for daily usage and model breakdowns."""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import BigInteger, Date, Integer, Numeric, bindparam, delete, insert, select, text
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.db.models.model_usage import ModelUsage
from ccstats.db.models.usage_daily import UsageDaily
from ccstats.db.models.user import User

_UPSERT_DAY = text(
    """
    INSERT INTO usage_daily (
        user_id, date, input_tokens, output_tokens,
        cache_creation_input_tokens, cache_read_input_tokens,
        total_tokens, total_cost
    )
    VALUES (:u, :d, :ti, :to, :cc, :cr, :tt, :cost)
    ON CONFLICT (user_id, date)
    DO UPDATE SET
      input_tokens = EXCLUDED.input_tokens,
      output_tokens = EXCLUDED.output_tokens,
      cache_creation_input_tokens = EXCLUDED.cache_creation_input_tokens,
      cache_read_input_tokens = EXCLUDED.cache_read_input_tokens,
      total_tokens = EXCLUDED.total_tokens,
      total_cost = EXCLUDED.total_cost,
      updated_at = CURRENT_TIMESTAMP
    RETURNING id
    """
).bindparams(
    bindparam("u", type_=Integer),
    bindparam("d", type_=Date),
    bindparam("ti", type_=BigInteger),
    bindparam("to", type_=BigInteger),
    bindparam("cc", type_=BigInteger),
    bindparam("cr", type_=BigInteger),
    bindparam("tt", type_=BigInteger),
    bindparam("cost", type_=Numeric(10, 4)),
)


class UsageRepo:
    """Provides write and lookup helpers for usage records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_day(
        self,
        user_id: int,
        day: date,
        *,
        input_tokens: int,
        output_tokens: int,
        cache_creation_tokens: int,
        cache_read_tokens: int,
        total_tokens: int,
        total_cost: Decimal,
    ) -> int:
        """Insert or overwrite the row for ``(user_id, day)`` and return its id."""

        result = await self.session.execute(
            _UPSERT_DAY,
            {
                "u": user_id,
                "d": day,
                "ti": input_tokens,
                "to": output_tokens,
                "cc": cache_creation_tokens,
                "cr": cache_read_tokens,
                "tt": total_tokens,
                "cost": total_cost,
            },
        )
        usage_id = result.scalar_one()
        await self.session.flush()
        return int(usage_id)

    async def replace_models(
        self, usage_daily_id: int, rows: Sequence[Mapping[str, Any]]
    ) -> None:
        """Swap the complete breakdown set of one day for ``rows``."""

        await self.session.execute(
            delete(ModelUsage).where(ModelUsage.usage_daily_id == usage_daily_id)
        )
        if rows:
            await self.session.execute(
                insert(ModelUsage),
                [{**row, "usage_daily_id": usage_daily_id} for row in rows],
            )
        await self.session.flush()

    async def get_day(self, user_id: int, day: date) -> Optional[UsageDaily]:
        result = await self.session.execute(
            select(UsageDaily).where(UsageDaily.user_id == user_id, UsageDaily.date == day)
        )
        return result.scalar_one_or_none()

    async def fetch_days(
        self,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        username: Optional[str] = None,
        user_ids: Optional[Sequence[int]] = None,
    ) -> List[Row]:
        """Return day rows joined to their username, newest first."""

        conditions = []
        if start is not None:
            conditions.append(UsageDaily.date >= start)
        if end is not None:
            conditions.append(UsageDaily.date <= end)
        if username:
            conditions.append(User.username == username)
        if user_ids is not None:
            conditions.append(User.id.in_(list(user_ids)))

        result = await self.session.execute(
            select(
                UsageDaily.id,
                UsageDaily.date,
                User.username,
                UsageDaily.total_cost,
                UsageDaily.total_tokens,
                UsageDaily.input_tokens,
                UsageDaily.output_tokens,
                UsageDaily.cache_creation_input_tokens,
                UsageDaily.cache_read_input_tokens,
            )
            .join(User, UsageDaily.user_id == User.id)
            .where(*conditions)
            .order_by(UsageDaily.date.desc(), User.username, UsageDaily.id)
        )
        return list(result.all())

    async def models_for_days(
        self, usage_daily_ids: Sequence[int]
    ) -> Dict[int, List[ModelUsage]]:
        if not usage_daily_ids:
            return {}
        result = await self.session.execute(
            select(ModelUsage)
            .where(ModelUsage.usage_daily_id.in_(list(usage_daily_ids)))
            .order_by(ModelUsage.usage_daily_id, ModelUsage.id)
        )
        grouped: Dict[int, List[ModelUsage]] = defaultdict(list)
        for model_usage in result.scalars().all():
            grouped[model_usage.usage_daily_id].append(model_usage)
        return dict(grouped)

    async def distinct_models(self) -> List[Tuple[str, str]]:
        result = await self.session.execute(
            select(ModelUsage.provider, ModelUsage.model)
            .group_by(ModelUsage.provider, ModelUsage.model)
            .order_by(ModelUsage.provider, ModelUsage.model)
        )
        return [(row.provider, row.model) for row in result.all()]

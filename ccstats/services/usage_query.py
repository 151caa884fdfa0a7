"""Range and unbounded usage queries with username, model, and tag filters."""
from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.core.exceptions import StoreError, ValidationError
from ccstats.db.models.model_usage import ModelUsage
from ccstats.repositories.usage_repo import UsageRepo
from ccstats.schemas.usage import DailyStats, ModelStats, StatsResponse, StatsSummary
from ccstats.services.tag_resolver import TagResolver


logger = logging.getLogger(__name__)

Period = Literal["custom", "all"]


def parse_model_filter(model: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split ``"<provider>/<modelName>"`` on its first slash.

    A filter missing the slash or either side of it raises
    ``ValidationError`` instead of being ignored. Everything after the first
    slash is the model name, so ``"a/b/c"`` means provider ``a`` and model
    ``b/c``.
    """

    if not model:
        return None
    provider, sep, name = model.partition("/")
    if not sep or not provider or not name:
        raise ValidationError(
            f"Invalid model filter {model!r}, expected '<provider>/<modelName>'",
            details={"model": model},
        )
    return provider, name


def _as_day(value: dt.date | dt.datetime) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _as_timestamp(value: dt.date | dt.datetime) -> str:
    if isinstance(value, dt.datetime):
        return value.isoformat()
    return dt.datetime.combine(value, dt.time.min, tzinfo=dt.timezone.utc).isoformat()


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _model_stats(model_usage: ModelUsage) -> ModelStats:
    return ModelStats(
        name=model_usage.model,
        provider=model_usage.provider,
        cost=float(model_usage.cost),
        input_tokens=model_usage.input_tokens,
        output_tokens=model_usage.output_tokens,
        cache_creation_input_tokens=model_usage.cache_creation_input_tokens,
        cache_read_input_tokens=model_usage.cache_read_input_tokens,
    )


def summarize(rows: Sequence[Tuple[DailyStats, Decimal]]) -> StatsSummary:
    """Aggregate surviving rows; costs are summed exactly, then converted."""

    return StatsSummary(
        total_cost=float(sum((cost for _, cost in rows), Decimal("0"))),
        total_tokens=sum(stat.total_tokens for stat, _ in rows),
        unique_users=len({stat.username for stat, _ in rows}),
        total_days=len({stat.date for stat, _ in rows}),
    )


class UsageQueryEngine:
    """Answers stats queries across users, days, models, and tags."""

    def __init__(self, session: AsyncSession, tags: Optional[TagResolver] = None) -> None:
        self.session = session
        self.usage = UsageRepo(session)
        self.tags = tags or TagResolver(session)

    async def query_range(
        self,
        start_date: dt.date | dt.datetime,
        end_date: dt.date | dt.datetime,
        username: Optional[str] = None,
        model: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> StatsResponse:
        """Stats for calendar days from ``start_date`` through ``end_date``."""

        start_day, end_day = _as_day(start_date), _as_day(end_date)
        logger.info(f"Querying stats from {start_day} to {end_day}")

        rows = await self._collect(
            username=username, model=model, tags=tags, start=start_day, end=end_day
        )
        return self._response(
            "custom", rows, _as_timestamp(start_date), _as_timestamp(end_date)
        )

    async def query_all(
        self,
        username: Optional[str] = None,
        model: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> StatsResponse:
        """Stats over every stored day."""

        logger.info("Querying all stats")
        rows = await self._collect(username=username, model=model, tags=tags)
        start = rows[-1][0].date.isoformat() if rows else _now()
        return self._response("all", rows, start, _now())

    @staticmethod
    def _response(
        period: Period,
        rows: List[Tuple[DailyStats, Decimal]],
        start: str,
        end: str,
    ) -> StatsResponse:
        return StatsResponse(
            period=period,
            start_date=start,
            end_date=end,
            stats=[stat for stat, _ in rows],
            summary=summarize(rows),
        )

    async def _collect(
        self,
        *,
        username: Optional[str],
        model: Optional[str],
        tags: Optional[Sequence[str]],
        start: Optional[dt.date] = None,
        end: Optional[dt.date] = None,
    ) -> List[Tuple[DailyStats, Decimal]]:
        model_filter = parse_model_filter(model)

        try:
            user_ids = await self.tags.resolve_tag_filter(tags)
            if user_ids is not None and not user_ids:
                logger.debug(f"No users carry all tags {list(tags or [])}")
                return []

            days = await self.usage.fetch_days(
                start=start, end=end, username=username, user_ids=user_ids
            )
            models_by_day = await self.usage.models_for_days([day.id for day in days])
        except SQLAlchemyError as exc:
            raise StoreError("Failed to query usage stats") from exc

        rows: List[Tuple[DailyStats, Decimal]] = []
        for day in days:
            models = models_by_day.get(day.id, [])
            if model_filter is not None:
                provider, name = model_filter
                models = [m for m in models if m.provider == provider and m.model == name]
                if not models:
                    continue
                cost = sum((m.cost for m in models), Decimal("0"))
                input_tokens = sum(m.input_tokens for m in models)
                output_tokens = sum(m.output_tokens for m in models)
                stat = DailyStats(
                    date=day.date,
                    username=day.username,
                    total_cost=float(cost),
                    total_tokens=input_tokens + output_tokens,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cache_creation_input_tokens=sum(
                        m.cache_creation_input_tokens for m in models
                    ),
                    cache_read_input_tokens=sum(m.cache_read_input_tokens for m in models),
                    models=[_model_stats(m) for m in models],
                )
            else:
                cost = Decimal(day.total_cost)
                stat = DailyStats(
                    date=day.date,
                    username=day.username,
                    total_cost=float(cost),
                    total_tokens=day.total_tokens,
                    input_tokens=day.input_tokens,
                    output_tokens=day.output_tokens,
                    cache_creation_input_tokens=day.cache_creation_input_tokens,
                    cache_read_input_tokens=day.cache_read_input_tokens,
                    models=[_model_stats(m) for m in models],
                )
            rows.append((stat, cost))
        return rows

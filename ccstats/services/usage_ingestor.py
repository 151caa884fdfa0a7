"""Merging uploaded ccusage reports into per-user daily records."""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ccstats.core.constants import COST_QUANTUM, DEFAULT_MODEL_NAME, DEFAULT_PROVIDER
from ccstats.core.exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from ccstats.repositories.usage_repo import UsageRepo
from ccstats.repositories.user_repo import UserRepo
from ccstats.schemas.usage import CcusageData, DailyUsageIn, ModelBreakdownIn


logger = logging.getLogger(__name__)

INVALID_FORMAT = "Invalid ccusage format"


def _cost(value: Optional[Decimal]) -> Decimal:
    return Decimal(value or 0).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


def parse_payload(payload: Any) -> CcusageData:
    """Validate the raw upload body, raising before anything is written."""

    if isinstance(payload, CcusageData):
        return payload
    if not isinstance(payload, dict) or not isinstance(payload.get("daily"), list):
        raise ValidationError(INVALID_FORMAT)
    try:
        return CcusageData.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            INVALID_FORMAT,
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def _model_row(breakdown: ModelBreakdownIn) -> Dict[str, Any]:
    return {
        "model": breakdown.model_name or DEFAULT_MODEL_NAME,
        "provider": breakdown.provider or DEFAULT_PROVIDER,
        "input_tokens": breakdown.input_tokens or 0,
        "output_tokens": breakdown.output_tokens or 0,
        "cache_creation_input_tokens": breakdown.cache_creation_tokens or 0,
        "cache_read_input_tokens": breakdown.cache_read_tokens or 0,
        "cost": _cost(breakdown.cost),
    }


class UsageIngestor:
    """Stores uploaded reports for existing users only."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserRepo(session)
        self.usage = UsageRepo(session)

    async def merge(self, username: str, payload: Any) -> None:
        """Merge every dated entry of ``payload`` into ``username``'s records.

        Each day is upserted in its own transaction together with a full
        replacement of its model breakdowns, so re-uploading a day overwrites
        it instead of accumulating. Days already committed stay committed if
        a later day fails.
        """

        data = parse_payload(payload)

        try:
            user = await self.users.get_by_username(username) if username else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to look up user {username}") from exc
        if user is None:
            raise NotFoundError(f"User not found: {username or ''}")
        user_id = user.id
        # Release the read transaction so each day below gets its own.
        await self.session.commit()

        for entry in data.daily:
            if entry.date is None:
                continue
            await self._merge_day(user_id, username, entry)

    async def _merge_day(self, user_id: int, username: str, entry: DailyUsageIn) -> None:
        models: List[Dict[str, Any]] = [
            _model_row(breakdown) for breakdown in entry.model_breakdowns or []
        ]
        try:
            usage_id = await self.usage.upsert_day(
                user_id,
                entry.date,
                input_tokens=entry.input_tokens or 0,
                output_tokens=entry.output_tokens or 0,
                cache_creation_tokens=entry.cache_creation_tokens or 0,
                cache_read_tokens=entry.cache_read_tokens or 0,
                total_tokens=entry.total_tokens or 0,
                total_cost=_cost(entry.total_cost),
            )
            await self.usage.replace_models(usage_id, models)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError(
                f"Conflicting write for user {username} on {entry.date}",
                details={"username": username, "date": entry.date.isoformat()},
            ) from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StoreError(
                f"Failed to store usage for user {username} on {entry.date}"
            ) from exc

        logger.info(f"Stats uploaded for user {username} on {entry.date}")

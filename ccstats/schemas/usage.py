"""Pydantic schemas for ccusage uploads and stats responses."""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase keys with callers."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class ModelBreakdownIn(CamelModel):
    """One model's share of an uploaded day."""

    model_name: Optional[str] = Field(default=None, description="Model identifier")
    provider: Optional[str] = Field(default=None, description="Model provider")
    input_tokens: Optional[NonNegativeInt] = None
    output_tokens: Optional[NonNegativeInt] = None
    cache_creation_tokens: Optional[NonNegativeInt] = None
    cache_read_tokens: Optional[NonNegativeInt] = None
    cost: Optional[Decimal] = Field(default=None, ge=0)


class DailyUsageIn(CamelModel):
    """One day of an uploaded ccusage report."""

    date: Optional[dt.date] = Field(default=None, description="Calendar day, YYYY-MM-DD")
    input_tokens: Optional[NonNegativeInt] = None
    output_tokens: Optional[NonNegativeInt] = None
    cache_creation_tokens: Optional[NonNegativeInt] = None
    cache_read_tokens: Optional[NonNegativeInt] = None
    total_tokens: Optional[NonNegativeInt] = None
    total_cost: Optional[Decimal] = Field(default=None, ge=0)
    model_breakdowns: Optional[List[ModelBreakdownIn]] = None

    @field_validator("date", mode="before")
    @classmethod
    def _blank_date_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CcusageData(CamelModel):
    """Top-level ccusage export: a ``daily`` array of per-day reports."""

    daily: List[DailyUsageIn]


class ModelStats(CamelModel):
    name: str
    provider: str
    cost: float
    input_tokens: int
    output_tokens: int
    cache_creation_input_tokens: int
    cache_read_input_tokens: int


class DailyStats(CamelModel):
    """A user's usage for one day, optionally narrowed to one model."""

    date: dt.date
    username: str
    total_cost: float
    total_tokens: int
    input_tokens: int
    output_tokens: int
    cache_creation_input_tokens: int
    cache_read_input_tokens: int
    models: List[ModelStats] = Field(default_factory=list)


class StatsSummary(CamelModel):
    """Aggregates over a result set; never persisted."""

    total_cost: float = 0
    total_tokens: int = 0
    unique_users: int = 0
    total_days: int = 0


class StatsResponse(CamelModel):
    period: Literal["week", "month", "custom", "all"]
    start_date: str
    end_date: str
    stats: List[DailyStats] = Field(default_factory=list)
    summary: StatsSummary = Field(default_factory=StatsSummary)

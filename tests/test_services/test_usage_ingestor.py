from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ccstats.core.exceptions import NotFoundError, ValidationError
from ccstats.db.models import ModelUsage, UsageDaily
from ccstats.repositories.usage_repo import UsageRepo
from ccstats.services.usage_ingestor import UsageIngestor
from ccstats.services.usage_query import UsageQueryEngine


DAY = dt.date(2024, 1, 15)


def sonnet_day(total_tokens: int = 1500, cost: float = 0.015, **overrides):
    entry = {
        "date": DAY.isoformat(),
        "inputTokens": 1000,
        "outputTokens": 500,
        "cacheCreationTokens": 0,
        "cacheReadTokens": 0,
        "totalTokens": total_tokens,
        "totalCost": cost,
        "modelBreakdowns": [
            {
                "modelName": "claude-3-5-sonnet-20241022",
                "provider": "anthropic",
                "inputTokens": 1000,
                "outputTokens": 500,
                "cost": cost,
            }
        ],
    }
    entry.update(overrides)
    return entry


async def _breakdowns(session, usage_id):
    result = await session.execute(
        select(ModelUsage).where(ModelUsage.usage_daily_id == usage_id).order_by(ModelUsage.id)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_merge_stores_day_and_breakdowns(test_db, seed_user, payload):
    user = await seed_user("ingest-basic")

    await UsageIngestor(test_db).merge("ingest-basic", payload(sonnet_day()))

    usage = await UsageRepo(test_db).get_day(user.id, DAY)
    assert usage is not None
    assert usage.total_tokens == 1500
    assert usage.input_tokens == 1000
    assert usage.total_cost == Decimal("0.0150")

    models = await _breakdowns(test_db, usage.id)
    assert [(m.provider, m.model) for m in models] == [
        ("anthropic", "claude-3-5-sonnet-20241022")
    ]


@pytest.mark.asyncio
async def test_reingest_same_day_overwrites_instead_of_accumulating(
    test_db, seed_user, payload
):
    user = await seed_user("alice")
    ingestor = UsageIngestor(test_db)

    await ingestor.merge("alice", payload(sonnet_day()))
    second = sonnet_day(total_tokens=3000, cost=0.03)
    second["modelBreakdowns"] = [
        {"modelName": "claude-3-opus", "inputTokens": 2000, "outputTokens": 1000, "cost": 0.03}
    ]
    await ingestor.merge("alice", payload(second))

    count = await test_db.execute(
        select(func.count()).select_from(UsageDaily).where(UsageDaily.user_id == user.id)
    )
    assert count.scalar_one() == 1

    result = await UsageQueryEngine(test_db).query_range(DAY, DAY)
    assert len(result.stats) == 1
    assert result.stats[0].username == "alice"
    assert result.stats[0].total_tokens == 3000
    assert [m.name for m in result.stats[0].models] == ["claude-3-opus"]


@pytest.mark.asyncio
async def test_identical_reingest_is_idempotent(test_db, seed_user, payload):
    user = await seed_user("ingest-idempotent")
    ingestor = UsageIngestor(test_db)

    await ingestor.merge("ingest-idempotent", payload(sonnet_day()))
    await ingestor.merge("ingest-idempotent", payload(sonnet_day()))

    usage = await UsageRepo(test_db).get_day(user.id, DAY)
    models = await _breakdowns(test_db, usage.id)
    assert len(models) == 1
    assert models[0].cost == Decimal("0.0150")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [None, "not json", [], {}, {"daily": "nope"}, {"daily": {"date": "2024-01-15"}}],
)
async def test_merge_rejects_invalid_shape(test_db, seed_user, body):
    await seed_user("ingest-shape")

    with pytest.raises(ValidationError, match="Invalid ccusage format"):
        await UsageIngestor(test_db).merge("ingest-shape", body)


@pytest.mark.asyncio
async def test_merge_rejects_bad_entry_before_writing(test_db, seed_user, payload):
    user = await seed_user("ingest-bad-entry")
    body = payload(sonnet_day(), {"date": "2024-01-16", "inputTokens": "lots"})

    with pytest.raises(ValidationError, match="Invalid ccusage format") as exc_info:
        await UsageIngestor(test_db).merge("ingest-bad-entry", body)

    assert exc_info.value.details["errors"]
    assert await UsageRepo(test_db).get_day(user.id, DAY) is None


@pytest.mark.asyncio
async def test_merge_unknown_user_is_not_found(test_db, payload):
    with pytest.raises(NotFoundError, match="User not found: ghost-user"):
        await UsageIngestor(test_db).merge("ghost-user", payload(sonnet_day()))

    with pytest.raises(NotFoundError) as exc_info:
        await UsageIngestor(test_db).merge("", payload(sonnet_day()))
    assert exc_info.value.message == "User not found: "

    count = await test_db.execute(select(func.count()).select_from(UsageDaily))
    assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_entries_without_date_are_skipped(test_db, seed_user, payload):
    await seed_user("ingest-no-date")
    undated = sonnet_day()
    del undated["date"]

    await UsageIngestor(test_db).merge(
        "ingest-no-date", payload(undated, sonnet_day(date=""), sonnet_day())
    )

    count = await test_db.execute(select(func.count()).select_from(UsageDaily))
    assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_missing_fields_default(test_db, seed_user, payload):
    user = await seed_user("ingest-defaults")

    await UsageIngestor(test_db).merge(
        "ingest-defaults",
        payload({"date": "2024-01-15", "modelBreakdowns": [{}, {"modelName": "gpt-4o", "provider": "openai"}]}),
    )

    usage = await UsageRepo(test_db).get_day(user.id, DAY)
    assert usage.total_tokens == 0
    assert usage.total_cost == Decimal("0")
    models = await _breakdowns(test_db, usage.id)
    assert [(m.provider, m.model, m.cost) for m in models] == [
        ("anthropic", "unknown", Decimal("0")),
        ("openai", "gpt-4o", Decimal("0")),
    ]


@pytest.mark.asyncio
async def test_missing_breakdowns_store_day_only(test_db, seed_user, payload):
    user = await seed_user("ingest-no-models")
    entry = sonnet_day(total_tokens=150000)
    del entry["modelBreakdowns"]

    await UsageIngestor(test_db).merge("ingest-no-models", payload(entry))

    usage = await UsageRepo(test_db).get_day(user.id, DAY)
    assert usage.total_tokens == 150000
    assert await _breakdowns(test_db, usage.id) == []


@pytest.mark.asyncio
async def test_large_numbers_and_cost_precision(test_db, seed_user, payload):
    user = await seed_user("ingest-large")

    await UsageIngestor(test_db).merge(
        "ingest-large",
        payload(sonnet_day(total_tokens=1999999998, cost=999999.99), sonnet_day(date="2024-01-16", cost=0.123456)),
    )

    big = await UsageRepo(test_db).get_day(user.id, DAY)
    assert big.total_tokens == 1999999998
    assert big.total_cost == Decimal("999999.9900")

    rounded = await UsageRepo(test_db).get_day(user.id, dt.date(2024, 1, 16))
    assert rounded.total_cost == Decimal("0.1235")


@pytest.mark.asyncio
async def test_merge_multiple_days(test_db, seed_user, payload):
    user = await seed_user("ingest-multi")

    await UsageIngestor(test_db).merge(
        "ingest-multi",
        payload(*(sonnet_day(date=f"2024-01-{n:02d}") for n in range(10, 15))),
    )

    count = await test_db.execute(
        select(func.count()).select_from(UsageDaily).where(UsageDaily.user_id == user.id)
    )
    assert count.scalar_one() == 5


@pytest.mark.asyncio
async def test_concurrent_merges_for_same_day_leave_one_row(
    session_factory, seed_user, payload
):
    user = await seed_user("ingest-concurrent")

    async def _merge(total_tokens: int) -> None:
        async with session_factory() as session:
            await UsageIngestor(session).merge(
                "ingest-concurrent", payload(sonnet_day(total_tokens=total_tokens))
            )

    outcomes = await asyncio.gather(
        *(_merge(1000 * n) for n in range(1, 4)), return_exceptions=True
    )

    assert any(outcome is None for outcome in outcomes)
    async with session_factory() as session:
        count = await session.execute(
            select(func.count()).select_from(UsageDaily).where(UsageDaily.user_id == user.id)
        )
        assert count.scalar_one() == 1
        usage = await UsageRepo(session).get_day(user.id, DAY)
        assert len(await _breakdowns(session, usage.id)) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entry",
    [
        sonnet_day(cost=-0.01),
        {"date": "2024-01-15", "totalCost": -1},
        {"date": "2024-01-15", "modelBreakdowns": [{"modelName": "claude-3-opus", "cost": -0.5}]},
    ],
)
async def test_negative_cost_is_rejected(test_db, seed_user, payload, entry):
    user = await seed_user("ingest-negative")

    with pytest.raises(ValidationError, match="Invalid ccusage format"):
        await UsageIngestor(test_db).merge("ingest-negative", payload(entry))

    assert await UsageRepo(test_db).get_day(user.id, DAY) is None

"""
Pytest configuration for the engine tests
"""
import datetime as dt
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)

from ccstats.core.config import settings
from ccstats.db.base import Base
from ccstats.db.models import ModelUsage, Tag, UsageDaily, User
from ccstats.db.session import enable_sqlite_foreign_keys


# Keep tests on a throwaway SQLite database.
settings.ENV = "test"


@pytest_asyncio.fixture
async def test_db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh database with all tables for one test.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_app.db'}")
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a new database session for a test.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_user(test_db):
    """Insert a user, optionally tagged and with a fixed creation time."""

    async def _seed(
        username: str,
        tags: Sequence[str] = (),
        created_at: Optional[dt.datetime] = None,
        updated_at: Optional[dt.datetime] = None,
    ) -> User:
        user = User(username=username)
        if created_at is not None:
            user.created_at = created_at
        if updated_at is not None:
            user.updated_at = updated_at
        test_db.add(user)
        await test_db.flush()
        test_db.add_all([Tag(user_id=user.id, name=name) for name in tags])
        await test_db.commit()
        return user

    return _seed


@pytest.fixture
def seed_day(test_db):
    """Insert a usage day with its model breakdowns directly."""

    async def _seed(
        user: User,
        day: dt.date,
        models: Sequence[Dict[str, Any]] = (),
        **totals: Any,
    ) -> UsageDaily:
        usage = UsageDaily(
            user_id=user.id,
            date=day,
            input_tokens=totals.get("input_tokens", 0),
            output_tokens=totals.get("output_tokens", 0),
            cache_creation_input_tokens=totals.get("cache_creation_input_tokens", 0),
            cache_read_input_tokens=totals.get("cache_read_input_tokens", 0),
            total_tokens=totals.get("total_tokens", 0),
            total_cost=Decimal(str(totals.get("total_cost", "0"))),
        )
        test_db.add(usage)
        await test_db.flush()
        test_db.add_all(
            [
                ModelUsage(
                    usage_daily_id=usage.id,
                    model=model["model"],
                    provider=model.get("provider", "anthropic"),
                    input_tokens=model.get("input_tokens", 0),
                    output_tokens=model.get("output_tokens", 0),
                    cache_creation_input_tokens=model.get("cache_creation_input_tokens", 0),
                    cache_read_input_tokens=model.get("cache_read_input_tokens", 0),
                    cost=Decimal(str(model.get("cost", "0"))),
                )
                for model in models
            ]
        )
        await test_db.commit()
        return usage

    return _seed


def build_payload(*days: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Wrap day dicts in a ccusage export body."""

    return {"daily": list(days)}


@pytest.fixture
def payload():
    return build_payload

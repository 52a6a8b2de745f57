"""Pytest fixtures for balance engine tests."""

from __future__ import annotations

from datetime import time
from decimal import Decimal
from typing import AsyncGenerator, Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from balance_engine.calculators.types import WorkContract
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek
from balance_engine.config import DEFAULT_TRACKED_VALUE_TYPES, Settings
from balance_engine.context import RequestContext
from balance_engine.database import create_all, get_engine, make_session_factory
from balance_engine.stores import InMemoryStore, SqlAlchemyStore

WEEKDAYS = frozenset(
    {
        DayOfWeek.MONDAY,
        DayOfWeek.TUESDAY,
        DayOfWeek.WEDNESDAY,
        DayOfWeek.THURSDAY,
        DayOfWeek.FRIDAY,
    }
)


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "log_level": "DEBUG",
        "hours_precision": 4,
        "strict_contract_overlap": True,
        "count_unlinked_custom_hours": True,
        "workday_start": time(8, 0),
        "workday_end": time(18, 0),
        "tracked_value_types": DEFAULT_TRACKED_VALUE_TYPES,
        "engine_process": "balance-engine-test",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user="tester", process="balance-engine-test")


@pytest.fixture
def employee_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_contract() -> Callable[..., WorkContract]:
    """Factory for contracts; defaults to 40h Mon-Fri over ISO year 2024."""

    def factory(
        employee_id: UUID,
        expected_hours: str = "40",
        from_week: IsoWeek = IsoWeek(2024, 1),
        to_week: IsoWeek = IsoWeek(2024, 52),
        workdays: frozenset[DayOfWeek] = WEEKDAYS,
        **kwargs,
    ) -> WorkContract:
        return WorkContract(
            contract_id=kwargs.pop("contract_id", uuid4()),
            employee_id=employee_id,
            expected_hours=Decimal(expected_hours),
            from_week=from_week,
            to_week=to_week,
            workdays=workdays,
            **kwargs,
        )

    return factory


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def book_full_week(store: InMemoryStore) -> Callable[[UUID, IsoWeek], None]:
    """Book 08:00-16:00 Monday to Friday of a week."""
    slots = {
        day: store.add_slot(day, time(8, 0), time(16, 0)) for day in sorted(WEEKDAYS)
    }

    def book(employee_id: UUID, week: IsoWeek) -> None:
        for slot in slots.values():
            store.add_booking(employee_id, slot.slot_id, week)

    return book


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite so that every transaction gets its own connection."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'balance.db'}")
    await create_all(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyStore:
    return SqlAlchemyStore(session_factory, precision=4)

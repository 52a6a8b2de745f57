"""Tests for the SQLAlchemy store on SQLite (aiosqlite)."""

import asyncio
from datetime import date, datetime, time, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from balance_engine.calculators.types import BalanceValue, ExtraHoursCategory
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek, Period
from balance_engine.models import (
    BillingPeriod,
    BillingPeriodEmployee,
    Booking,
    CustomExtraHours,
    CustomExtraHoursEmployee,
    ExtraHours,
    Slot,
    SpecialDay,
    WorkContract,
)
from balance_engine.services import (
    BalanceService,
    BillingPeriodService,
    CarryoverService,
    CarryoverStale,
    SnapshotIncomplete,
    use_transaction,
)
from balance_engine.stores import ConflictAlreadyFinalized

WEEK_3 = IsoWeek(2024, 3)
JANUARY = Period(date(2024, 1, 1), date(2024, 1, 28))


async def add_rows(session_factory, *rows):
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()


async def book_full_week(session_factory, employee_id, week):
    slots = [
        Slot(
            slot_id=uuid4(),
            day_of_week=day,
            time_from=time(8),
            time_to=time(16),
            valid_from=date(2020, 1, 1),
        )
        for day in range(1, 6)
    ]
    bookings = [
        Booking(
            employee_id=employee_id,
            slot_id=slot.slot_id,
            year=week.year,
            calendar_week=week.week,
        )
        for slot in slots
    ]
    await add_rows(session_factory, *slots)
    await add_rows(session_factory, *bookings)


class TestSqlReads:
    """Test query filters and row mapping."""

    @pytest.mark.asyncio
    async def test_contracts_filtered_by_week_range(
        self, sql_store, session_factory, employee_id, make_contract
    ):
        active = make_contract(employee_id, to_week=IsoWeek(2024, 10))
        later = make_contract(employee_id, from_week=IsoWeek(2024, 20), to_week=IsoWeek(2024, 30))
        deleted = make_contract(employee_id, deleted_at=datetime.now(timezone.utc))
        await add_rows(
            session_factory,
            WorkContract.from_value(active),
            WorkContract.from_value(later),
            WorkContract.from_value(deleted),
        )

        async with use_transaction(sql_store) as tx:
            in_range = await sql_store.list_active_contracts(
                tx, employee_id, (IsoWeek(2024, 1), IsoWeek(2024, 5))
            )
            everything = await sql_store.list_contracts(tx, employee_id)

        assert [c.contract_id for c in in_range] == [active.contract_id]
        assert in_range[0].workdays == active.workdays
        assert in_range[0].expected_hours == Decimal("40")
        assert in_range[0].created_at is not None
        assert {c.contract_id for c in everything} == {active.contract_id, later.contract_id}

    @pytest.mark.asyncio
    async def test_bookings_joined_with_slot(self, sql_store, session_factory, employee_id):
        await book_full_week(session_factory, employee_id, WEEK_3)

        async with use_transaction(sql_store) as tx:
            bookings = await sql_store.list_bookings(tx, None, (WEEK_3, WEEK_3))
            other_week = await sql_store.list_bookings(
                tx, employee_id, (IsoWeek(2024, 4), IsoWeek(2024, 5))
            )

        assert len(bookings) == 5
        assert {b.day_of_week for b in bookings} == set(DayOfWeek) - {
            DayOfWeek.SATURDAY,
            DayOfWeek.SUNDAY,
        }
        assert all(b.minutes == 480 for b in bookings)
        assert other_week == []

    @pytest.mark.asyncio
    async def test_bookings_outside_slot_validity(self, sql_store, session_factory, employee_id):
        expired = Slot(
            slot_id=uuid4(),
            day_of_week=1,
            time_from=time(8),
            time_to=time(16),
            valid_from=date(2023, 1, 1),
            valid_to=date(2024, 1, 14),
        )
        upcoming = Slot(
            slot_id=uuid4(),
            day_of_week=2,
            time_from=time(8),
            time_to=time(16),
            valid_from=date(2024, 1, 17),
        )
        await add_rows(session_factory, expired, upcoming)
        await add_rows(
            session_factory,
            *(
                Booking(
                    employee_id=employee_id,
                    slot_id=slot.slot_id,
                    year=WEEK_3.year,
                    calendar_week=WEEK_3.week,
                )
                for slot in (expired, upcoming)
            ),
        )

        async with use_transaction(sql_store) as tx:
            bookings = await sql_store.list_bookings(tx, employee_id, (WEEK_3, WEEK_3))

        assert bookings == []

    @pytest.mark.asyncio
    async def test_extra_hours_with_custom_types(self, sql_store, session_factory, employee_id):
        training = CustomExtraHours(
            custom_extra_hours_id=uuid4(), name="training", modifies_balance=True
        )
        retired = CustomExtraHours(
            custom_extra_hours_id=uuid4(),
            name="retired",
            modifies_balance=True,
            deleted_at=datetime.now(timezone.utc),
        )
        await add_rows(session_factory, training, retired)
        await add_rows(
            session_factory,
            CustomExtraHoursEmployee(
                custom_extra_hours_id=training.custom_extra_hours_id, employee_id=employee_id
            ),
            ExtraHours(
                employee_id=employee_id,
                amount=Decimal("4"),
                category="custom",
                custom_extra_hours_id=training.custom_extra_hours_id,
                occurred_at=datetime(2024, 1, 16, 9, tzinfo=timezone.utc),
            ),
            ExtraHours(
                employee_id=employee_id,
                amount=Decimal("2"),
                category="custom",
                custom_extra_hours_id=retired.custom_extra_hours_id,
                occurred_at=datetime(2024, 1, 16, 9, tzinfo=timezone.utc),
            ),
            ExtraHours(
                employee_id=employee_id,
                amount=Decimal("8"),
                category="vacation",
                occurred_at=datetime(2024, 1, 22, 9, tzinfo=timezone.utc),
            ),
        )

        async with use_transaction(sql_store) as tx:
            entries = await sql_store.list_extra_hours(tx, employee_id, Period.for_week(WEEK_3))
            vacation = await sql_store.list_extra_hours(
                tx, employee_id, JANUARY, {ExtraHoursCategory.VACATION}
            )
            links = await sql_store.list_custom_extra_hours_links(tx, employee_id)

        by_name = {e.custom_type.name: e for e in entries}
        assert set(by_name) == {"training", "retired"}
        assert by_name["retired"].custom_type.deleted_at is not None
        assert by_name["training"].amount == Decimal("4")
        assert [e.amount for e in vacation] == [Decimal("8")]
        assert links == {training.custom_extra_hours_id}

    @pytest.mark.asyncio
    async def test_special_days(self, sql_store, session_factory):
        await add_rows(
            session_factory,
            SpecialDay(year=2024, calendar_week=3, day_of_week=3, day_type="holiday"),
            SpecialDay(
                year=2024,
                calendar_week=3,
                day_of_week=5,
                day_type="short_day",
                time_of_day=time(13),
                deleted_at=datetime.now(timezone.utc),
            ),
        )

        async with use_transaction(sql_store) as tx:
            days = await sql_store.list_special_days(tx, (WEEK_3, WEEK_3))

        assert [d.day for d in days] == [date(2024, 1, 17)]


class TestSqlWrites:
    """Test carryover upserts and billing period uniqueness."""

    @pytest.mark.asyncio
    async def test_carryover_upsert_and_invalidate(self, sql_store, employee_id):
        async with use_transaction(sql_store) as tx:
            await sql_store.put_carryover(tx, employee_id, 2023, Decimal("1.5"), None, "test")
            await sql_store.put_carryover(
                tx, employee_id, 2024, Decimal("3"), Decimal("1.5"), "test"
            )

        async with use_transaction(sql_store) as tx:
            assert await sql_store.invalidate_carryover(tx, employee_id, 2024, "test") == 1

        async with use_transaction(sql_store) as tx:
            kept = await sql_store.get_carryover(tx, employee_id, 2023)
            gone = await sql_store.get_carryover(tx, employee_id, 2024)
            revived = await sql_store.put_carryover(
                tx, employee_id, 2024, Decimal("4"), Decimal("1.5"), "test"
            )

        async with use_transaction(sql_store) as tx:
            again = await sql_store.get_carryover(tx, employee_id, 2024)

        assert kept.carryover_hours == Decimal("1.5")
        assert kept.seed_hours is None
        assert gone is None
        assert revived.carryover_hours == Decimal("4")
        assert again.carryover_hours == Decimal("4")
        assert again.seed_hours == Decimal("1.5")

    @pytest.mark.asyncio
    async def test_billing_period_conflict(self, sql_store, employee_id):
        value = BalanceValue("balance", Decimal("1"), Decimal("0"), Decimal("1"), Decimal("2"))
        async with use_transaction(sql_store) as tx:
            header = await sql_store.insert_billing_period(tx, JANUARY, "tester")
            await sql_store.insert_billing_period_snapshot(
                tx, header.billing_period_id, employee_id, value, "tester"
            )

        with pytest.raises(ConflictAlreadyFinalized) as exc_info:
            async with use_transaction(sql_store) as tx:
                await sql_store.insert_billing_period(tx, JANUARY, "tester")

        async with use_transaction(sql_store) as tx:
            snapshot = await sql_store.get_billing_period(tx, header.billing_period_id)
            periods = await sql_store.list_billing_periods(tx)

        assert exc_info.value.billing_period_id == header.billing_period_id
        assert snapshot.values == {employee_id: {"balance": value}}
        assert [p.billing_period_id for p in periods] == [header.billing_period_id]

    @pytest.mark.asyncio
    async def test_unique_bounds_enforced_by_schema(self, session_factory):
        """The database rejects duplicate bounds even without the pre-check."""
        async with session_factory() as session:
            session.add(
                BillingPeriod(start_date=JANUARY.start, end_date=JANUARY.end, created_by="a")
            )
            await session.flush()
            session.add(
                BillingPeriod(start_date=JANUARY.start, end_date=JANUARY.end, created_by="b")
            )
            with pytest.raises(IntegrityError):
                await session.flush()
            await session.rollback()


class TestServicesOnSql:
    """End-to-end service runs against the SQL store."""

    @pytest.mark.asyncio
    async def test_holiday_week(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        await add_rows(
            session_factory,
            WorkContract.from_value(make_contract(employee_id, to_week=IsoWeek(2024, 10))),
            SpecialDay(year=2024, calendar_week=3, day_of_week=3, day_type="holiday"),
        )
        await book_full_week(session_factory, employee_id, WEEK_3)

        [balance] = await BalanceService(sql_store, settings).compute_balance(
            ctx, employee_id, Period.for_week(WEEK_3), ["balance"]
        )

        assert balance.value_delta == Decimal("8")

    @pytest.mark.asyncio
    async def test_carryover_chain_persisted(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        await add_rows(
            session_factory,
            WorkContract.from_value(
                make_contract(
                    employee_id,
                    expected_hours="10",
                    from_week=IsoWeek(2022, 1),
                    to_week=IsoWeek(2024, 52),
                )
            ),
        )
        service = CarryoverService(sql_store, settings)

        assert await service.get_or_compute(ctx, employee_id, 2023) == Decimal("-1040")
        record = await service.get_carryover(ctx, employee_id, 2023)
        assert record.seed_hours == Decimal("-520")
        assert await service.record_change(ctx, employee_id, IsoWeek(2022, 10)) == 2

    @pytest.mark.asyncio
    async def test_finalize_twice(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        await add_rows(session_factory, WorkContract.from_value(make_contract(employee_id)))
        service = BillingPeriodService(sql_store, settings)

        snapshot = await service.finalize_billing_period(ctx, JANUARY)
        with pytest.raises(ConflictAlreadyFinalized):
            await service.finalize_billing_period(ctx, JANUARY)

        stored = await service.get_billing_period(ctx, snapshot.period.billing_period_id)
        assert stored.values == snapshot.values
        async with session_factory() as session:
            rows = await session.scalar(select(func.count()).select_from(BillingPeriodEmployee))
        assert rows == len(settings.tracked_value_types)

    @pytest.mark.asyncio
    async def test_failed_finalize_rolls_back(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        await add_rows(
            session_factory,
            WorkContract.from_value(make_contract(employee_id)),
            WorkContract.from_value(make_contract(employee_id, expected_hours="5")),
        )

        with pytest.raises(SnapshotIncomplete):
            await BillingPeriodService(sql_store, settings).finalize_billing_period(ctx, JANUARY)

        async with session_factory() as session:
            periods = await session.scalar(select(func.count()).select_from(BillingPeriod))
            rows = await session.scalar(select(func.count()).select_from(BillingPeriodEmployee))
        assert periods == 0
        assert rows == 0

    @pytest.mark.asyncio
    async def test_deleted_booking_outdates_carryover(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        await add_rows(
            session_factory,
            WorkContract.from_value(
                make_contract(employee_id, from_week=IsoWeek(2023, 1), to_week=IsoWeek(2024, 52))
            ),
        )
        await book_full_week(session_factory, employee_id, IsoWeek(2023, 10))
        service = CarryoverService(sql_store, settings)

        assert await service.get_or_compute(ctx, employee_id, 2023) == Decimal("-2040")
        assert (await service.get_carryover(ctx, employee_id, 2023)).input_hash is not None

        async with session_factory() as session:
            await session.execute(
                update(Booking)
                .where(Booking.employee_id == employee_id)
                .values(deleted_at=datetime.now(timezone.utc))
            )
            await session.commit()

        with pytest.raises(CarryoverStale):
            await service.get_carryover(ctx, employee_id, 2023)
        assert await service.get_or_compute(ctx, employee_id, 2023) == Decimal("-2080")

    @pytest.mark.asyncio
    async def test_concurrent_finalize(
        self, sql_store, session_factory, settings, ctx, employee_id, make_contract
    ):
        """Only one of several racing finalizers stores a snapshot."""
        await add_rows(session_factory, WorkContract.from_value(make_contract(employee_id)))
        service = BillingPeriodService(sql_store, settings)

        results = await asyncio.gather(
            *(service.finalize_billing_period(ctx, JANUARY) for _ in range(3)),
            return_exceptions=True,
        )

        snapshots = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictAlreadyFinalized)]
        assert len(snapshots) == 1
        assert len(conflicts) == 2
        async with session_factory() as session:
            periods = await session.scalar(select(func.count()).select_from(BillingPeriod))
            rows = await session.scalar(select(func.count()).select_from(BillingPeriodEmployee))
        assert periods == 1
        assert rows == len(settings.tracked_value_types)

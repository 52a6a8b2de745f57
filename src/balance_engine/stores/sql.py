"""SQLAlchemy store variant.

Each transaction is one AsyncSession. Uniqueness of billing periods is
enforced by the database; on PostgreSQL an advisory lock on the period key
additionally serializes concurrent finalizers.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from balance_engine.calculators.types import (
    BalanceValue,
    BillingPeriodRecord,
    BillingPeriodSnapshot,
    BookedSlot,
    CarryoverRecord,
    ExtraHoursCategory,
    ExtraHoursEntry,
    SpecialDay,
    WorkContract,
)
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek, Period
from balance_engine.database import acquire_period_lock
from balance_engine.models import (
    BillingPeriod,
    BillingPeriodEmployee,
    Booking,
    CustomExtraHours,
    CustomExtraHoursEmployee,
    EmployeeYearlyCarryover,
    ExtraHours,
    Slot,
)
from balance_engine.models import SpecialDay as SpecialDayRow
from balance_engine.models import WorkContract as WorkContractRow
from balance_engine.stores.base import ConflictAlreadyFinalized

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlTransaction:
    """A store transaction bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        try:
            await self.session.commit()
        finally:
            await self.session.close()

    async def rollback(self) -> None:
        try:
            await self.session.rollback()
        finally:
            await self.session.close()


class SqlAlchemyStore:
    """BalanceStore backed by async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], precision: int = 4):
        self.session_factory = session_factory
        self.precision = precision

    async def begin(self) -> SqlTransaction:
        return SqlTransaction(self.session_factory())

    # ----- reads -----

    async def list_active_contracts(
        self,
        tx: SqlTransaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[WorkContract]:
        start, end = week_range
        query = select(WorkContractRow).where(
            WorkContractRow.deleted_at.is_(None),
            WorkContractRow.from_year * 100 + WorkContractRow.from_week <= end.key,
            WorkContractRow.to_year * 100 + WorkContractRow.to_week >= start.key,
        )
        if employee_id is not None:
            query = query.where(WorkContractRow.employee_id == employee_id)
        result = await tx.session.execute(query)
        return [row.to_value() for row in result.scalars()]

    async def list_contracts(self, tx: SqlTransaction, employee_id: UUID) -> list[WorkContract]:
        result = await tx.session.execute(
            select(WorkContractRow).where(
                WorkContractRow.employee_id == employee_id,
                WorkContractRow.deleted_at.is_(None),
            )
        )
        return [row.to_value() for row in result.scalars()]

    async def list_bookings(
        self,
        tx: SqlTransaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[BookedSlot]:
        start, end = week_range
        week_key = Booking.year * 100 + Booking.calendar_week
        query = (
            select(Booking, Slot)
            .join(Slot, Booking.slot_id == Slot.slot_id)
            .where(
                Booking.deleted_at.is_(None),
                week_key >= start.key,
                week_key <= end.key,
            )
        )
        if employee_id is not None:
            query = query.where(Booking.employee_id == employee_id)
        result = await tx.session.execute(query)
        booked_slots = []
        for booking, slot in result.all():
            booked = BookedSlot(
                booking_id=booking.booking_id,
                employee_id=booking.employee_id,
                year=booking.year,
                calendar_week=booking.calendar_week,
                day_of_week=DayOfWeek(slot.day_of_week),
                time_from=slot.time_from,
                time_to=slot.time_to,
            )
            # Bookings outside the slot's validity do not count
            if slot.valid_from <= booked.day and (
                slot.valid_to is None or booked.day <= slot.valid_to
            ):
                booked_slots.append(booked)
        return booked_slots

    async def list_extra_hours(
        self,
        tx: SqlTransaction,
        employee_id: UUID,
        date_range: Period,
        categories: set[ExtraHoursCategory] | None = None,
    ) -> list[ExtraHoursEntry]:
        # Widen by a day on both sides; the exact day filter runs on the local date
        lower = datetime.combine(date_range.start - timedelta(days=1), time.min, timezone.utc)
        upper = datetime.combine(date_range.end + timedelta(days=2), time.min, timezone.utc)
        query = (
            select(ExtraHours, CustomExtraHours)
            .outerjoin(
                CustomExtraHours,
                ExtraHours.custom_extra_hours_id == CustomExtraHours.custom_extra_hours_id,
            )
            .where(
                ExtraHours.employee_id == employee_id,
                ExtraHours.deleted_at.is_(None),
                ExtraHours.occurred_at >= lower,
                ExtraHours.occurred_at < upper,
            )
        )
        if categories is not None:
            query = query.where(ExtraHours.category.in_([c.value for c in categories]))
        result = await tx.session.execute(query)
        entries = [row.to_value(custom_type) for row, custom_type in result.all()]
        return [e for e in entries if date_range.contains(e.day)]

    async def list_special_days(
        self, tx: SqlTransaction, week_range: tuple[IsoWeek, IsoWeek]
    ) -> list[SpecialDay]:
        start, end = week_range
        week_key = SpecialDayRow.year * 100 + SpecialDayRow.calendar_week
        result = await tx.session.execute(
            select(SpecialDayRow).where(
                SpecialDayRow.deleted_at.is_(None),
                week_key >= start.key,
                week_key <= end.key,
            )
        )
        return [row.to_value() for row in result.scalars()]

    async def get_carryover(
        self, tx: SqlTransaction, employee_id: UUID, year: int
    ) -> CarryoverRecord | None:
        result = await tx.session.execute(
            select(EmployeeYearlyCarryover).where(
                EmployeeYearlyCarryover.employee_id == employee_id,
                EmployeeYearlyCarryover.year == year,
                EmployeeYearlyCarryover.deleted_at.is_(None),
            )
        )
        row = result.scalar_one_or_none()
        return row.to_value() if row is not None else None

    async def list_custom_extra_hours_links(
        self, tx: SqlTransaction, employee_id: UUID
    ) -> set[UUID]:
        result = await tx.session.execute(
            select(CustomExtraHoursEmployee.custom_extra_hours_id).where(
                CustomExtraHoursEmployee.employee_id == employee_id,
                CustomExtraHoursEmployee.deleted_at.is_(None),
            )
        )
        return set(result.scalars())

    async def find_billing_period(
        self, tx: SqlTransaction, start: date, end: date
    ) -> BillingPeriodRecord | None:
        result = await tx.session.execute(
            select(BillingPeriod).where(
                BillingPeriod.start_date == start,
                BillingPeriod.end_date == end,
            )
        )
        row = result.scalar_one_or_none()
        return row.to_value() if row is not None else None

    async def get_billing_period(
        self, tx: SqlTransaction, billing_period_id: UUID
    ) -> BillingPeriodSnapshot | None:
        header = await tx.session.get(BillingPeriod, billing_period_id)
        if header is None:
            return None
        result = await tx.session.execute(
            select(BillingPeriodEmployee).where(
                BillingPeriodEmployee.billing_period_id == billing_period_id
            )
        )
        snapshot = BillingPeriodSnapshot(period=header.to_value())
        for row in result.scalars():
            snapshot.values.setdefault(row.employee_id, {})[row.value_type] = row.to_value(
                self.precision
            )
        return snapshot

    async def list_billing_periods(self, tx: SqlTransaction) -> list[BillingPeriodRecord]:
        result = await tx.session.execute(
            select(BillingPeriod).order_by(BillingPeriod.start_date)
        )
        return [row.to_value() for row in result.scalars()]

    # ----- writes -----

    async def put_carryover(
        self,
        tx: SqlTransaction,
        employee_id: UUID,
        year: int,
        hours: Decimal,
        seed_hours: Decimal | None,
        process: str,
        input_hash: str | None = None,
    ) -> CarryoverRecord:
        row = await tx.session.get(EmployeeYearlyCarryover, (employee_id, year))
        if row is None:
            row = EmployeeYearlyCarryover(employee_id=employee_id, year=year)
            tx.session.add(row)
        row.carryover_hours = hours
        row.seed_hours = seed_hours
        row.input_hash = input_hash
        row.deleted_at = None
        row.update_process = process
        await tx.session.flush()
        return CarryoverRecord(employee_id, year, hours, seed_hours, input_hash)

    async def invalidate_carryover(
        self, tx: SqlTransaction, employee_id: UUID, from_year: int, process: str
    ) -> int:
        result = await tx.session.execute(
            update(EmployeeYearlyCarryover)
            .where(
                EmployeeYearlyCarryover.employee_id == employee_id,
                EmployeeYearlyCarryover.year >= from_year,
                EmployeeYearlyCarryover.deleted_at.is_(None),
            )
            .values(deleted_at=_now(), update_process=process)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def insert_billing_period(
        self, tx: SqlTransaction, period: Period, created_by: str
    ) -> BillingPeriodRecord:
        await acquire_period_lock(tx.session, f"billing_period:{period.start}:{period.end}")

        existing = await self.find_billing_period(tx, period.start, period.end)
        if existing is not None:
            raise ConflictAlreadyFinalized(period, existing.billing_period_id)

        row = BillingPeriod(
            start_date=period.start,
            end_date=period.end,
            created_by=created_by,
            created_at=_now(),
        )
        tx.session.add(row)
        try:
            await tx.session.flush()
        except IntegrityError as e:
            logger.info("Billing period %s was finalized concurrently", period)
            raise ConflictAlreadyFinalized(period) from e
        return row.to_value()

    async def insert_billing_period_snapshot(
        self,
        tx: SqlTransaction,
        billing_period_id: UUID,
        employee_id: UUID,
        value: BalanceValue,
        created_by: str,
    ) -> None:
        tx.session.add(
            BillingPeriodEmployee(
                billing_period_id=billing_period_id,
                employee_id=employee_id,
                value_type=value.value_type,
                value_delta=value.value_delta,
                value_ytd_from=value.value_ytd_from,
                value_ytd_to=value.value_ytd_to,
                value_full_year=value.value_full_year,
                created_by=created_by,
                created_at=_now(),
            )
        )
        await tx.session.flush()

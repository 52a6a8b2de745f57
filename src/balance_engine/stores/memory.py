"""In-memory store variant.

Upstream tables (contracts, slots, bookings, extra hours, special days) are
plain dictionaries filled through the ``add_*`` helpers. The engine's own
outputs (carryover, billing periods) are transactional: a transaction works
on a copy and swaps it in on commit. Transactions are serialized by a lock,
so a second writer observes everything the first one committed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from balance_engine.calculators.types import (
    BalanceValue,
    BillingPeriodRecord,
    BillingPeriodSnapshot,
    BookedSlot,
    CarryoverRecord,
    CustomExtraHoursType,
    ExtraHoursCategory,
    ExtraHoursEntry,
    SpecialDay,
    SpecialDayType,
    WorkContract,
)
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek, Period
from balance_engine.stores.base import ConflictAlreadyFinalized


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MemorySlot:
    slot_id: UUID
    day_of_week: DayOfWeek
    time_from: time
    time_to: time
    valid_from: date
    valid_to: date | None = None
    deleted_at: datetime | None = None

    def is_valid_on(self, day: date) -> bool:
        return self.valid_from <= day and (self.valid_to is None or day <= self.valid_to)


@dataclass(frozen=True)
class MemoryBooking:
    booking_id: UUID
    employee_id: UUID
    slot_id: UUID
    year: int
    calendar_week: int
    deleted_at: datetime | None = None


@dataclass
class _OutputTables:
    carryovers: dict[tuple[UUID, int], CarryoverRecord]
    billing_periods: dict[UUID, BillingPeriodRecord]
    snapshot_rows: dict[tuple[UUID, UUID, str], BalanceValue]

    def copy(self) -> _OutputTables:
        return _OutputTables(
            dict(self.carryovers), dict(self.billing_periods), dict(self.snapshot_rows)
        )


class MemoryTransaction:
    """Copy-on-begin transaction over the store's output tables."""

    def __init__(self, store: InMemoryStore, tables: _OutputTables):
        self.store = store
        self.tables = tables
        self.closed = False

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("Transaction is already closed")

    async def commit(self) -> None:
        self._check_open()
        self.store._tables = self.tables
        self.closed = True
        self.store._lock.release()

    async def rollback(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.store._lock.release()


class InMemoryStore:
    """BalanceStore backed by dictionaries."""

    def __init__(self) -> None:
        self.contracts: dict[UUID, WorkContract] = {}
        self.slots: dict[UUID, MemorySlot] = {}
        self.bookings: dict[UUID, MemoryBooking] = {}
        self.extra_hours: dict[UUID, ExtraHoursEntry] = {}
        self.custom_types: dict[UUID, CustomExtraHoursType] = {}
        self.custom_links: dict[tuple[UUID, UUID], datetime | None] = {}
        self.special_days: list[SpecialDay] = []
        self._tables = _OutputTables({}, {}, {})
        self._lock = asyncio.Lock()

    # ----- upstream data helpers -----

    def add_contract(self, contract: WorkContract) -> WorkContract:
        self.contracts[contract.contract_id] = contract
        return contract

    def delete_contract(self, contract_id: UUID) -> None:
        self.contracts[contract_id] = replace(self.contracts[contract_id], deleted_at=_now())

    def add_slot(
        self,
        day_of_week: DayOfWeek,
        time_from: time,
        time_to: time,
        valid_from: date = date(1970, 1, 1),
        valid_to: date | None = None,
    ) -> MemorySlot:
        slot = MemorySlot(uuid4(), day_of_week, time_from, time_to, valid_from, valid_to)
        self.slots[slot.slot_id] = slot
        return slot

    def add_booking(self, employee_id: UUID, slot_id: UUID, week: IsoWeek) -> MemoryBooking:
        booking = MemoryBooking(uuid4(), employee_id, slot_id, week.year, week.week)
        self.bookings[booking.booking_id] = booking
        return booking

    def delete_booking(self, booking_id: UUID) -> None:
        self.bookings[booking_id] = replace(self.bookings[booking_id], deleted_at=_now())

    def add_custom_type(
        self, name: str, modifies_balance: bool, description: str | None = None
    ) -> CustomExtraHoursType:
        custom_type = CustomExtraHoursType(uuid4(), name, modifies_balance, description)
        self.custom_types[custom_type.custom_extra_hours_id] = custom_type
        return custom_type

    def delete_custom_type(self, custom_extra_hours_id: UUID) -> None:
        self.custom_types[custom_extra_hours_id] = replace(
            self.custom_types[custom_extra_hours_id], deleted_at=_now()
        )

    def link_custom_type(self, employee_id: UUID, custom_extra_hours_id: UUID) -> None:
        self.custom_links[(employee_id, custom_extra_hours_id)] = None

    def unlink_custom_type(self, employee_id: UUID, custom_extra_hours_id: UUID) -> None:
        self.custom_links[(employee_id, custom_extra_hours_id)] = _now()

    def add_extra_hours(
        self,
        employee_id: UUID,
        amount: Decimal | str,
        category: ExtraHoursCategory,
        occurred_at: datetime,
        custom_extra_hours_id: UUID | None = None,
    ) -> ExtraHoursEntry:
        entry = ExtraHoursEntry(
            extra_hours_id=uuid4(),
            employee_id=employee_id,
            amount=Decimal(amount),
            category=category,
            occurred_at=occurred_at,
            custom_type=(
                self.custom_types.get(custom_extra_hours_id) if custom_extra_hours_id else None
            ),
        )
        self.extra_hours[entry.extra_hours_id] = entry
        return entry

    def delete_extra_hours(self, extra_hours_id: UUID) -> None:
        self.extra_hours[extra_hours_id] = replace(
            self.extra_hours[extra_hours_id], deleted_at=_now()
        )

    def add_special_day(
        self,
        day: date,
        day_type: SpecialDayType = SpecialDayType.HOLIDAY,
        time_of_day: time | None = None,
    ) -> SpecialDay:
        year, week, weekday = day.isocalendar()
        special_day = SpecialDay(year, week, DayOfWeek(weekday), day_type, time_of_day)
        self.special_days.append(special_day)
        return special_day

    # ----- BalanceStore -----

    async def begin(self) -> MemoryTransaction:
        await self._lock.acquire()
        return MemoryTransaction(self, self._tables.copy())

    async def list_active_contracts(
        self,
        tx: MemoryTransaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[WorkContract]:
        start, end = week_range
        return [
            c
            for c in self.contracts.values()
            if not c.is_deleted
            and (employee_id is None or c.employee_id == employee_id)
            and c.from_week <= end
            and c.to_week >= start
        ]

    async def list_contracts(self, tx: MemoryTransaction, employee_id: UUID) -> list[WorkContract]:
        return [
            c for c in self.contracts.values() if not c.is_deleted and c.employee_id == employee_id
        ]

    async def list_bookings(
        self,
        tx: MemoryTransaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[BookedSlot]:
        start, end = week_range
        result = []
        for booking in self.bookings.values():
            if booking.deleted_at is not None:
                continue
            if employee_id is not None and booking.employee_id != employee_id:
                continue
            if not start.key <= booking.year * 100 + booking.calendar_week <= end.key:
                continue
            slot = self.slots[booking.slot_id]
            booked = BookedSlot(
                booking_id=booking.booking_id,
                employee_id=booking.employee_id,
                year=booking.year,
                calendar_week=booking.calendar_week,
                day_of_week=slot.day_of_week,
                time_from=slot.time_from,
                time_to=slot.time_to,
            )
            if slot.is_valid_on(booked.day):
                result.append(booked)
        return result

    async def list_extra_hours(
        self,
        tx: MemoryTransaction,
        employee_id: UUID,
        date_range: Period,
        categories: set[ExtraHoursCategory] | None = None,
    ) -> list[ExtraHoursEntry]:
        result = []
        for entry in self.extra_hours.values():
            if entry.deleted_at is not None or entry.employee_id != employee_id:
                continue
            if not date_range.contains(entry.day):
                continue
            if categories is not None and entry.category not in categories:
                continue
            if entry.custom_type is not None:
                # Resolve the current definition, it may have been deleted since
                entry = replace(
                    entry,
                    custom_type=self.custom_types.get(entry.custom_type.custom_extra_hours_id),
                )
            result.append(entry)
        return result

    async def list_special_days(
        self, tx: MemoryTransaction, week_range: tuple[IsoWeek, IsoWeek]
    ) -> list[SpecialDay]:
        start, end = week_range
        return [
            d
            for d in self.special_days
            if d.deleted_at is None and start.key <= d.year * 100 + d.calendar_week <= end.key
        ]

    async def get_carryover(
        self, tx: MemoryTransaction, employee_id: UUID, year: int
    ) -> CarryoverRecord | None:
        record = tx.tables.carryovers.get((employee_id, year))
        if record is None or record.deleted_at is not None:
            return None
        return record

    async def list_custom_extra_hours_links(
        self, tx: MemoryTransaction, employee_id: UUID
    ) -> set[UUID]:
        return {
            custom_id
            for (emp, custom_id), deleted_at in self.custom_links.items()
            if emp == employee_id and deleted_at is None
        }

    async def find_billing_period(
        self, tx: MemoryTransaction, start: date, end: date
    ) -> BillingPeriodRecord | None:
        for record in tx.tables.billing_periods.values():
            if record.start_date == start and record.end_date == end:
                return record
        return None

    async def get_billing_period(
        self, tx: MemoryTransaction, billing_period_id: UUID
    ) -> BillingPeriodSnapshot | None:
        record = tx.tables.billing_periods.get(billing_period_id)
        if record is None:
            return None
        snapshot = BillingPeriodSnapshot(period=record)
        for (period_id, employee_id, value_type), value in tx.tables.snapshot_rows.items():
            if period_id == billing_period_id:
                snapshot.values.setdefault(employee_id, {})[value_type] = value
        return snapshot

    async def list_billing_periods(self, tx: MemoryTransaction) -> list[BillingPeriodRecord]:
        return sorted(tx.tables.billing_periods.values(), key=lambda r: r.start_date)

    async def put_carryover(
        self,
        tx: MemoryTransaction,
        employee_id: UUID,
        year: int,
        hours: Decimal,
        seed_hours: Decimal | None,
        process: str,
        input_hash: str | None = None,
    ) -> CarryoverRecord:
        record = CarryoverRecord(employee_id, year, hours, seed_hours, input_hash)
        tx.tables.carryovers[(employee_id, year)] = record
        return record

    async def invalidate_carryover(
        self, tx: MemoryTransaction, employee_id: UUID, from_year: int, process: str
    ) -> int:
        count = 0
        deleted_at = _now()
        for key, record in list(tx.tables.carryovers.items()):
            if key[0] == employee_id and key[1] >= from_year and record.deleted_at is None:
                tx.tables.carryovers[key] = replace(record, deleted_at=deleted_at)
                count += 1
        return count

    async def insert_billing_period(
        self, tx: MemoryTransaction, period: Period, created_by: str
    ) -> BillingPeriodRecord:
        existing = await self.find_billing_period(tx, period.start, period.end)
        if existing is not None:
            raise ConflictAlreadyFinalized(period, existing.billing_period_id)
        record = BillingPeriodRecord(uuid4(), period.start, period.end, created_by, _now())
        tx.tables.billing_periods[record.billing_period_id] = record
        return record

    async def insert_billing_period_snapshot(
        self,
        tx: MemoryTransaction,
        billing_period_id: UUID,
        employee_id: UUID,
        value: BalanceValue,
        created_by: str,
    ) -> None:
        key = (billing_period_id, employee_id, value.value_type)
        if key in tx.tables.snapshot_rows:
            raise ValueError(f"Snapshot row {key} already exists")
        tx.tables.snapshot_rows[key] = value

    def snapshot_row_count(self) -> int:
        """Committed snapshot rows."""
        return len(self._tables.snapshot_rows)

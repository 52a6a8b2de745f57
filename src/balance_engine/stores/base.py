"""Store protocol: the read and write collaborators of the engine.

The engine never talks to a database directly. Every variant (in-memory,
SQLAlchemy) implements BalanceStore and is passed to the services'
constructors.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

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
from balance_engine.calculators.weeks import IsoWeek, Period


class ConflictAlreadyFinalized(Exception):
    """Raised when a billing period with the same bounds already exists."""

    def __init__(self, period: Period, billing_period_id: UUID | None = None):
        self.period = period
        self.billing_period_id = billing_period_id
        msg = f"Billing period {period} is already finalized"
        if billing_period_id is not None:
            msg += f" as {billing_period_id}"
        super().__init__(msg)


class Transaction(Protocol):
    """An open unit of work. Only its opener may commit it."""

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class BalanceStore(Protocol):
    """Capability set required by the balance engine."""

    async def begin(self) -> Transaction:
        """Open a new transaction."""
        ...

    # ----- reads -----

    async def list_active_contracts(
        self,
        tx: Transaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[WorkContract]:
        """Non-deleted contracts overlapping the week range (all employees if None)."""
        ...

    async def list_contracts(self, tx: Transaction, employee_id: UUID) -> list[WorkContract]:
        """All non-deleted contracts of an employee."""
        ...

    async def list_bookings(
        self,
        tx: Transaction,
        employee_id: UUID | None,
        week_range: tuple[IsoWeek, IsoWeek],
    ) -> list[BookedSlot]:
        """Non-deleted bookings joined with their slot, on days the slot is valid."""
        ...

    async def list_extra_hours(
        self,
        tx: Transaction,
        employee_id: UUID,
        date_range: Period,
        categories: set[ExtraHoursCategory] | None = None,
    ) -> list[ExtraHoursEntry]:
        """Non-deleted entries on days of the range, custom type resolved."""
        ...

    async def list_special_days(
        self, tx: Transaction, week_range: tuple[IsoWeek, IsoWeek]
    ) -> list[SpecialDay]:
        ...

    async def get_carryover(
        self, tx: Transaction, employee_id: UUID, year: int
    ) -> CarryoverRecord | None:
        """The non-deleted carryover row for (employee, year)."""
        ...

    async def list_custom_extra_hours_links(
        self, tx: Transaction, employee_id: UUID
    ) -> set[UUID]:
        """Ids of custom extra hours types currently linked to the employee."""
        ...

    async def find_billing_period(
        self, tx: Transaction, start: date, end: date
    ) -> BillingPeriodRecord | None:
        ...

    async def get_billing_period(
        self, tx: Transaction, billing_period_id: UUID
    ) -> BillingPeriodSnapshot | None:
        ...

    async def list_billing_periods(self, tx: Transaction) -> list[BillingPeriodRecord]:
        """All billing periods ordered by start date."""
        ...

    # ----- writes -----

    async def put_carryover(
        self,
        tx: Transaction,
        employee_id: UUID,
        year: int,
        hours: Decimal,
        seed_hours: Decimal | None,
        process: str,
        input_hash: str | None = None,
    ) -> CarryoverRecord:
        """Insert or replace the (employee, year) row.

        ``seed_hours`` and ``input_hash`` are None for imported rows.
        """
        ...

    async def invalidate_carryover(
        self, tx: Transaction, employee_id: UUID, from_year: int, process: str
    ) -> int:
        """Soft-delete rows of ``from_year`` and later; returns affected rows."""
        ...

    async def insert_billing_period(
        self, tx: Transaction, period: Period, created_by: str
    ) -> BillingPeriodRecord:
        """Insert the header row.

        Raises:
            ConflictAlreadyFinalized: When the bounds are already taken
        """
        ...

    async def insert_billing_period_snapshot(
        self,
        tx: Transaction,
        billing_period_id: UUID,
        employee_id: UUID,
        value: BalanceValue,
        created_by: str,
    ) -> None:
        ...

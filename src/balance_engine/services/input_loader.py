"""Builds calculators from a consistent store snapshot."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any
from uuid import UUID

from balance_engine.calculators import (
    ActualHoursAggregator,
    BalanceCalculator,
    ContractResolver,
    ExpectedHoursCalculator,
    ExtraHoursAggregator,
)
from balance_engine.calculators.types import BookedSlot, ExtraHoursEntry, SpecialDay, WorkContract
from balance_engine.calculators.weeks import Period, iso_year_bounds, iso_year_of
from balance_engine.config import Settings, get_settings
from balance_engine.stores.base import BalanceStore, Transaction


def year_window(period: Period) -> Period:
    """Widen a period to the full ISO years it touches."""
    start, _ = iso_year_bounds(iso_year_of(period.start))
    _, end = iso_year_bounds(iso_year_of(period.end))
    return Period(start, end)


def _row(value: Any) -> dict[str, Any]:
    data = asdict(value)
    data.pop("deleted_at", None)
    for key, item in data.items():
        if isinstance(item, frozenset):
            data[key] = sorted(item)
    return data


@dataclass
class BalanceInputs:
    """Rows one employee's figures are computed from."""

    employee_id: UUID
    contracts: list[WorkContract] = field(default_factory=list)
    bookings: list[BookedSlot] = field(default_factory=list)
    special_days: list[SpecialDay] = field(default_factory=list)
    extra_hours: list[ExtraHoursEntry] = field(default_factory=list)
    links: set[UUID] = field(default_factory=set)


class BalanceInputLoader:
    """Reads contracts, bookings, extra hours and special days for a window."""

    def __init__(self, store: BalanceStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    async def read(self, tx: Transaction, window: Period, employee_id: UUID) -> BalanceInputs:
        week_range = window.week_range
        return BalanceInputs(
            employee_id=employee_id,
            contracts=await self.store.list_active_contracts(tx, employee_id, week_range),
            bookings=await self.store.list_bookings(tx, employee_id, week_range),
            special_days=await self.store.list_special_days(tx, week_range),
            extra_hours=await self.store.list_extra_hours(tx, employee_id, window),
            links=await self.store.list_custom_extra_hours_links(tx, employee_id),
        )

    def build(self, inputs: BalanceInputs) -> BalanceCalculator:
        resolver = ContractResolver(inputs.contracts, strict=self.settings.strict_contract_overlap)
        return BalanceCalculator(
            expected=ExpectedHoursCalculator(
                resolver,
                inputs.special_days,
                workday_start=self.settings.workday_start,
                workday_end=self.settings.workday_end,
            ),
            actual=ActualHoursAggregator(inputs.bookings),
            extra=ExtraHoursAggregator(
                inputs.extra_hours,
                {inputs.employee_id: inputs.links},
                count_unlinked=self.settings.count_unlinked_custom_hours,
            ),
            precision=self.settings.hours_precision,
        )

    async def load(self, tx: Transaction, window: Period, employee_id: UUID) -> BalanceCalculator:
        """Build a calculator for one employee covering every day of ``window``."""
        return self.build(await self.read(tx, window, employee_id))

    def fingerprint(self, inputs: BalanceInputs) -> str:
        """Deterministic hash of the inputs and the settings that shape the figures."""
        data = {
            "contracts": sorted((_row(c) for c in inputs.contracts), key=str),
            "bookings": sorted((_row(b) for b in inputs.bookings), key=str),
            "special_days": sorted((_row(d) for d in inputs.special_days), key=str),
            "extra_hours": sorted((_row(e) for e in inputs.extra_hours), key=str),
            "links": sorted(str(link) for link in inputs.links),
            "settings": [
                self.settings.hours_precision,
                self.settings.strict_contract_overlap,
                self.settings.count_unlinked_custom_hours,
                self.settings.workday_start,
                self.settings.workday_end,
            ],
        }
        json_str = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    async def year_fingerprint(self, tx: Transaction, employee_id: UUID, year: int) -> str:
        """Fingerprint of everything the balance of an ISO year depends on."""
        return self.fingerprint(await self.read(tx, Period.for_iso_year(year), employee_id))
    async def employees_in(self, tx: Transaction, period: Period) -> list[UUID]:
        """Employees with a contract or a booking in the period."""
        week_range = period.week_range
        employees = set()
        for contract in await self.store.list_active_contracts(tx, None, week_range):
            if contract.first_day <= period.end and contract.last_day >= period.start:
                employees.add(contract.employee_id)
        for booking in await self.store.list_bookings(tx, None, week_range):
            if period.contains(booking.day):
                employees.add(booking.employee_id)
        return sorted(employees, key=str)

    async def earliest_year(self, tx: Transaction, employee_id: UUID) -> int | None:
        """ISO year of the employee's first contract, or None without contracts."""
        contracts = await self.store.list_contracts(tx, employee_id)
        if not contracts:
            return None
        return min(c.from_week.year for c in contracts)

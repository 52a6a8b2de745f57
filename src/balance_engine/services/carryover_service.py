"""Yearly carryover caching with cascade invalidation."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from balance_engine.calculators.types import CarryoverRecord
from balance_engine.calculators.weeks import IsoWeek, Period, iso_year_of
from balance_engine.config import Settings, get_settings
from balance_engine.context import RequestContext
from balance_engine.services.input_loader import BalanceInputLoader
from balance_engine.services.transaction import use_transaction
from balance_engine.stores.base import BalanceStore, Transaction

logger = logging.getLogger(__name__)


class CarryoverStale(Exception):
    """Raised when a stored carryover row no longer matches the row it was chained from."""

    def __init__(self, employee_id: UUID, year: int, reason: str):
        self.employee_id = employee_id
        self.year = year
        self.reason = reason
        super().__init__(f"Carryover {year} of employee {employee_id} is stale: {reason}")


class CarryoverService:
    """Persists ``carryover(year) = carryover(year - 1) + balance(full ISO year)``.

    Key invariants:
    1. Each computed row records its seed and a fingerprint of its year's inputs
    2. A row whose seed or inputs no longer match is never served, nor is
       any row chained from it
    3. Editing data of year Y invalidates the rows of Y and every later year
    4. Years before the employee's first contract carry nothing
    """

    def __init__(
        self,
        store: BalanceStore,
        settings: Settings | None = None,
        loader: BalanceInputLoader | None = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.loader = loader or BalanceInputLoader(store, self.settings)

    async def _stale_reason(
        self, tx: Transaction, record: CarryoverRecord, earliest: int | None
    ) -> str | None:
        if record.seed_hours is None:
            return None

        previous = await self.store.get_carryover(tx, record.employee_id, record.year - 1)
        if previous is None:
            if earliest is not None and record.year - 1 >= earliest:
                return f"carryover {record.year - 1} is missing"
            if record.seed_hours != 0:
                return f"seed {record.seed_hours} without a previous year"
        elif previous.carryover_hours != record.seed_hours:
            return (
                f"seed {record.seed_hours} differs from carryover "
                f"{record.year - 1} = {previous.carryover_hours}"
            )

        if record.input_hash is not None:
            current = await self.loader.year_fingerprint(tx, record.employee_id, record.year)
            if current != record.input_hash:
                return f"inputs of {record.year} changed since it was computed"

        if previous is not None:
            reason = await self._stale_reason(tx, previous, earliest)
            if reason is not None:
                return f"carryover {record.year - 1} is stale: {reason}"
        return None

    async def get_carryover(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        year: int,
        tx: Transaction | None = None,
    ) -> CarryoverRecord | None:
        """Return the stored row, or None.

        Raises:
            CarryoverStale: When the row was chained from a value that has since changed
        """
        async with use_transaction(self.store, tx) as tx:
            record = await self.store.get_carryover(tx, employee_id, year)
            if record is None:
                return None
            earliest = await self.loader.earliest_year(tx, employee_id)
            reason = await self._stale_reason(tx, record, earliest)
            if reason is not None:
                raise CarryoverStale(employee_id, year, reason)
            return record

    async def get_or_compute(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        year: int,
        tx: Transaction | None = None,
    ) -> Decimal:
        """Return the carryover out of ``year``, computing and storing missing rows.

        The walk back stops one year before the first contract so an imported
        opening balance is picked up. Earlier years without a row carry nothing.
        """
        async with use_transaction(self.store, tx) as tx:
            earliest = await self.loader.earliest_year(tx, employee_id)
            if earliest is None or year < earliest:
                record = await self.store.get_carryover(tx, employee_id, year)
                if record is not None and await self._stale_reason(tx, record, earliest) is None:
                    return record.carryover_hours
                return Decimal("0")

            # Walk back to the newest usable row
            found: CarryoverRecord | None = None
            for candidate_year in range(year, earliest - 2, -1):
                record = await self.store.get_carryover(tx, employee_id, candidate_year)
                if record is None:
                    continue
                reason = await self._stale_reason(tx, record, earliest)
                if reason is None:
                    found = record
                    break
                logger.warning(
                    "Discarding stale carryover %s of employee %s: %s",
                    candidate_year,
                    employee_id,
                    reason,
                )
                await self.store.invalidate_carryover(
                    tx, employee_id, candidate_year, ctx.process
                )

            carryover = found.carryover_hours if found else Decimal("0")
            first_year = found.year + 1 if found else earliest

            for current in range(first_year, year + 1):
                inputs = await self.loader.read(tx, Period.for_iso_year(current), employee_id)
                calculator = self.loader.build(inputs)
                hours = carryover + calculator.year_balance(employee_id, current)
                await self.store.put_carryover(
                    tx,
                    employee_id,
                    current,
                    hours,
                    carryover,
                    ctx.process,
                    input_hash=self.loader.fingerprint(inputs),
                )
                logger.info(
                    "Computed carryover %s for employee %s: %s", current, employee_id, hours
                )
                carryover = hours

            return carryover

    async def invalidate_from(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        year: int,
        tx: Transaction | None = None,
    ) -> int:
        """Soft-delete the rows of ``year`` and all later years."""
        async with use_transaction(self.store, tx) as tx:
            count = await self.store.invalidate_carryover(tx, employee_id, year, ctx.process)
        if count:
            logger.info(
                "Invalidated %d carryover rows of employee %s from %s", count, employee_id, year
            )
        return count

    async def record_change(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        when: date | datetime | IsoWeek,
        tx: Transaction | None = None,
    ) -> int:
        """Cascade after a retroactive edit of data dated ``when``."""
        if isinstance(when, IsoWeek):
            year = when.year
        elif isinstance(when, datetime):
            year = iso_year_of(when.date())
        else:
            year = iso_year_of(when)
        return await self.invalidate_from(ctx, employee_id, year, tx)

    async def set_carryover(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        year: int,
        hours: Decimal,
        tx: Transaction | None = None,
    ) -> CarryoverRecord:
        """Import a carryover value; it anchors the chain and drops later rows."""
        async with use_transaction(self.store, tx) as tx:
            await self.store.invalidate_carryover(tx, employee_id, year + 1, ctx.process)
            record = await self.store.put_carryover(
                tx, employee_id, year, Decimal(hours), None, ctx.process
            )
        logger.info("Imported carryover %s for employee %s: %s", year, employee_id, hours)
        return record

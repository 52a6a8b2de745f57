"""Billing period finalization."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from uuid import UUID

from balance_engine.calculators.types import BillingPeriodRecord, BillingPeriodSnapshot
from balance_engine.calculators.weeks import Period, iso_year_bounds, iso_year_of
from balance_engine.config import Settings, get_settings
from balance_engine.context import RequestContext
from balance_engine.services.balance_service import BalanceService
from balance_engine.services.transaction import use_transaction
from balance_engine.stores.base import BalanceStore, ConflictAlreadyFinalized, Transaction

logger = logging.getLogger(__name__)


class SnapshotIncomplete(Exception):
    """Raised when some employees could not be computed; nothing is stored."""

    def __init__(self, period: Period, errors: dict[UUID, Exception]):
        self.period = period
        self.errors = errors
        super().__init__(
            f"Billing period {period} not finalized, {len(errors)} employees failed: "
            + "; ".join(f"{emp}: {err}" for emp, err in errors.items())
        )


class BillingPeriodService:
    """Freezes period figures of all employees.

    Key invariants:
    1. One billing period per (start, end), enforced by the store
    2. A snapshot is written completely or not at all
    3. Stored snapshots are never modified
    """

    def __init__(
        self,
        store: BalanceStore,
        settings: Settings | None = None,
        balance: BalanceService | None = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.balance = balance or BalanceService(store, self.settings)

    async def finalize_billing_period(
        self,
        ctx: RequestContext,
        period: Period,
        tx: Transaction | None = None,
    ) -> BillingPeriodSnapshot:
        """Compute and store the snapshot of ``period``.

        Raises:
            ConflictAlreadyFinalized: When the period bounds are already finalized
            SnapshotIncomplete: When any employee fails
        """
        async with use_transaction(self.store, tx) as tx:
            existing = await self.store.find_billing_period(tx, period.start, period.end)
            if existing is not None:
                raise ConflictAlreadyFinalized(period, existing.billing_period_id)

            header = await self.store.insert_billing_period(tx, period, ctx.user)
            results = await self.balance.compute_balance_for_all(ctx, period, None, tx)

            errors = {emp: r.error for emp, r in results.items() if not r.success}
            if errors:
                raise SnapshotIncomplete(period, errors)

            snapshot = BillingPeriodSnapshot(period=header)
            for employee_id, result in results.items():
                for value in result.values:
                    await self.store.insert_billing_period_snapshot(
                        tx, header.billing_period_id, employee_id, value, ctx.user
                    )
                    snapshot.values.setdefault(employee_id, {})[value.value_type] = value

        logger.info(
            "Finalized billing period %s as %s for %d employees",
            period,
            header.billing_period_id,
            len(results),
        )
        return snapshot

    async def finalize_next_billing_period(
        self,
        ctx: RequestContext,
        end_date: date,
        tx: Transaction | None = None,
    ) -> BillingPeriodSnapshot:
        """Finalize from the day after the latest period up to ``end_date``.

        Without earlier periods the new one starts with the ISO year of ``end_date``.
        """
        async with use_transaction(self.store, tx) as tx:
            periods = await self.store.list_billing_periods(tx)
            if periods:
                start = max(p.end_date for p in periods) + timedelta(days=1)
            else:
                start, _ = iso_year_bounds(iso_year_of(end_date))
            if end_date < start:
                raise ValueError(
                    f"End date {end_date} is before the next period start {start}"
                )
            return await self.finalize_billing_period(ctx, Period(start, end_date), tx)

    async def get_billing_period(
        self,
        ctx: RequestContext,
        billing_period_id: UUID,
        tx: Transaction | None = None,
    ) -> BillingPeriodSnapshot | None:
        async with use_transaction(self.store, tx) as tx:
            return await self.store.get_billing_period(tx, billing_period_id)

    async def list_billing_periods(
        self, ctx: RequestContext, tx: Transaction | None = None
    ) -> list[BillingPeriodRecord]:
        async with use_transaction(self.store, tx) as tx:
            return await self.store.list_billing_periods(tx)

"""Balance computation entry points."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from balance_engine.calculators.types import (
    BalanceValue,
    EmployeeBalanceResult,
    ValueType,
    parse_value_type,
)
from balance_engine.calculators.weeks import Period, iso_year_of
from balance_engine.config import Settings, get_settings
from balance_engine.context import RequestContext
from balance_engine.services.carryover_service import CarryoverService
from balance_engine.services.input_loader import BalanceInputLoader, year_window
from balance_engine.services.transaction import use_transaction
from balance_engine.stores.base import BalanceStore, Transaction

logger = logging.getLogger(__name__)


class BalanceService:
    """Computes period figures per employee.

    ``value_types=None`` means the configured tracked types plus every
    custom type the employee has entries for in the loaded years.
    """

    def __init__(
        self,
        store: BalanceStore,
        settings: Settings | None = None,
        carryover: CarryoverService | None = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.loader = BalanceInputLoader(store, self.settings)
        self.carryover = carryover or CarryoverService(store, self.settings, self.loader)

    async def compute_balance(
        self,
        ctx: RequestContext,
        employee_id: UUID,
        period: Period,
        value_types: Sequence[str] | None = None,
        tx: Transaction | None = None,
    ) -> list[BalanceValue]:
        """Compute the requested value types for one employee.

        Raises:
            ValueError: On an unknown value type
            AmbiguousContractOverlap: When overlapping contracts cannot be resolved
            CarryoverStale: Propagated from the carryover chain
        """
        requested = None if value_types is None else [parse_value_type(v) for v in value_types]

        async with use_transaction(self.store, tx) as tx:
            calculator = await self.loader.load(tx, year_window(period), employee_id)
            if requested is None:
                requested = [parse_value_type(v) for v in self.settings.tracked_value_types]
                requested += [
                    v
                    for v in calculator.extra.custom_value_types(employee_id)
                    if v not in requested
                ]

            seed = Decimal("0")
            if ValueType.BALANCE.value in requested:
                seed = await self.carryover.get_or_compute(
                    ctx, employee_id, iso_year_of(period.start) - 1, tx
                )

            return calculator.compute(employee_id, period, requested, seed)

    async def compute_balance_for_all(
        self,
        ctx: RequestContext,
        period: Period,
        value_types: Sequence[str] | None = None,
        tx: Transaction | None = None,
    ) -> dict[UUID, EmployeeBalanceResult]:
        """Compute every employee with a contract or booking in the period.

        A failing employee is recorded with its error; the others still run.
        """
        results: dict[UUID, EmployeeBalanceResult] = {}

        async with use_transaction(self.store, tx) as tx:
            for employee_id in await self.loader.employees_in(tx, period):
                try:
                    values = await self.compute_balance(
                        ctx, employee_id, period, value_types, tx
                    )
                    results[employee_id] = EmployeeBalanceResult(employee_id, values)
                except Exception as e:
                    logger.exception(
                        "Balance computation failed for employee %s in %s", employee_id, period
                    )
                    results[employee_id] = EmployeeBalanceResult(employee_id, error=e)

        return results

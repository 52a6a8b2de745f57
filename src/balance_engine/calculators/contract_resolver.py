"""Work contract resolution per calendar week."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable
from uuid import UUID

from balance_engine.calculators.types import WorkContract
from balance_engine.calculators.weeks import IsoWeek, iter_weeks

logger = logging.getLogger(__name__)


class AmbiguousContractOverlap(Exception):
    """Raised when more than one contract is active for the same week."""

    def __init__(self, employee_id: UUID, week_key: int, contract_ids: list[UUID]):
        self.employee_id = employee_id
        self.week_key = week_key
        self.contract_ids = contract_ids
        super().__init__(
            f"Employee {employee_id} has {len(contract_ids)} overlapping contracts "
            f"in week {week_key}: {', '.join(str(c) for c in contract_ids)}"
        )


def ensure_no_overlap(existing: Iterable[WorkContract], candidate: WorkContract) -> None:
    """Write-time validation: reject a contract overlapping another of the same employee.

    Raises:
        AmbiguousContractOverlap: With the first overlapping week of the two windows
    """
    for contract in existing:
        if (
            contract.is_deleted
            or contract.employee_id != candidate.employee_id
            or contract.contract_id == candidate.contract_id
        ):
            continue
        if contract.overlaps(candidate):
            first_shared = max(contract.first_day, candidate.first_day)
            raise AmbiguousContractOverlap(
                candidate.employee_id,
                IsoWeek.from_date(first_shared).key,
                [contract.contract_id, candidate.contract_id],
            )


class ContractResolver:
    """Selects the single applicable contract for an employee and week.

    Resolution rules:
    1. Soft-deleted contracts never match
    2. A contract matches when ``from_week.key <= key <= to_week.key``
    3. No match means zero expectation for that week
    4. Several matches raise AmbiguousContractOverlap in strict mode; otherwise
       the most recently created contract wins (ties broken by contract id)
       and the conflict is logged
    """

    def __init__(self, contracts: Iterable[WorkContract], strict: bool = True):
        self.strict = strict
        self._by_employee: dict[UUID, list[WorkContract]] = defaultdict(list)
        for contract in contracts:
            if not contract.is_deleted:
                self._by_employee[contract.employee_id].append(contract)
        for employee_contracts in self._by_employee.values():
            employee_contracts.sort(key=lambda c: (c.from_week, c.from_day_of_week))

    def contracts_for(self, employee_id: UUID) -> list[WorkContract]:
        return list(self._by_employee.get(employee_id, ()))

    def resolve(self, employee_id: UUID, week: IsoWeek | int) -> WorkContract | None:
        """Return the contract active in ``week`` (an IsoWeek or a linearized key)."""
        key = week.key if isinstance(week, IsoWeek) else week
        matches = [c for c in self._by_employee.get(employee_id, ()) if c.contains(key)]
        return self._choose(employee_id, key, matches)

    def resolve_day(self, employee_id: UUID, day: date) -> WorkContract | None:
        """Return the contract whose day-granular window contains ``day``."""
        matches = [
            c
            for c in self._by_employee.get(employee_id, ())
            if c.first_day <= day <= c.last_day
        ]
        return self._choose(employee_id, IsoWeek.from_date(day).key, matches)

    def _choose(
        self, employee_id: UUID, key: int, matches: list[WorkContract]
    ) -> WorkContract | None:
        if not matches:
            return None
        if len(matches) == 1:
            return matches[0]

        if self.strict:
            raise AmbiguousContractOverlap(
                employee_id, key, [c.contract_id for c in matches]
            )

        chosen = max(
            matches,
            key=lambda c: (
                c.created_at.timestamp() if c.created_at else float("-inf"),
                str(c.contract_id),
            ),
        )
        logger.warning(
            "Overlapping contracts %s for employee %s in week %s, using %s",
            [str(c.contract_id) for c in matches],
            employee_id,
            key,
            chosen.contract_id,
        )
        return chosen

    def resolve_range(
        self, employee_id: UUID, start: IsoWeek, end: IsoWeek
    ) -> dict[IsoWeek, WorkContract | None]:
        """Resolve every week of an inclusive range."""
        return {week: self.resolve(employee_id, week) for week in iter_weeks(start, end)}

    def earliest_year(self, employee_id: UUID) -> int | None:
        contracts = self._by_employee.get(employee_id)
        if not contracts:
            return None
        return contracts[0].from_week.year

"""Balance calculator - combines expected, actual and extra hours."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from fractions import Fraction
from typing import Callable, Iterable
from uuid import UUID

from balance_engine.calculators.actual_hours import ActualHoursAggregator
from balance_engine.calculators.expected_hours import ExpectedHoursCalculator
from balance_engine.calculators.extra_hours import ExtraHoursAggregator
from balance_engine.calculators.types import (
    CUSTOM_VALUE_PREFIX,
    BalanceValue,
    ExtraHoursCategory,
    ValueType,
    parse_value_type,
    to_hours,
)
from balance_engine.calculators.weeks import (
    Period,
    iso_year_bounds,
    iso_year_of,
    weeks_in_year,
)

# Value types reported as a plain category sum
_CATEGORY_TYPES = {
    ValueType.EXTRA_WORK.value: ExtraHoursCategory.EXTRA_WORK.value,
    ValueType.VACATION_HOURS.value: ExtraHoursCategory.VACATION.value,
    ValueType.SICK_LEAVE.value: ExtraHoursCategory.SICK_LEAVE.value,
    ValueType.HOLIDAY.value: ExtraHoursCategory.HOLIDAY.value,
}


class BalanceCalculator:
    """Computes period figures per value type.

    For every value type with delta source ``d``::

        C(day)          = q(d(year_start .. day))
        value_delta     = C(period.end) - C(period.start - 1)
        value_ytd_from  = seed + C(period.start - 1)
        value_ytd_to    = value_ytd_from + value_delta
        value_full_year = seed + C(year_end)

    ``seed`` is the previous year's carryover for ``balance`` and zero for
    all other types. ``q`` converts exact minutes to quantized hours and
    ``C`` restarts at every ISO year. Rounding happens only on running
    totals, so deltas of adjacent windows add up exactly and the full year
    figure does not depend on the window.

    The calculator is pure: it works on the snapshot it was built from.
    """

    def __init__(
        self,
        expected: ExpectedHoursCalculator,
        actual: ActualHoursAggregator,
        extra: ExtraHoursAggregator,
        precision: int = 4,
    ):
        self.expected = expected
        self.actual = actual
        self.extra = extra
        self.precision = precision

    # ----- delta sources (exact minutes, or exact days for vacation types) -----

    def balance_minutes(self, employee_id: UUID, start: date, end: date) -> Fraction:
        """actual + balance-affecting extra - expected."""
        if end < start:
            return Fraction(0)
        return self.overall_minutes(employee_id, start, end) - self.expected.expected_minutes(
            employee_id, start, end
        )

    def overall_minutes(self, employee_id: UUID, start: date, end: date) -> Fraction:
        if end < start:
            return Fraction(0)
        return (
            self.actual.minutes_between(employee_id, start, end)
            + self.extra.summarize(employee_id, start, end).balance_affecting
        )

    def vacation_days(self, employee_id: UUID, start: date, end: date) -> Fraction:
        """Vacation hours divided by the daily share of the contract of each day."""
        if end < start:
            return Fraction(0)
        days = Fraction(0)
        vacation = self.extra.daily(employee_id, ExtraHoursCategory.VACATION, start, end)
        for day, minutes in vacation.items():
            contract = self.expected.resolver.resolve_day(employee_id, day)
            if contract is None:
                continue
            daily = contract.daily_minutes()
            if daily:
                days += minutes / daily
        return days

    def vacation_entitlement(self, employee_id: UUID, start: date, end: date) -> Fraction:
        """Yearly entitlement pro-rated by the contract days inside the window."""
        if end < start:
            return Fraction(0)
        window = Period(start, end)
        days = Fraction(0)
        for contract in self.expected.resolver.contracts_for(employee_id):
            if not contract.vacation_days:
                continue
            covered = window.intersect(Period(contract.first_day, contract.last_day))
            if covered is None:
                continue
            # Split by ISO year so each year is weighted by its own length
            for year in range(iso_year_of(covered.start), iso_year_of(covered.end) + 1):
                in_year = covered.intersect(Period.for_iso_year(year))
                if in_year is not None:
                    days += Fraction(contract.vacation_days * in_year.days, weeks_in_year(year) * 7)
        return days

    def delta_source(self, value_type: str) -> Callable[[UUID, date, date], Fraction]:
        """Return the exact delta function of a value type."""
        value_type = parse_value_type(value_type)

        if value_type == ValueType.BALANCE:
            return self.balance_minutes
        if value_type == ValueType.OVERALL:
            return self.overall_minutes
        if value_type == ValueType.EXPECTED_HOURS:
            return self._range_guard(self.expected.expected_minutes)
        if value_type == ValueType.SHIFTPLAN:
            return self._range_guard(self.actual.minutes_between)
        if value_type == ValueType.VACATION_DAYS:
            return self._as_minutes(self.vacation_days)
        if value_type == ValueType.VACATION_ENTITLEMENT:
            return self._as_minutes(self.vacation_entitlement)

        key = _CATEGORY_TYPES.get(value_type, value_type)
        if key in _CATEGORY_TYPES.values() or key.startswith(CUSTOM_VALUE_PREFIX):

            def category(employee_id: UUID, start: date, end: date) -> Fraction:
                if end < start:
                    return Fraction(0)
                return self.extra.summarize(employee_id, start, end).category(key)

            return category

        raise ValueError(f"Invalid value type: {value_type}")

    @staticmethod
    def _range_guard(
        func: Callable[[UUID, date, date], Fraction],
    ) -> Callable[[UUID, date, date], Fraction]:
        def guarded(employee_id: UUID, start: date, end: date) -> Fraction:
            if end < start:
                return Fraction(0)
            return func(employee_id, start, end)

        return guarded

    @staticmethod
    def _as_minutes(
        func: Callable[[UUID, date, date], Fraction],
    ) -> Callable[[UUID, date, date], Fraction]:
        # Day counts share the minutes pipeline, q() divides by 60
        def scaled(employee_id: UUID, start: date, end: date) -> Fraction:
            return func(employee_id, start, end) * 60

        return scaled

    # ----- period figures -----

    def quantize(self, minutes: Fraction) -> Decimal:
        return to_hours(minutes, self.precision)

    def running_total(
        self,
        delta: Callable[[UUID, date, date], Fraction],
        employee_id: UUID,
        day: date,
    ) -> Decimal:
        """Quantized total from the start of the ISO year of ``day`` through ``day``."""
        year_start, _ = iso_year_bounds(iso_year_of(day))
        return self.quantize(delta(employee_id, year_start, day))

    def span(
        self,
        delta: Callable[[UUID, date, date], Fraction],
        employee_id: UUID,
        start: date,
        end: date,
    ) -> Decimal:
        """Quantized delta of ``[start, end]`` as a difference of running totals.

        Each ISO year is measured against its own running total, so adjacent
        windows always sum to the window that covers both.
        """
        total = Decimal("0")
        for year in range(iso_year_of(start), iso_year_of(end) + 1):
            year_start, year_end = iso_year_bounds(year)
            first = max(start, year_start)
            last = min(end, year_end)
            if last < first:
                continue
            total += self.running_total(delta, employee_id, last)
            if first > year_start:
                total -= self.running_total(delta, employee_id, first - timedelta(days=1))
        return total

    def compute_value(
        self,
        employee_id: UUID,
        period: Period,
        value_type: str,
        seed: Decimal = Decimal("0"),
    ) -> BalanceValue:
        """Compute the four figures of one value type."""
        delta = self.delta_source(value_type)
        year_start, _ = iso_year_bounds(iso_year_of(period.start))
        _, year_end = iso_year_bounds(iso_year_of(period.end))

        value_delta = self.span(delta, employee_id, period.start, period.end)
        value_ytd_from = seed
        if period.start > year_start:
            value_ytd_from += self.running_total(
                delta, employee_id, period.start - timedelta(days=1)
            )
        return BalanceValue(
            value_type=parse_value_type(value_type),
            value_delta=value_delta,
            value_ytd_from=value_ytd_from,
            value_ytd_to=value_ytd_from + value_delta,
            value_full_year=seed + self.span(delta, employee_id, year_start, year_end),
        )

    def compute(
        self,
        employee_id: UUID,
        period: Period,
        value_types: Iterable[str],
        carryover: Decimal = Decimal("0"),
    ) -> list[BalanceValue]:
        """Compute all requested value types in order; ``carryover`` seeds ``balance``."""
        results = []
        for value_type in value_types:
            seed = carryover if parse_value_type(value_type) == ValueType.BALANCE else Decimal("0")
            results.append(self.compute_value(employee_id, period, value_type, seed))
        return results

    def year_balance(self, employee_id: UUID, year: int) -> Decimal:
        """Quantized balance delta of a full ISO year (no carryover)."""
        start, end = iso_year_bounds(year)
        return self.quantize(self.balance_minutes(employee_id, start, end))

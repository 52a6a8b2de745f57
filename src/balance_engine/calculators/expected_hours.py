"""Expected hours from contracts and calendar overrides."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from fractions import Fraction
from typing import Iterable
from uuid import UUID

from balance_engine.calculators.contract_resolver import ContractResolver
from balance_engine.calculators.types import SpecialDay, SpecialDayType
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek, iter_days


@dataclass(frozen=True)
class ExpectedDay:
    """Expected minutes for one day."""

    day: date
    week: IsoWeek
    minutes: Fraction
    contract_id: UUID | None = None
    override: SpecialDayType | None = None


@dataclass
class ExpectedSeries:
    """Day-granular expected minutes with week subtotals."""

    days: list[ExpectedDay] = field(default_factory=list)
    weeks: dict[IsoWeek, Fraction] = field(default_factory=dict)

    @property
    def total(self) -> Fraction:
        return sum(self.weeks.values(), Fraction(0))


def _seconds(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


class ExpectedHoursCalculator:
    """Distributes weekly contract hours over days.

    Per day:
    1) Resolve the contract whose first/last day window holds the day (none -> 0)
    2) Inactive weekday -> 0
    3) Otherwise ``expected_hours / number of active weekdays``
    4) A holiday special day zeroes the day; a short day keeps the part of
       the working day before its closing time

    Several special days on one date resolve to the one leaving the least
    expected time: a holiday over any short day, an earlier closing time
    over a later one.
    """

    def __init__(
        self,
        resolver: ContractResolver,
        special_days: Iterable[SpecialDay] = (),
        workday_start: time = time(8, 0),
        workday_end: time = time(18, 0),
    ):
        if workday_end <= workday_start:
            raise ValueError("Working day must end after it starts")
        self.resolver = resolver
        self.workday_start = workday_start
        self.workday_end = workday_end
        self._special_days: dict[date, SpecialDay] = {}
        for special_day in special_days:
            if special_day.deleted_at is not None:
                continue
            current = self._special_days.get(special_day.day)
            if current is None or self._precedence(special_day) < self._precedence(current):
                self._special_days[special_day.day] = special_day

    def expected_for_day(self, employee_id: UUID, day: date) -> ExpectedDay:
        week = IsoWeek.from_date(day)
        contract = self.resolver.resolve_day(employee_id, day)
        if contract is None:
            return ExpectedDay(day, week, Fraction(0))

        minutes = Fraction(0)
        if DayOfWeek.from_date(day) in contract.workdays:
            minutes = contract.daily_minutes()

        special_day = self._special_days.get(day)
        if special_day is None:
            return ExpectedDay(day, week, minutes, contract.contract_id)

        return ExpectedDay(
            day,
            week,
            minutes * self._override_factor(special_day),
            contract.contract_id,
            special_day.day_type,
        )

    def expected_series(self, employee_id: UUID, start: date, end: date) -> ExpectedSeries:
        """Expected minutes for every day of ``[start, end]``."""
        series = ExpectedSeries()
        weeks: dict[IsoWeek, Fraction] = defaultdict(Fraction)
        for day in iter_days(start, end):
            expected = self.expected_for_day(employee_id, day)
            series.days.append(expected)
            weeks[expected.week] += expected.minutes
        series.weeks = dict(weeks)
        return series

    def expected_minutes(self, employee_id: UUID, start: date, end: date) -> Fraction:
        return self.expected_series(employee_id, start, end).total

    def _precedence(self, special_day: SpecialDay) -> tuple[Fraction, bool]:
        # Lowest expectation wins; a holiday beats a short day closing at opening time
        return (
            self._override_factor(special_day),
            special_day.day_type != SpecialDayType.HOLIDAY,
        )

    def _override_factor(self, special_day: SpecialDay) -> Fraction:
        if special_day.day_type == SpecialDayType.HOLIDAY:
            return Fraction(0)
        if special_day.time_of_day is None:
            return Fraction(1)

        open_seconds = _seconds(self.workday_end) - _seconds(self.workday_start)
        worked = _seconds(special_day.time_of_day) - _seconds(self.workday_start)
        return min(max(Fraction(worked, open_seconds), Fraction(0)), Fraction(1))

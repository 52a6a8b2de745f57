"""Realized working time from slot bookings."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from fractions import Fraction
from typing import Iterable
from uuid import UUID

from balance_engine.calculators.types import BookedSlot
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek

BookingKey = tuple[UUID, int, int, DayOfWeek]  # (employee, year, week, weekday)


class ActualHoursAggregator:
    """Sums slot durations of non-deleted bookings.

    Durations are summed as exact minutes; conversion to hours happens at
    the output boundary only.
    """

    def __init__(self, bookings: Iterable[BookedSlot]):
        totals: dict[BookingKey, Fraction] = defaultdict(Fraction)
        for booking in bookings:
            if booking.deleted_at is not None:
                continue
            key = (booking.employee_id, booking.year, booking.calendar_week, booking.day_of_week)
            totals[key] += booking.minutes
        self._totals = dict(totals)

    def totals(self) -> dict[BookingKey, Fraction]:
        return dict(self._totals)

    def employee_ids(self) -> set[UUID]:
        return {key[0] for key in self._totals}

    def for_week(self, employee_id: UUID, week: IsoWeek) -> dict[DayOfWeek, Fraction]:
        """Minutes per weekday for one exact week."""
        return {
            day_of_week: minutes
            for (emp, year, cw, day_of_week), minutes in self._totals.items()
            if emp == employee_id and year == week.year and cw == week.week
        }

    def in_week_range(
        self, employee_id: UUID, start: IsoWeek, end: IsoWeek
    ) -> dict[tuple[IsoWeek, DayOfWeek], Fraction]:
        """Minutes per (week, weekday) for an inclusive week-key range."""
        result: dict[tuple[IsoWeek, DayOfWeek], Fraction] = {}
        for (emp, year, cw, day_of_week), minutes in self._totals.items():
            if emp != employee_id:
                continue
            key = year * 100 + cw
            if start.key <= key <= end.key:
                result[(IsoWeek(year, cw), day_of_week)] = minutes
        return result

    def minutes_between(self, employee_id: UUID, start: date, end: date) -> Fraction:
        """Total minutes booked on days ``start..end`` inclusive."""
        total = Fraction(0)
        for (week, day_of_week), minutes in self.in_week_range(
            employee_id, IsoWeek.from_date(start), IsoWeek.from_date(end)
        ).items():
            if start <= week.day(day_of_week) <= end:
                total += minutes
        return total

"""ISO calendar week helpers.

Every time axis in the engine is the ISO calendar: contracts, bookings and
special days are addressed by ``(year, calendar_week)`` and a "year" always
means the ISO week-numbering year (Monday of week 1 to Sunday of week 52/53).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import IntEnum
from typing import Iterator


class DayOfWeek(IntEnum):
    """ISO weekday numbers."""

    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7

    @classmethod
    def from_date(cls, day: date) -> DayOfWeek:
        return cls(day.isoweekday())


def weeks_in_year(year: int) -> int:
    """Return the number of ISO weeks (52 or 53) in an ISO year."""
    # Dec 28th always falls into the last ISO week of its year
    return date(year, 12, 28).isocalendar()[1]


def iso_year_bounds(year: int) -> tuple[date, date]:
    """Return the first Monday and the last Sunday of an ISO year."""
    return (
        date.fromisocalendar(year, 1, 1),
        date.fromisocalendar(year, weeks_in_year(year), 7),
    )


def iso_year_of(day: date) -> int:
    return day.isocalendar()[0]


@dataclass(frozen=True, order=True)
class IsoWeek:
    """A calendar week of an ISO year, ordered across year boundaries."""

    year: int
    week: int

    def __post_init__(self) -> None:
        if not 1 <= self.week <= weeks_in_year(self.year):
            raise ValueError(f"Week {self.week} does not exist in ISO year {self.year}")

    @property
    def key(self) -> int:
        """Linearized week key ``year * 100 + week``."""
        return self.year * 100 + self.week

    @classmethod
    def from_key(cls, key: int) -> IsoWeek:
        return cls(key // 100, key % 100)

    @classmethod
    def from_date(cls, day: date) -> IsoWeek:
        year, week, _ = day.isocalendar()
        return cls(year, week)

    def day(self, day_of_week: int) -> date:
        return date.fromisocalendar(self.year, self.week, int(day_of_week))

    def next(self) -> IsoWeek:
        if self.week == weeks_in_year(self.year):
            return IsoWeek(self.year + 1, 1)
        return IsoWeek(self.year, self.week + 1)

    def previous(self) -> IsoWeek:
        if self.week == 1:
            return IsoWeek(self.year - 1, weeks_in_year(self.year - 1))
        return IsoWeek(self.year, self.week - 1)

    def __str__(self) -> str:
        return f"{self.year}-W{self.week:02d}"


def iter_weeks(start: IsoWeek, end: IsoWeek) -> Iterator[IsoWeek]:
    """Iterate weeks from ``start`` to ``end`` inclusive."""
    week = start
    while week <= end:
        yield week
        week = week.next()


def iter_days(start: date, end: date) -> Iterator[date]:
    """Iterate dates from ``start`` to ``end`` inclusive."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


@dataclass(frozen=True)
class Period:
    """Inclusive date window ``[start, end]``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Period end {self.end} is before start {self.start}")

    @classmethod
    def for_weeks(cls, from_week: IsoWeek, to_week: IsoWeek) -> Period:
        return cls(from_week.day(DayOfWeek.MONDAY), to_week.day(DayOfWeek.SUNDAY))

    @classmethod
    def for_week(cls, week: IsoWeek) -> Period:
        return cls.for_weeks(week, week)

    @classmethod
    def for_iso_year(cls, year: int) -> Period:
        return cls(*iso_year_bounds(year))

    @property
    def week_range(self) -> tuple[IsoWeek, IsoWeek]:
        return IsoWeek.from_date(self.start), IsoWeek.from_date(self.end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def intersect(self, other: Period) -> Period | None:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end < start:
            return None
        return Period(start, end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"

"""Tests for booked hours aggregation."""

from datetime import date, datetime, time, timezone
from fractions import Fraction
from uuid import uuid4

import pytest

from balance_engine.calculators.actual_hours import ActualHoursAggregator
from balance_engine.calculators.types import BookedSlot
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek


def booking(employee_id, week, day_of_week, start, end, **kwargs):
    return BookedSlot(
        booking_id=uuid4(),
        employee_id=employee_id,
        year=week.year,
        calendar_week=week.week,
        day_of_week=day_of_week,
        time_from=start,
        time_to=end,
        **kwargs,
    )


class TestActualHours:
    """Test exact-minute aggregation of bookings."""

    def test_sums_per_day(self, employee_id):
        week = IsoWeek(2024, 3)
        aggregator = ActualHoursAggregator(
            [
                booking(employee_id, week, DayOfWeek.MONDAY, time(8), time(12)),
                booking(employee_id, week, DayOfWeek.MONDAY, time(13), time(17)),
                booking(employee_id, week, DayOfWeek.TUESDAY, time(9), time(10, 30)),
            ]
        )

        assert aggregator.for_week(employee_id, week) == {
            DayOfWeek.MONDAY: 480,
            DayOfWeek.TUESDAY: 90,
        }

    def test_fractional_minutes_are_exact(self, employee_id):
        """Seconds become exact fractions of a minute."""
        week = IsoWeek(2024, 3)
        aggregator = ActualHoursAggregator(
            [booking(employee_id, week, DayOfWeek.MONDAY, time(8), time(8, 0, 20))] * 3
        )

        assert aggregator.for_week(employee_id, week)[DayOfWeek.MONDAY] == Fraction(1)

    def test_deleted_booking_ignored(self, employee_id):
        week = IsoWeek(2024, 3)
        aggregator = ActualHoursAggregator(
            [
                booking(employee_id, week, DayOfWeek.MONDAY, time(8), time(16)),
                booking(
                    employee_id,
                    week,
                    DayOfWeek.TUESDAY,
                    time(8),
                    time(16),
                    deleted_at=datetime.now(timezone.utc),
                ),
            ]
        )

        assert aggregator.for_week(employee_id, week) == {DayOfWeek.MONDAY: 480}

    def test_week_range_crosses_year(self, employee_id):
        """Week-key ranges include 2020-W53."""
        aggregator = ActualHoursAggregator(
            [
                booking(employee_id, IsoWeek(2020, 52), DayOfWeek.MONDAY, time(8), time(9)),
                booking(employee_id, IsoWeek(2020, 53), DayOfWeek.MONDAY, time(8), time(10)),
                booking(employee_id, IsoWeek(2021, 1), DayOfWeek.MONDAY, time(8), time(11)),
            ]
        )

        result = aggregator.in_week_range(employee_id, IsoWeek(2020, 53), IsoWeek(2021, 1))

        assert result == {
            (IsoWeek(2020, 53), DayOfWeek.MONDAY): 120,
            (IsoWeek(2021, 1), DayOfWeek.MONDAY): 180,
        }

    def test_minutes_between_dates(self, employee_id):
        week = IsoWeek(2024, 3)
        aggregator = ActualHoursAggregator(
            [
                booking(employee_id, week, day, time(8), time(16))
                for day in (DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY)
            ]
            + [booking(uuid4(), week, DayOfWeek.MONDAY, time(8), time(16))]
        )

        assert aggregator.minutes_between(employee_id, date(2024, 1, 15), date(2024, 1, 17)) == 960
        assert aggregator.minutes_between(employee_id, date(2024, 1, 16), date(2024, 1, 16)) == 0
        assert len(aggregator.employee_ids()) == 2

    def test_non_positive_slot_rejected(self, employee_id):
        with pytest.raises(ValueError):
            booking(employee_id, IsoWeek(2024, 3), DayOfWeek.MONDAY, time(10), time(10))

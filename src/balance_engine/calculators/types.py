"""Type definitions for the balance calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from fractions import Fraction
from typing import Any
from uuid import UUID

from balance_engine.calculators.weeks import DayOfWeek, IsoWeek

CUSTOM_VALUE_PREFIX = "custom_extra_hours:"


class ExtraHoursCategory(str, Enum):
    """Extra hours categories."""

    EXTRA_WORK = "extra_work"
    VACATION = "vacation"
    SICK_LEAVE = "sick_leave"
    HOLIDAY = "holiday"
    UNAVAILABLE = "unavailable"
    CUSTOM = "custom"


# Built-in categories that are credited to the balance
BALANCE_CATEGORIES = frozenset(
    {
        ExtraHoursCategory.EXTRA_WORK,
        ExtraHoursCategory.VACATION,
        ExtraHoursCategory.SICK_LEAVE,
        ExtraHoursCategory.HOLIDAY,
    }
)


class SpecialDayType(str, Enum):
    """Calendar override types."""

    HOLIDAY = "holiday"
    SHORT_DAY = "short_day"


class ValueType(str, Enum):
    """Built-in report value types."""

    OVERALL = "overall"
    BALANCE = "balance"
    EXPECTED_HOURS = "expected_hours"
    SHIFTPLAN = "shiftplan"
    EXTRA_WORK = "extra_work"
    VACATION_HOURS = "vacation_hours"
    SICK_LEAVE = "sick_leave"
    HOLIDAY = "holiday"
    VACATION_DAYS = "vacation_days"
    VACATION_ENTITLEMENT = "vacation_entitlement"


def custom_value_type(name: str) -> str:
    return f"{CUSTOM_VALUE_PREFIX}{name}"


def parse_value_type(value: str) -> str:
    """Validate a value type string and return it in canonical form."""
    if value.startswith(CUSTOM_VALUE_PREFIX):
        if not value[len(CUSTOM_VALUE_PREFIX):]:
            raise ValueError("Custom value type requires a name")
        return value
    try:
        return ValueType(value).value
    except ValueError:
        raise ValueError(f"Invalid value type: {value}") from None


def to_hours(minutes: Fraction, precision: int) -> Decimal:
    """Convert exact minutes to hours quantized to ``precision`` places."""
    hours = minutes / 60
    exact = Decimal(hours.numerator) / Decimal(hours.denominator)
    return exact.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)


def to_minutes(hours: Decimal | int | str) -> Fraction:
    return Fraction(Decimal(hours)) * 60


@dataclass(frozen=True)
class WorkContract:
    """Validity-windowed expected weekly hours of one employee."""

    contract_id: UUID
    employee_id: UUID
    expected_hours: Decimal
    from_week: IsoWeek
    to_week: IsoWeek
    workdays: frozenset[DayOfWeek]
    from_day_of_week: DayOfWeek = DayOfWeek.MONDAY
    to_day_of_week: DayOfWeek = DayOfWeek.SUNDAY
    vacation_days: int = 0
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.expected_hours < 0:
            raise ValueError(
                f"Contract {self.contract_id} has negative expected hours {self.expected_hours}"
            )
        if self.to_week < self.from_week:
            raise ValueError(f"Contract {self.contract_id} ends before it starts")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def first_day(self) -> date:
        return self.from_week.day(self.from_day_of_week)

    @property
    def last_day(self) -> date:
        return self.to_week.day(self.to_day_of_week)

    def contains(self, week_key: int) -> bool:
        return self.from_week.key <= week_key <= self.to_week.key

    def overlaps(self, other: WorkContract) -> bool:
        return self.first_day <= other.last_day and other.first_day <= self.last_day

    def daily_minutes(self) -> Fraction:
        """Expected minutes for one active weekday."""
        if not self.workdays:
            return Fraction(0)
        return to_minutes(self.expected_hours) / len(self.workdays)


@dataclass(frozen=True)
class BookedSlot:
    """A booking joined with the slot it occupies."""

    booking_id: UUID
    employee_id: UUID
    year: int
    calendar_week: int
    day_of_week: DayOfWeek
    time_from: time
    time_to: time
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.time_to <= self.time_from:
            raise ValueError(
                f"Booking {self.booking_id} slot ends at {self.time_to} "
                f"before it starts at {self.time_from}"
            )

    @property
    def week(self) -> IsoWeek:
        return IsoWeek(self.year, self.calendar_week)

    @property
    def day(self) -> date:
        return self.week.day(self.day_of_week)

    @property
    def minutes(self) -> Fraction:
        start = self.time_from.hour * 3600 + self.time_from.minute * 60 + self.time_from.second
        end = self.time_to.hour * 3600 + self.time_to.minute * 60 + self.time_to.second
        return Fraction(end - start, 60)


@dataclass(frozen=True)
class CustomExtraHoursType:
    """User-defined extra hours category."""

    custom_extra_hours_id: UUID
    name: str
    modifies_balance: bool
    description: str | None = None
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class ExtraHoursEntry:
    """A categorized absence or adjustment entry."""

    extra_hours_id: UUID
    employee_id: UUID
    amount: Decimal  # Signed hours
    category: ExtraHoursCategory
    occurred_at: datetime
    custom_type: CustomExtraHoursType | None = None
    deleted_at: datetime | None = None

    @property
    def day(self) -> date:
        return self.occurred_at.date()


@dataclass(frozen=True)
class SpecialDay:
    """Calendar override for exactly one day."""

    year: int
    calendar_week: int
    day_of_week: DayOfWeek
    day_type: SpecialDayType
    time_of_day: time | None = None
    deleted_at: datetime | None = None

    @property
    def day(self) -> date:
        return IsoWeek(self.year, self.calendar_week).day(self.day_of_week)


@dataclass(frozen=True)
class CarryoverRecord:
    """Stored yearly carryover row."""

    employee_id: UUID
    year: int
    carryover_hours: Decimal
    seed_hours: Decimal | None = None  # None = imported, not chained
    input_hash: str | None = None  # fingerprint of the year's inputs
    deleted_at: datetime | None = None


@dataclass(frozen=True)
class BalanceValue:
    """Period figures for one value type."""

    value_type: str
    value_delta: Decimal
    value_ytd_from: Decimal
    value_ytd_to: Decimal
    value_full_year: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.value_type,
            "value_delta": str(self.value_delta),
            "value_ytd_from": str(self.value_ytd_from),
            "value_ytd_to": str(self.value_ytd_to),
            "value_full_year": str(self.value_full_year),
        }


@dataclass
class EmployeeBalanceResult:
    """Result-or-error for one employee in a batch computation."""

    employee_id: UUID
    values: list[BalanceValue] = field(default_factory=list)
    error: Exception | None = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BillingPeriodRecord:
    """Header row of a finalized billing period."""

    billing_period_id: UUID
    start_date: date
    end_date: date
    created_by: str
    created_at: datetime | None = None


@dataclass
class BillingPeriodSnapshot:
    """A finalized billing period with its frozen per-employee values."""

    period: BillingPeriodRecord
    values: dict[UUID, dict[str, BalanceValue]] = field(default_factory=dict)

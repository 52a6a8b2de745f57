"""Work contract, slot, booking and calendar override models."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column

from balance_engine.calculators.types import SpecialDay as SpecialDayValue
from balance_engine.calculators.types import SpecialDayType
from balance_engine.calculators.types import WorkContract as WorkContractValue
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek
from balance_engine.models.base import Base, SoftDeleteMixin, TimestampMixin

WEEKDAY_COLUMNS = (
    (DayOfWeek.MONDAY, "monday"),
    (DayOfWeek.TUESDAY, "tuesday"),
    (DayOfWeek.WEDNESDAY, "wednesday"),
    (DayOfWeek.THURSDAY, "thursday"),
    (DayOfWeek.FRIDAY, "friday"),
    (DayOfWeek.SATURDAY, "saturday"),
    (DayOfWeek.SUNDAY, "sunday"),
)


class WorkContract(Base, TimestampMixin, SoftDeleteMixin):
    """Expected weekly hours of an employee over a week window."""

    __tablename__ = "work_contract"

    contract_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    expected_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    from_year: Mapped[int] = mapped_column(Integer, nullable=False)
    from_week: Mapped[int] = mapped_column(Integer, nullable=False)
    from_day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    to_year: Mapped[int] = mapped_column(Integer, nullable=False)
    to_week: Mapped[int] = mapped_column(Integer, nullable=False)
    to_day_of_week: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    monday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    tuesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    wednesday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    thursday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    friday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    saturday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sunday: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vacation_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("expected_hours >= 0", name="work_contract_hours_check"),
        CheckConstraint(
            "from_year * 100 + from_week <= to_year * 100 + to_week",
            name="work_contract_window_check",
        ),
    )

    @classmethod
    def from_value(cls, contract: WorkContractValue) -> WorkContract:
        row = cls(
            contract_id=contract.contract_id,
            employee_id=contract.employee_id,
            expected_hours=contract.expected_hours,
            from_year=contract.from_week.year,
            from_week=contract.from_week.week,
            from_day_of_week=int(contract.from_day_of_week),
            to_year=contract.to_week.year,
            to_week=contract.to_week.week,
            to_day_of_week=int(contract.to_day_of_week),
            vacation_days=contract.vacation_days,
            deleted_at=contract.deleted_at,
        )
        for day_of_week, column in WEEKDAY_COLUMNS:
            setattr(row, column, day_of_week in contract.workdays)
        if contract.created_at is not None:
            row.created_at = contract.created_at
        return row

    def to_value(self) -> WorkContractValue:
        return WorkContractValue(
            contract_id=self.contract_id,
            employee_id=self.employee_id,
            expected_hours=self.expected_hours,
            from_week=IsoWeek(self.from_year, self.from_week),
            to_week=IsoWeek(self.to_year, self.to_week),
            workdays=frozenset(d for d, column in WEEKDAY_COLUMNS if getattr(self, column)),
            from_day_of_week=DayOfWeek(self.from_day_of_week),
            to_day_of_week=DayOfWeek(self.to_day_of_week),
            vacation_days=self.vacation_days,
            created_at=self.created_at,
            deleted_at=self.deleted_at,
        )


class Slot(Base, TimestampMixin, SoftDeleteMixin):
    """Bookable weekday time window."""

    __tablename__ = "slot"

    slot_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    time_from: Mapped[time] = mapped_column(Time, nullable=False)
    time_to: Mapped[time] = mapped_column(Time, nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("time_to > time_from", name="slot_duration_check"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="slot_day_of_week_check"),
    )


class Booking(Base, TimestampMixin, SoftDeleteMixin):
    """An employee occupying a slot in one ISO week."""

    __tablename__ = "booking"

    booking_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    slot_id: Mapped[UUID] = mapped_column(
        ForeignKey("slot.slot_id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_week: Mapped[int] = mapped_column(Integer, nullable=False)


class SpecialDay(Base, TimestampMixin, SoftDeleteMixin):
    """Holiday or short day override."""

    __tablename__ = "special_day"

    special_day_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    calendar_week: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    day_type: Mapped[str] = mapped_column(String, nullable=False)
    time_of_day: Mapped[time | None] = mapped_column(Time, nullable=True)

    __table_args__ = (
        CheckConstraint("day_type IN ('holiday', 'short_day')", name="special_day_type_check"),
    )

    def to_value(self) -> SpecialDayValue:
        return SpecialDayValue(
            year=self.year,
            calendar_week=self.calendar_week,
            day_of_week=DayOfWeek(self.day_of_week),
            day_type=SpecialDayType(self.day_type),
            time_of_day=self.time_of_day,
            deleted_at=self.deleted_at,
        )

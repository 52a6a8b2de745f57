"""SQLAlchemy ORM models for balance engine."""

from balance_engine.models.base import Base, SoftDeleteMixin, TimestampMixin
from balance_engine.models.billing_period import BillingPeriod, BillingPeriodEmployee
from balance_engine.models.carryover import EmployeeYearlyCarryover
from balance_engine.models.contract import Booking, Slot, SpecialDay, WorkContract
from balance_engine.models.extra_hours import (
    CustomExtraHours,
    CustomExtraHoursEmployee,
    ExtraHours,
)

__all__ = [
    "Base",
    "BillingPeriod",
    "BillingPeriodEmployee",
    "Booking",
    "CustomExtraHours",
    "CustomExtraHoursEmployee",
    "EmployeeYearlyCarryover",
    "ExtraHours",
    "Slot",
    "SoftDeleteMixin",
    "SpecialDay",
    "TimestampMixin",
    "WorkContract",
]

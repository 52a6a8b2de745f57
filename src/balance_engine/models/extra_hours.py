"""Extra hours and custom extra hours category models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from balance_engine.calculators.types import (
    CustomExtraHoursType,
    ExtraHoursCategory,
    ExtraHoursEntry,
)
from balance_engine.models.base import Base, SoftDeleteMixin, TimestampMixin


class CustomExtraHours(Base, TimestampMixin, SoftDeleteMixin):
    """User-defined extra hours category."""

    __tablename__ = "custom_extra_hours"

    custom_extra_hours_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    modifies_balance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_value(self) -> CustomExtraHoursType:
        return CustomExtraHoursType(
            custom_extra_hours_id=self.custom_extra_hours_id,
            name=self.name,
            modifies_balance=self.modifies_balance,
            description=self.description,
            deleted_at=self.deleted_at,
        )


class CustomExtraHoursEmployee(Base, TimestampMixin, SoftDeleteMixin):
    """Link between a custom category and an employee allowed to use it."""

    __tablename__ = "custom_extra_hours_employee"

    custom_extra_hours_id: Mapped[UUID] = mapped_column(
        ForeignKey("custom_extra_hours.custom_extra_hours_id", ondelete="CASCADE"),
        primary_key=True,
    )
    employee_id: Mapped[UUID] = mapped_column(primary_key=True)


class ExtraHours(Base, TimestampMixin, SoftDeleteMixin):
    """Categorized absence or adjustment entry."""

    __tablename__ = "extra_hours"

    extra_hours_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    custom_extra_hours_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("custom_extra_hours.custom_extra_hours_id"), nullable=True
    )
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('extra_work', 'vacation', 'sick_leave', 'holiday', "
            "'unavailable', 'custom')",
            name="extra_hours_category_check",
        ),
    )

    def to_value(self, custom_type: CustomExtraHours | None = None) -> ExtraHoursEntry:
        return ExtraHoursEntry(
            extra_hours_id=self.extra_hours_id,
            employee_id=self.employee_id,
            amount=self.amount,
            category=ExtraHoursCategory(self.category),
            occurred_at=self.occurred_at,
            custom_type=custom_type.to_value() if custom_type is not None else None,
            deleted_at=self.deleted_at,
        )

"""Finalized billing period models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from balance_engine.calculators.types import BalanceValue, BillingPeriodRecord
from balance_engine.models.base import Base, TimestampMixin


class BillingPeriod(Base, TimestampMixin):
    """Header of an immutable period snapshot."""

    __tablename__ = "billing_period"

    billing_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str] = mapped_column(String, nullable=False)

    employees: Mapped[list[BillingPeriodEmployee]] = relationship(
        back_populates="billing_period", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("start_date", "end_date", name="billing_period_bounds_unique"),
        CheckConstraint("end_date >= start_date", name="billing_period_dates_check"),
    )

    def to_value(self) -> BillingPeriodRecord:
        return BillingPeriodRecord(
            billing_period_id=self.billing_period_id,
            start_date=self.start_date,
            end_date=self.end_date,
            created_by=self.created_by,
            created_at=self.created_at,
        )


class BillingPeriodEmployee(Base, TimestampMixin):
    """Frozen figures of one value type for one employee."""

    __tablename__ = "billing_period_employee"

    billing_period_employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    billing_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_period.billing_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    value_type: Mapped[str] = mapped_column(String, nullable=False)
    value_delta: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    value_ytd_from: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    value_ytd_to: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    value_full_year: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    created_by: Mapped[str] = mapped_column(String, nullable=False)

    billing_period: Mapped[BillingPeriod] = relationship(back_populates="employees")

    __table_args__ = (
        UniqueConstraint(
            "billing_period_id",
            "employee_id",
            "value_type",
            name="billing_period_employee_value_unique",
        ),
    )

    def to_value(self, precision: int) -> BalanceValue:
        def q(value: Decimal) -> Decimal:
            return value.quantize(Decimal(1).scaleb(-precision))

        return BalanceValue(
            value_type=self.value_type,
            value_delta=q(self.value_delta),
            value_ytd_from=q(self.value_ytd_from),
            value_ytd_to=q(self.value_ytd_to),
            value_full_year=q(self.value_full_year),
        )

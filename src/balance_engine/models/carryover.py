"""Yearly balance carryover model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from balance_engine.calculators.types import CarryoverRecord
from balance_engine.models.base import Base, SoftDeleteMixin, TimestampMixin


class EmployeeYearlyCarryover(Base, TimestampMixin, SoftDeleteMixin):
    """Balance carried into the next ISO year. One row per employee and year."""

    __tablename__ = "employee_yearly_carryover"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    carryover_hours: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    # Previous year's carryover this row was chained from; NULL when imported
    seed_hours: Mapped[Decimal | None] = mapped_column(Numeric(14, 6), nullable=True)
    # Fingerprint of the year's inputs at compute time; NULL when imported
    input_hash: Mapped[str | None] = mapped_column(String(32), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def to_value(self) -> CarryoverRecord:
        return CarryoverRecord(
            employee_id=self.employee_id,
            year=self.year,
            carryover_hours=self.carryover_hours,
            seed_hours=self.seed_hours,
            input_hash=self.input_hash,
            deleted_at=self.deleted_at,
        )

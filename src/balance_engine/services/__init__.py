"""Balance engine services."""

from balance_engine.services.balance_service import BalanceService
from balance_engine.services.billing_period_service import BillingPeriodService, SnapshotIncomplete
from balance_engine.services.carryover_service import CarryoverService, CarryoverStale
from balance_engine.services.input_loader import BalanceInputLoader
from balance_engine.services.transaction import use_transaction

__all__ = [
    "BalanceInputLoader",
    "BalanceService",
    "BillingPeriodService",
    "CarryoverService",
    "CarryoverStale",
    "SnapshotIncomplete",
    "use_transaction",
]

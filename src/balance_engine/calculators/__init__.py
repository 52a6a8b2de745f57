"""Balance hours calculation pipeline."""

from balance_engine.calculators.actual_hours import ActualHoursAggregator
from balance_engine.calculators.balance import BalanceCalculator
from balance_engine.calculators.contract_resolver import (
    AmbiguousContractOverlap,
    ContractResolver,
    ensure_no_overlap,
)
from balance_engine.calculators.expected_hours import ExpectedHoursCalculator
from balance_engine.calculators.extra_hours import ExtraHoursAggregator

__all__ = [
    "ActualHoursAggregator",
    "AmbiguousContractOverlap",
    "BalanceCalculator",
    "ContractResolver",
    "ExpectedHoursCalculator",
    "ExtraHoursAggregator",
    "ensure_no_overlap",
]

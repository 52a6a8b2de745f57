"""Aggregation of categorized extra hours entries."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from typing import Iterable
from uuid import UUID

from balance_engine.calculators.types import (
    BALANCE_CATEGORIES,
    ExtraHoursCategory,
    ExtraHoursEntry,
    custom_value_type,
    to_minutes,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtraHoursSummary:
    """Extra minutes of one employee and window, split by balance effect."""

    by_category: dict[str, Fraction] = field(default_factory=dict)
    balance_affecting: Fraction = Fraction(0)
    informational: Fraction = Fraction(0)
    unlinked_custom: dict[str, Fraction] = field(default_factory=dict)

    def category(self, key: str) -> Fraction:
        return self.by_category.get(key, Fraction(0))


def category_key(entry: ExtraHoursEntry) -> str:
    """Report key of an entry: the category value or ``custom_extra_hours:<name>``."""
    if entry.category == ExtraHoursCategory.CUSTOM and entry.custom_type is not None:
        return custom_value_type(entry.custom_type.name)
    return entry.category.value


class ExtraHoursAggregator:
    """Sums extra hours entries per category.

    Balance-affecting: extra work, vacation, sick leave, holiday and custom
    types flagged ``modifies_balance``. Everything else is informational.

    Custom entries need a live type definition; entries whose definition is
    missing or deleted are excluded. Entries whose type is no longer linked
    to the employee count only when ``count_unlinked`` is set.
    """

    def __init__(
        self,
        entries: Iterable[ExtraHoursEntry],
        linked_custom_ids: dict[UUID, set[UUID]] | None = None,
        count_unlinked: bool = True,
    ):
        self.linked_custom_ids = linked_custom_ids or {}
        self.count_unlinked = count_unlinked
        self._entries: dict[UUID, list[ExtraHoursEntry]] = defaultdict(list)
        for entry in entries:
            if entry.deleted_at is None and self._is_resolvable(entry):
                self._entries[entry.employee_id].append(entry)

    def _is_resolvable(self, entry: ExtraHoursEntry) -> bool:
        if entry.category != ExtraHoursCategory.CUSTOM:
            return True
        if entry.custom_type is None or entry.custom_type.deleted_at is not None:
            logger.warning(
                "Extra hours entry %s refers to a missing custom type, ignoring it",
                entry.extra_hours_id,
            )
            return False
        return True

    def is_linked(self, entry: ExtraHoursEntry) -> bool:
        if entry.custom_type is None:
            return True
        linked = self.linked_custom_ids.get(entry.employee_id, set())
        return entry.custom_type.custom_extra_hours_id in linked

    def is_balance_affecting(self, entry: ExtraHoursEntry) -> bool:
        if entry.category == ExtraHoursCategory.CUSTOM:
            return entry.custom_type is not None and entry.custom_type.modifies_balance
        return entry.category in BALANCE_CATEGORIES

    def entries(self, employee_id: UUID, start: date, end: date) -> list[ExtraHoursEntry]:
        return [e for e in self._entries.get(employee_id, ()) if start <= e.day <= end]

    def employee_ids(self) -> set[UUID]:
        return set(self._entries)

    def custom_value_types(self, employee_id: UUID) -> list[str]:
        """Report keys of all custom types the employee has counted entries for."""
        return sorted(
            {
                category_key(e)
                for e in self._entries.get(employee_id, ())
                if e.category == ExtraHoursCategory.CUSTOM
                and (self.count_unlinked or self.is_linked(e))
            }
        )

    def summarize(self, employee_id: UUID, start: date, end: date) -> ExtraHoursSummary:
        """Sum the entries of ``[start, end]``."""
        by_category: dict[str, Fraction] = defaultdict(Fraction)
        unlinked: dict[str, Fraction] = defaultdict(Fraction)
        summary = ExtraHoursSummary()

        for entry in self.entries(employee_id, start, end):
            key = category_key(entry)
            minutes = to_minutes(entry.amount)

            if not self.is_linked(entry):
                unlinked[key] += minutes
                if not self.count_unlinked:
                    continue

            by_category[key] += minutes
            if self.is_balance_affecting(entry):
                summary.balance_affecting += minutes
            else:
                summary.informational += minutes

        summary.by_category = dict(by_category)
        summary.unlinked_custom = dict(unlinked)
        return summary

    def daily(
        self, employee_id: UUID, category: ExtraHoursCategory, start: date, end: date
    ) -> dict[date, Fraction]:
        """Minutes per day for one built-in category."""
        result: dict[date, Fraction] = defaultdict(Fraction)
        for entry in self.entries(employee_id, start, end):
            if entry.category == category:
                result[entry.day] += to_minutes(entry.amount)
        return dict(result)

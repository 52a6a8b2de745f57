"""Tests for contract resolution."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest

from balance_engine.calculators.contract_resolver import (
    AmbiguousContractOverlap,
    ContractResolver,
    ensure_no_overlap,
)
from balance_engine.calculators.weeks import DayOfWeek, IsoWeek


class TestContractResolver:
    """Test selection of the single applicable contract."""

    def test_resolve_inside_window(self, employee_id, make_contract):
        """A week inside the window resolves to the contract."""
        contract = make_contract(employee_id, from_week=IsoWeek(2024, 1), to_week=IsoWeek(2024, 10))
        resolver = ContractResolver([contract])

        assert resolver.resolve(employee_id, IsoWeek(2024, 1)) == contract
        assert resolver.resolve(employee_id, 202410) == contract

    def test_no_contract_resolves_to_none(self, employee_id, make_contract):
        """Weeks outside every window have no contract."""
        contract = make_contract(employee_id, from_week=IsoWeek(2024, 1), to_week=IsoWeek(2024, 10))
        resolver = ContractResolver([contract])

        assert resolver.resolve(employee_id, IsoWeek(2024, 11)) is None
        assert resolver.resolve(uuid4(), IsoWeek(2024, 5)) is None

    def test_deleted_contract_ignored(self, employee_id, make_contract):
        contract = make_contract(employee_id, deleted_at=datetime.now(timezone.utc))
        resolver = ContractResolver([contract])

        assert resolver.resolve(employee_id, IsoWeek(2024, 5)) is None
        assert resolver.earliest_year(employee_id) is None

    def test_overlap_strict_raises(self, employee_id, make_contract):
        """Two contracts in one week are an error in strict mode."""
        first = make_contract(employee_id, to_week=IsoWeek(2024, 10))
        second = make_contract(employee_id, from_week=IsoWeek(2024, 10))
        resolver = ContractResolver([first, second])

        with pytest.raises(AmbiguousContractOverlap) as exc_info:
            resolver.resolve(employee_id, IsoWeek(2024, 10))

        assert exc_info.value.employee_id == employee_id
        assert exc_info.value.week_key == 202410
        assert set(exc_info.value.contract_ids) == {first.contract_id, second.contract_id}

    def test_overlap_lenient_picks_newest(self, employee_id, make_contract, caplog):
        """Without strict mode the most recently created contract wins."""
        older = make_contract(
            employee_id,
            expected_hours="40",
            created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        )
        newer = make_contract(
            employee_id,
            expected_hours="20",
            created_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
        )
        resolver = ContractResolver([newer, older], strict=False)

        assert resolver.resolve(employee_id, IsoWeek(2024, 5)) == newer
        assert "Overlapping contracts" in caplog.text

    def test_overlap_lenient_tie_broken_by_id(self, employee_id, make_contract):
        created = datetime(2023, 1, 1, tzinfo=timezone.utc)
        low = make_contract(
            employee_id,
            contract_id=UUID("00000000-0000-0000-0000-000000000001"),
            created_at=created,
        )
        high = make_contract(
            employee_id,
            contract_id=UUID("00000000-0000-0000-0000-000000000002"),
            created_at=created,
        )

        assert ContractResolver([high, low], strict=False).resolve(employee_id, 202405) == high
        assert ContractResolver([low, high], strict=False).resolve(employee_id, 202405) == high

    def test_resolve_range(self, employee_id, make_contract):
        """Range resolution maps every week, gaps included."""
        contract = make_contract(employee_id, from_week=IsoWeek(2024, 2), to_week=IsoWeek(2024, 3))
        resolver = ContractResolver([contract])

        result = resolver.resolve_range(employee_id, IsoWeek(2024, 1), IsoWeek(2024, 4))

        assert result == {
            IsoWeek(2024, 1): None,
            IsoWeek(2024, 2): contract,
            IsoWeek(2024, 3): contract,
            IsoWeek(2024, 4): None,
        }

    def test_earliest_year(self, employee_id, make_contract):
        contracts = [
            make_contract(employee_id, from_week=IsoWeek(2024, 1), to_week=IsoWeek(2024, 52)),
            make_contract(employee_id, from_week=IsoWeek(2022, 30), to_week=IsoWeek(2023, 52)),
        ]

        assert ContractResolver(contracts).earliest_year(employee_id) == 2022


class TestEnsureNoOverlap:
    """Test write-time overlap validation."""

    def test_disjoint_contracts_accepted(self, employee_id, make_contract):
        existing = [make_contract(employee_id, to_week=IsoWeek(2024, 10))]
        candidate = make_contract(employee_id, from_week=IsoWeek(2024, 11))

        ensure_no_overlap(existing, candidate)

    def test_overlapping_contract_rejected(self, employee_id, make_contract):
        existing = [make_contract(employee_id, to_week=IsoWeek(2024, 10))]
        candidate = make_contract(employee_id, from_week=IsoWeek(2024, 10))

        with pytest.raises(AmbiguousContractOverlap) as exc_info:
            ensure_no_overlap(existing, candidate)

        assert exc_info.value.week_key == 202410

    def test_day_granular_windows(self, employee_id, make_contract):
        """Contracts sharing a week but not a day do not overlap."""
        existing = [
            make_contract(
                employee_id, to_week=IsoWeek(2024, 10), to_day_of_week=DayOfWeek.WEDNESDAY
            )
        ]
        candidate = make_contract(
            employee_id, from_week=IsoWeek(2024, 10), from_day_of_week=DayOfWeek.THURSDAY
        )

        ensure_no_overlap(existing, candidate)

    def test_other_employee_and_deleted_ignored(self, employee_id, make_contract):
        existing = [
            make_contract(uuid4()),
            make_contract(employee_id, deleted_at=datetime.now(timezone.utc)),
        ]

        ensure_no_overlap(existing, make_contract(employee_id))


class TestResolveDay:
    """Test day-granular resolution."""

    def test_split_week_resolves_per_day(self, employee_id, make_contract):
        """Contracts handing over mid-week are not ambiguous per day."""
        first = make_contract(
            employee_id, to_week=IsoWeek(2024, 10), to_day_of_week=DayOfWeek.WEDNESDAY
        )
        second = make_contract(
            employee_id, from_week=IsoWeek(2024, 10), from_day_of_week=DayOfWeek.THURSDAY
        )
        resolver = ContractResolver([first, second])
        week = IsoWeek(2024, 10)

        assert resolver.resolve_day(employee_id, week.day(DayOfWeek.WEDNESDAY)) == first
        assert resolver.resolve_day(employee_id, week.day(DayOfWeek.THURSDAY)) == second
        with pytest.raises(AmbiguousContractOverlap):
            resolver.resolve(employee_id, week)

    def test_day_outside_window(self, employee_id, make_contract):
        contract = make_contract(
            employee_id, from_week=IsoWeek(2024, 2), from_day_of_week=DayOfWeek.WEDNESDAY
        )
        resolver = ContractResolver([contract])

        week = IsoWeek(2024, 2)

        assert resolver.resolve_day(employee_id, week.day(DayOfWeek.TUESDAY)) is None
        assert resolver.resolve_day(employee_id, week.day(DayOfWeek.WEDNESDAY)) == contract

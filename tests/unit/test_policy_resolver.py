"""
Unit tests for policy resolution.
"""

from datetime import date, datetime

import pytest

from clinic_coverage.core.policy_resolver import PolicyResolver, resolve_active_policies
from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.domain.errors import DuplicatePriorityError


class TestResolveActivePolicies:
    """Tests for filtering and ordering a patient's policies."""

    def test_orders_by_priority_regardless_of_input_order(self, policy_factory, as_of):
        """Primary first, then supplementary by ascending priority."""
        policies = [
            policy_factory(policy_id=3, priority=7),
            policy_factory(policy_id=1, priority=1),
            policy_factory(policy_id=2, priority=2),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [1, 2, 3]
        assert resolved[0].is_primary

    def test_excludes_inactive_policies(self, policy_factory, as_of):
        policies = [
            policy_factory(policy_id=1, priority=1),
            policy_factory(policy_id=2, priority=2, is_active=False),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [1]

    def test_excludes_policies_outside_validity_window(self, policy_factory, as_of):
        """Expired and not-yet-started policies are dropped."""
        policies = [
            policy_factory(policy_id=1, priority=1, end_date=date(2024, 12, 31)),
            policy_factory(policy_id=2, priority=2, start_date=date(2025, 1, 2)),
            policy_factory(policy_id=3, priority=3),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [3]

    def test_validity_window_is_inclusive(self, policy_factory, as_of):
        """A policy starting or ending on the calculation date applies."""
        policies = [
            policy_factory(policy_id=1, priority=1, start_date=as_of),
            policy_factory(policy_id=2, priority=2, end_date=as_of),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [1, 2]

    def test_ignores_other_patients_policies(self, policy_factory, as_of):
        policies = [
            policy_factory(policy_id=1, patient_id=1, priority=1),
            policy_factory(policy_id=2, patient_id=9, priority=1),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [1]

    def test_no_policies_means_self_pay(self, as_of):
        assert resolve_active_policies([], patient_id=1, as_of_date=as_of) == []

    def test_duplicate_priority_raises(self, policy_factory, as_of):
        """Two active policies with one priority are a configuration error."""
        policies = [
            policy_factory(policy_id=1, priority=1),
            policy_factory(policy_id=2, priority=1),
        ]

        with pytest.raises(DuplicatePriorityError) as exc_info:
            resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert exc_info.value.details["priority"] == 1
        assert exc_info.value.details["policy_ids"] == [1, 2]
        assert exc_info.value.details["patient_id"] == 1

    def test_duplicate_priority_on_inactive_policy_is_ignored(self, policy_factory, as_of):
        """Only policies that survive filtering must have unique priorities."""
        policies = [
            policy_factory(policy_id=1, priority=1),
            policy_factory(policy_id=2, priority=1, end_date=date(2023, 12, 31)),
        ]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert [p.policy_id for p in resolved] == [1]

    def test_priority_has_no_upper_ceiling(self, policy_factory, as_of):
        policies = [policy_factory(policy_id=i, priority=i) for i in range(1, 16)]

        resolved = resolve_active_policies(policies, patient_id=1, as_of_date=as_of)

        assert len(resolved) == 15


class TestPolicyResolver:
    """Tests for resolution from a snapshot."""

    def test_resolves_from_snapshot(self, primary_policy, supplementary_policy, as_of):
        snapshot = CoverageSnapshot(
            patient_id=1,
            policies=[supplementary_policy, primary_policy],
            overrides=[],
            known_service_category_ids={1},
            taken_at=datetime(2025, 1, 1),
        )

        resolved = PolicyResolver(snapshot).resolve_active_policies(1, as_of)

        assert [p.policy_id for p in resolved] == [101, 102]

    def test_supplementary_expiry_leaves_primary(self, primary_policy, supplementary_policy):
        snapshot = CoverageSnapshot(
            patient_id=1,
            policies=[primary_policy, supplementary_policy],
            overrides=[],
            known_service_category_ids={1},
            taken_at=datetime(2026, 6, 1),
        )

        resolved = PolicyResolver(snapshot).resolve_active_policies(1, date(2026, 6, 1))

        assert [p.policy_id for p in resolved] == [101]

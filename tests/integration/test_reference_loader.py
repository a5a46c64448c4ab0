"""
Integration tests for reference data loader.
"""

from datetime import date
from decimal import Decimal

import pytest

from clinic_coverage.core.service import CoverageService
from clinic_coverage.domain.errors import UnknownPatientError
from clinic_coverage.reference.loader import ReferenceDataLoader


class TestReferenceDataLoader:
    """Integration tests for ReferenceDataLoader."""

    def test_load_patients(self, reference_loader: ReferenceDataLoader):
        """Deleted patients are left out."""
        assert reference_loader.get_patient_ids() == {1, 2, 3, 4}

    def test_only_active_categories(self, reference_loader: ReferenceDataLoader):
        assert reference_loader.get_service_category_ids() == {1, 2, 3}

    def test_policies_carry_plan_defaults(self, reference_loader: ReferenceDataLoader):
        policies = {p.policy_id: p for p in reference_loader.get_policies()}

        assert 402 not in policies  # deleted enrollment
        assert policies[101].coverage_percent == Decimal("70")
        assert policies[101].deductible == Decimal("100000")
        assert policies[101].max_payout is None
        assert policies[102].max_payout == Decimal("150000")
        assert policies[102].end_date == date(2025, 12, 31)

    def test_overrides(self, reference_loader: ReferenceDataLoader):
        overrides = {o.key: o for o in reference_loader.get_overrides()}

        assert not overrides[(10, 3)].is_covered
        assert overrides[(20, 2)].coverage_percent_override == Decimal("100")
        assert overrides[(20, 2)].max_payout_override == Decimal("500000")

    def test_caching_works(self, reference_loader: ReferenceDataLoader):
        """Multiple loads should use cache."""
        first = reference_loader.load("patients.json")
        second = reference_loader.load("patients.json")

        assert first is second

    def test_clear_cache(self, reference_loader: ReferenceDataLoader):
        """clear_cache should invalidate cache."""
        first = reference_loader.load("patients.json")
        reference_loader.clear_cache()
        second = reference_loader.load("patients.json")

        assert first is not second

    def test_missing_file_raises_error(self, reference_loader: ReferenceDataLoader):
        """Loading missing file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            reference_loader.load("nonexistent.json")

    def test_fractional_numbers_parse_to_decimal(self, tmp_path):
        (tmp_path / "insurance_plans.json").write_text(
            '[{"insurance_plan_id": 1, "coverage_percent": 72.5, "deductible": 0}]'
        )

        plans = ReferenceDataLoader(tmp_path).get_plans()

        assert plans[1]["coverage_percent"] == Decimal("72.5")

    def test_policy_with_unknown_plan(self, tmp_path):
        (tmp_path / "insurance_plans.json").write_text("[]")
        (tmp_path / "patient_insurances.json").write_text(
            '[{"patient_insurance_id": 1, "patient_id": 1, "insurance_plan_id": 9,'
            ' "policy_number": "X", "priority": 1, "start_date": "2024-01-01"}]'
        )

        with pytest.raises(ValueError):
            ReferenceDataLoader(tmp_path).get_policies()


class TestReferenceDataSource:
    """The loader's data source drives the service end to end."""

    @pytest.fixture
    def service(self, reference_loader, clock) -> CoverageService:
        return CoverageService(reference_loader.build_data_source(clock=clock), clock=clock)

    def test_primary_and_supplementary(self, service):
        outcome = service.calculate_coverage(1, 1, Decimal("1000000"))

        assert outcome.value.patient_share == Decimal("220000")

    def test_expired_policy_means_self_pay(self, service):
        outcome = service.calculate_coverage(4, 1, Decimal("1000000"))

        assert outcome.value.is_self_pay

    def test_duplicate_priority(self, service):
        outcome = service.calculate_coverage(3, 1, Decimal("1000000"))

        assert outcome.failure.code == "duplicate_priority"

    def test_deleted_patient(self, service):
        with pytest.raises(UnknownPatientError):
            service.calculate_coverage(5, 1, Decimal("1000")).unwrap()

"""
Consistent read snapshot for one patient.

A calculation must never mix tariff values from before and after an
administrator's edit. Data sources therefore read everything a calculation
needs in one go and hand it over as an immutable CoverageSnapshot; the
resolvers only ever look at the snapshot.
"""

from datetime import datetime
from typing import Iterable

from clinic_coverage.domain.errors import DuplicateTariffOverrideError
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ServiceTariffOverride


class CoverageSnapshot:
    """
    Immutable view of one patient's policies and the overrides of their plans.

    Usage:
        snapshot = CoverageSnapshot(
            patient_id=12,
            policies=policies,
            overrides=overrides,
            known_service_category_ids={3, 4},
            taken_at=datetime.now(),
        )
        snapshot.override_for(plan_id=7, service_category_id=3)
    """

    __slots__ = ("_patient_id", "_policies", "_overrides", "_known_categories", "_taken_at")

    def __init__(
        self,
        patient_id: int,
        policies: Iterable[InsurancePolicy],
        overrides: Iterable[ServiceTariffOverride],
        known_service_category_ids: Iterable[int],
        taken_at: datetime,
    ):
        """
        Build a snapshot.

        Raises:
            DuplicateTariffOverrideError: If two override rows share a
                (plan, service category) pair
        """
        self._patient_id = patient_id
        self._policies = tuple(policies)
        self._known_categories = frozenset(known_service_category_ids)
        self._taken_at = taken_at

        by_key: dict[tuple[int, int], ServiceTariffOverride] = {}
        for override in overrides:
            if override.key in by_key:
                raise DuplicateTariffOverrideError(
                    f"Plan {override.plan_id} has more than one tariff override "
                    f"for service category {override.service_category_id}",
                    plan_id=override.plan_id,
                    service_category_id=override.service_category_id,
                )
            by_key[override.key] = override
        self._overrides = by_key

    @property
    def patient_id(self) -> int:
        return self._patient_id

    @property
    def policies(self) -> tuple[InsurancePolicy, ...]:
        return self._policies

    @property
    def taken_at(self) -> datetime:
        return self._taken_at

    @property
    def known_service_category_ids(self) -> frozenset[int]:
        return self._known_categories

    def has_service_category(self, service_category_id: int) -> bool:
        return service_category_id in self._known_categories

    def override_for(self, plan_id: int, service_category_id: int) -> ServiceTariffOverride | None:
        """Override row for a (plan, category) pair, or None."""
        return self._overrides.get((plan_id, service_category_id))

    def __repr__(self) -> str:
        return (
            f"CoverageSnapshot(patient_id={self._patient_id}, "
            f"policies={len(self._policies)}, overrides={len(self._overrides)}, "
            f"taken_at={self._taken_at.isoformat()})"
        )

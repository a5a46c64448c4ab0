"""
Tariff resolution: plan defaults merged with per-category overrides.

The merge is field-level. For each of coverage percent and max payout, an
override value wins when present and the plan default applies otherwise;
the resolved tariff records which of the two each field came from. The
deductible always comes from the plan.
"""

from decimal import Decimal
from typing import Optional, TypeVar

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.domain.enums import TariffSource
from clinic_coverage.domain.errors import InvalidTariffError
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ResolvedTariff, ServiceTariffOverride
from clinic_coverage.utils.money import HUNDRED, ZERO

V = TypeVar("V")


def merge_field(override_value: Optional[V], default_value: Optional[V]) -> tuple[Optional[V], TariffSource]:
    """
    Pick the override value when present, else fall through to the default.

    Returns:
        (value, source) where source tells which side supplied the value
    """
    if override_value is not None:
        return override_value, TariffSource.OVERRIDE
    return default_value, TariffSource.PLAN_DEFAULT


def validate_tariff(
    coverage_percent: Decimal,
    deductible: Decimal,
    max_payout: Optional[Decimal],
    **context,
) -> None:
    """
    Reject out-of-range tariff values instead of clamping them.

    Raises:
        InvalidTariffError: Percent outside [0, 100], or negative deductible/cap
    """
    if coverage_percent < ZERO or coverage_percent > HUNDRED:
        raise InvalidTariffError(
            f"Coverage percent {coverage_percent} is outside [0, 100]",
            field="coverage_percent",
            value=str(coverage_percent),
            **context,
        )
    if deductible < ZERO:
        raise InvalidTariffError(
            f"Deductible {deductible} is negative",
            field="deductible",
            value=str(deductible),
            **context,
        )
    if max_payout is not None and max_payout < ZERO:
        raise InvalidTariffError(
            f"Max payout {max_payout} is negative",
            field="max_payout",
            value=str(max_payout),
            **context,
        )


def resolve_tariff(
    policy: InsurancePolicy,
    service_category_id: int,
    override: Optional[ServiceTariffOverride] = None,
) -> ResolvedTariff:
    """
    Resolve the tariff one policy applies to one service category.

    Args:
        policy: Policy carrying the plan defaults
        service_category_id: Category of the charged service
        override: Override row for (policy.plan_id, service_category_id), if any

    Returns:
        The merged tariff

    Raises:
        InvalidTariffError: If the merged values are out of range
    """
    if override is not None and (
        override.plan_id != policy.plan_id or override.service_category_id != service_category_id
    ):
        raise ValueError(
            f"Override for plan {override.plan_id} / category {override.service_category_id} "
            f"does not match policy plan {policy.plan_id} / category {service_category_id}"
        )

    if override is not None and not override.is_covered:
        return ResolvedTariff.not_covered()

    coverage_percent, percent_source = merge_field(
        override.coverage_percent_override if override else None,
        policy.coverage_percent,
    )
    max_payout, payout_source = merge_field(
        override.max_payout_override if override else None,
        policy.max_payout,
    )

    validate_tariff(
        coverage_percent,
        policy.deductible,
        max_payout,
        policy_id=policy.policy_id,
        plan_id=policy.plan_id,
        service_category_id=service_category_id,
    )

    return ResolvedTariff(
        coverage_percent=coverage_percent,
        deductible=policy.deductible,
        max_payout=max_payout,
        is_covered=True,
        coverage_percent_source=percent_source,
        max_payout_source=payout_source,
    )


class TariffResolver:
    """
    Callable tariff lookup bound to a snapshot.

    Usage:
        resolve = TariffResolver(snapshot)
        tariff = resolve(policy, service_category_id)
    """

    def __init__(self, snapshot: CoverageSnapshot):
        self.snapshot = snapshot

    def __call__(self, policy: InsurancePolicy, service_category_id: int) -> ResolvedTariff:
        override = self.snapshot.override_for(policy.plan_id, service_category_id)
        return resolve_tariff(policy, service_category_id, override)

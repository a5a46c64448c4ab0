"""
Coverage waterfall.

Policies are applied one after another in ascending priority. Each policy
sees only the balance its predecessors left unpaid:

    base       = max(0, remaining - deductible)
    raw        = base * coverage_percent / 100
    effective  = min(raw, max_payout, remaining), rounded half-up once
                 and kept within whole currency units of base
    remaining -= effective

The deductible is applied per policy against the outstanding balance, not
against the billed amount. A policy that is not covered, or that is reached
with nothing left to pay, contributes zero and leaves the balance untouched.

The calculation is a pure function of its arguments: no I/O, no shared state.
"""

from decimal import Decimal
from typing import Callable, Iterable, Optional

from clinic_coverage.core.policy_resolver import check_unique_priorities
from clinic_coverage.core.tariff_resolver import validate_tariff
from clinic_coverage.domain.charge import ChargeContext
from clinic_coverage.domain.enums import ContributionOutcome
from clinic_coverage.domain.errors import NegativeAmountError
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.result import CoverageContribution, CoverageResult
from clinic_coverage.domain.tariff import ResolvedTariff
from clinic_coverage.utils.logging import CalculationLogger
from clinic_coverage.utils.money import (
    HUNDRED,
    ZERO,
    floor_currency,
    normalize_currency_unit,
    quantize_currency,
)

TariffResolverFn = Callable[[InsurancePolicy, int], ResolvedTariff]


def _skipped(
    policy: InsurancePolicy,
    outcome: ContributionOutcome,
    remaining: Decimal,
    tariff: ResolvedTariff,
) -> CoverageContribution:
    """Zero contribution that leaves the balance untouched."""
    return CoverageContribution(
        policy_id=policy.policy_id,
        plan_id=policy.plan_id,
        priority=policy.priority,
        outcome=outcome,
        remaining_before=remaining,
        deductible=ZERO,
        amount_considered=ZERO,
        coverage_percent=ZERO,
        max_payout=tariff.max_payout if tariff.is_covered else None,
        raw_coverage=ZERO,
        effective_coverage=ZERO,
        remaining_after=remaining,
    )


def _classify(base: Decimal, raw: Decimal, max_payout: Optional[Decimal]) -> ContributionOutcome:
    if max_payout is not None and max_payout == ZERO:
        return ContributionOutcome.ZERO_CAP
    if base == ZERO:
        return ContributionOutcome.DEDUCTIBLE_EXHAUSTED
    if max_payout is not None and max_payout < raw:
        return ContributionOutcome.CAPPED
    return ContributionOutcome.APPLIED


def apply_policy(
    policy: InsurancePolicy,
    tariff: ResolvedTariff,
    remaining: Decimal,
    currency_unit: Decimal = Decimal("1"),
) -> CoverageContribution:
    """
    Apply one policy to the outstanding balance.

    Args:
        policy: Policy being applied
        tariff: Its resolved tariff for the charged category
        remaining: Balance still owed before this policy
        currency_unit: Unit the effective coverage is rounded to

    Returns:
        The policy's contribution, including the balance after it
    """
    if not tariff.is_covered:
        return _skipped(policy, ContributionOutcome.NOT_COVERED, remaining, tariff)
    if remaining <= ZERO:
        return _skipped(policy, ContributionOutcome.NO_BALANCE, remaining, tariff)

    base = max(ZERO, remaining - tariff.deductible)
    raw = base * tariff.coverage_percent / HUNDRED

    effective = raw
    if tariff.max_payout is not None:
        effective = min(effective, tariff.max_payout)
    effective = min(effective, remaining)

    # Single rounding step, then clamp to the whole units of base
    effective = min(
        quantize_currency(effective, currency_unit),
        floor_currency(base, currency_unit),
    )

    return CoverageContribution(
        policy_id=policy.policy_id,
        plan_id=policy.plan_id,
        priority=policy.priority,
        outcome=_classify(base, raw, tariff.max_payout),
        remaining_before=remaining,
        deductible=tariff.deductible,
        amount_considered=base,
        coverage_percent=tariff.coverage_percent,
        max_payout=tariff.max_payout,
        raw_coverage=raw,
        effective_coverage=effective,
        remaining_after=remaining - effective,
    )


def calculate(
    charge: ChargeContext,
    policies: Iterable[InsurancePolicy],
    tariff_resolver: TariffResolverFn,
    *,
    patient_id: Optional[int] = None,
    currency_unit: Decimal = Decimal("1"),
) -> CoverageResult:
    """
    Run the coverage waterfall for one charge.

    Args:
        charge: Service category, billed amount and calculation date
        policies: The patient's active policies, in any order
        tariff_resolver: Callable (policy, service_category_id) -> ResolvedTariff
        patient_id: Carried onto the result for auditing
        currency_unit: Unit each effective coverage is rounded to

    Returns:
        Immutable CoverageResult

    Raises:
        NegativeAmountError: If the billed amount is negative
        DuplicatePriorityError: If two policies share a priority
        InvalidTariffError: If a resolved tariff is out of range
        ValueError: If currency_unit is not 1, 0.1 or 0.01
    """
    currency_unit = normalize_currency_unit(currency_unit)
    log = CalculationLogger(
        patient_id=patient_id,
        service_category_id=charge.service_category_id,
    )

    billed = charge.billed_amount
    if billed < ZERO:
        raise NegativeAmountError(
            f"Billed amount {billed} is negative",
            billed_amount=str(billed),
            service_category_id=charge.service_category_id,
        )

    ordered = sorted(policies, key=lambda p: p.priority)
    check_unique_priorities(ordered)

    log.calculation_started(billed, charge.as_of_date, policy_count=len(ordered))

    contributions: list[CoverageContribution] = []
    remaining = billed

    if billed > ZERO:
        for policy in ordered:
            tariff = tariff_resolver(policy, charge.service_category_id)
            if tariff.is_covered:
                # Custom resolvers bypass resolve_tariff, so check again here
                validate_tariff(
                    tariff.coverage_percent,
                    tariff.deductible,
                    tariff.max_payout,
                    policy_id=policy.policy_id,
                    plan_id=policy.plan_id,
                    service_category_id=charge.service_category_id,
                )

            contribution = apply_policy(policy, tariff, remaining, currency_unit)
            contributions.append(contribution)
            remaining = contribution.remaining_after

            if contribution.outcome == ContributionOutcome.NOT_COVERED:
                log.policy_not_covered(policy.policy_id, policy.priority)
            elif contribution.outcome == ContributionOutcome.ZERO_CAP:
                log.policy_zero_cap(policy.policy_id, policy.priority)
            log.contribution_computed(
                policy.policy_id,
                policy.priority,
                contribution.outcome.value,
                contribution.effective_coverage,
                contribution.remaining_after,
            )

    patient_share = max(ZERO, remaining)
    result = CoverageResult(
        patient_id=patient_id,
        service_category_id=charge.service_category_id,
        as_of_date=charge.as_of_date,
        billed_amount=billed,
        contributions=tuple(contributions),
        total_coverage=billed - patient_share,
        patient_share=patient_share,
    )

    log.calculation_completed(result.total_coverage, result.patient_share, len(contributions))
    return result

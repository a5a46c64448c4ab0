"""
Policy resolution: raw policy rows -> ordered, calculation-ready sequence.
"""

from collections import defaultdict
from datetime import date
from typing import Iterable

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.domain.errors import DuplicatePriorityError
from clinic_coverage.domain.policy import InsurancePolicy


def check_unique_priorities(policies: Iterable[InsurancePolicy]) -> None:
    """
    Raise if two policies share a priority.

    Raises:
        DuplicatePriorityError: Names the priority and every policy holding it
    """
    by_priority: dict[int, list[InsurancePolicy]] = defaultdict(list)
    for policy in policies:
        by_priority[policy.priority].append(policy)

    for priority, holders in sorted(by_priority.items()):
        if len(holders) > 1:
            patient_ids = sorted({p.patient_id for p in holders})
            policy_ids = sorted(p.policy_id for p in holders)
            raise DuplicatePriorityError(
                f"Active policies {policy_ids} of patient {patient_ids[0]} "
                f"share priority {priority}",
                patient_id=patient_ids[0],
                priority=priority,
                policy_ids=policy_ids,
            )


def resolve_active_policies(
    policies: Iterable[InsurancePolicy],
    patient_id: int,
    as_of_date: date,
) -> list[InsurancePolicy]:
    """
    Filter and order a patient's policies for one calculation date.

    Keeps the patient's policies that are active and whose validity window
    contains ``as_of_date`` (both ends inclusive), ordered primary first.
    An empty list means the patient is fully self-pay.

    Args:
        policies: Raw policy rows (rows of other patients are ignored)
        patient_id: Patient the calculation is for
        as_of_date: Date the policies must be valid on

    Returns:
        Policies sorted by ascending priority

    Raises:
        DuplicatePriorityError: If two surviving policies share a priority
    """
    active = [
        p for p in policies
        if p.patient_id == patient_id and p.is_effective_on(as_of_date)
    ]
    check_unique_priorities(active)
    return sorted(active, key=lambda p: p.priority)


class PolicyResolver:
    """
    Resolves active policies from a consistent snapshot.

    Usage:
        resolver = PolicyResolver(snapshot)
        policies = resolver.resolve_active_policies(patient_id, date(2025, 1, 1))
    """

    def __init__(self, snapshot: CoverageSnapshot):
        self.snapshot = snapshot

    def resolve_active_policies(self, patient_id: int, as_of_date: date) -> list[InsurancePolicy]:
        return resolve_active_policies(self.snapshot.policies, patient_id, as_of_date)

"""
Enumeration types for coverage engine domain models.
"""

from enum import Enum


class ContributionOutcome(str, Enum):
    """
    How a single policy's contribution came out.

    Stored on every contribution and audit line so reviewers can tell a
    zero payout caused by an exclusion from one caused by a zero cap.
    """
    APPLIED = "Applied"                              # Percentage applied, not bound by a cap
    CAPPED = "Capped"                                # Max payout bound below the raw coverage
    ZERO_CAP = "ZeroCap"                             # Covered, but max payout is exactly 0
    DEDUCTIBLE_EXHAUSTED = "DeductibleExhausted"     # Deductible >= remaining balance
    NOT_COVERED = "NotCovered"                       # Category excluded by a tariff override
    NO_BALANCE = "NoBalance"                         # Earlier policies already paid everything


class TariffSource(str, Enum):
    """Where a resolved tariff field came from."""
    PLAN_DEFAULT = "PlanDefault"
    OVERRIDE = "Override"


class FailureKind(str, Enum):
    """Failure taxonomy returned at the service boundary."""
    CONFIGURATION = "configuration"    # Data bug: block the charge, flag for admin review
    INPUT = "input"                    # Caller bug: re-prompt

"""
Domain models for the coverage engine.

Pydantic models representing policies, tariffs, charges and results.
"""

from clinic_coverage.domain.enums import (
    ContributionOutcome,
    TariffSource,
    FailureKind,
)
from clinic_coverage.domain.errors import (
    CoverageError,
    CoverageConfigurationError,
    DuplicatePriorityError,
    DuplicateTariffOverrideError,
    InvalidTariffError,
    NegativeAmountError,
    CoverageInputError,
    UnknownPatientError,
    UnknownServiceCategoryError,
    CalculationNotFoundError,
    CalculationSupersededError,
)
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ServiceTariffOverride, ResolvedTariff
from clinic_coverage.domain.charge import ChargeContext, ChargeLine
from clinic_coverage.domain.result import (
    CoverageContribution,
    CoverageResult,
    ReceptionCoverage,
    CalculationRecord,
    CalculationPage,
    CalculationStatistics,
    CalculationFailure,
    ServiceOutcome,
)

__all__ = [
    # Enums
    "ContributionOutcome",
    "TariffSource",
    "FailureKind",
    # Errors
    "CoverageError",
    "CoverageConfigurationError",
    "DuplicatePriorityError",
    "DuplicateTariffOverrideError",
    "InvalidTariffError",
    "NegativeAmountError",
    "CoverageInputError",
    "UnknownPatientError",
    "UnknownServiceCategoryError",
    "CalculationNotFoundError",
    "CalculationSupersededError",
    # Policy and tariff
    "InsurancePolicy",
    "ServiceTariffOverride",
    "ResolvedTariff",
    # Charges
    "ChargeContext",
    "ChargeLine",
    # Results
    "CoverageContribution",
    "CoverageResult",
    "ReceptionCoverage",
    "CalculationRecord",
    "CalculationPage",
    "CalculationStatistics",
    "CalculationFailure",
    "ServiceOutcome",
]

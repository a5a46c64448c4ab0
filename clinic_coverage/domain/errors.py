"""
Exception hierarchy for the coverage engine.

Components raise these; CoverageService turns them into typed
CalculationFailure values at the boundary so callers decide whether to log,
alert or reject. Each error has a stable ``code`` and a ``details`` dict
that survive that conversion.
"""

from typing import Any

from clinic_coverage.domain.enums import FailureKind


class CoverageError(Exception):
    """Base class for all coverage engine errors."""

    kind: FailureKind = FailureKind.CONFIGURATION
    code: str = "coverage_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


# =============================================================================
# Configuration errors (fatal, never silently corrected)
# =============================================================================


class CoverageConfigurationError(CoverageError):
    """Policy or tariff data that must be fixed by an administrator."""

    kind = FailureKind.CONFIGURATION
    code = "configuration_error"


class DuplicatePriorityError(CoverageConfigurationError):
    """Two active policies of one patient share a priority."""

    code = "duplicate_priority"


class DuplicateTariffOverrideError(CoverageConfigurationError):
    """More than one override row for the same plan and service category."""

    code = "duplicate_tariff_override"


class InvalidTariffError(CoverageConfigurationError):
    """Coverage percent outside [0, 100], or a negative deductible or cap."""

    code = "invalid_tariff"


class NegativeAmountError(CoverageConfigurationError):
    """A negative billed amount was supplied."""

    code = "negative_amount"


# =============================================================================
# Input errors (recoverable by the caller)
# =============================================================================


class CoverageInputError(CoverageError):
    """A request that references something that does not exist."""

    kind = FailureKind.INPUT
    code = "input_error"


class UnknownPatientError(CoverageInputError):
    code = "unknown_patient"


class UnknownServiceCategoryError(CoverageInputError):
    code = "unknown_service_category"


class CalculationNotFoundError(CoverageInputError):
    code = "calculation_not_found"


class CalculationSupersededError(CoverageInputError):
    """A correction was requested for a record that already has one."""

    code = "calculation_superseded"


ERRORS_BY_CODE: dict[str, type[CoverageError]] = {
    cls.code: cls
    for cls in (
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
}

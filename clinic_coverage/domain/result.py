"""
Calculation result domain models.

CoverageResult is a value object: created once per calculation, never
mutated. Corrections produce a new CalculationRecord pointing at the one
they supersede.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from clinic_coverage.domain.enums import ContributionOutcome, FailureKind
from clinic_coverage.domain.errors import ERRORS_BY_CODE, CoverageError
from clinic_coverage.utils.money import SMALLEST_CURRENCY_UNIT, ZERO, quantize_currency

T = TypeVar("T")


class CoverageContribution(BaseModel):
    """One policy's share of a single calculation, with every intermediate value."""

    policy_id: int
    plan_id: int
    priority: int
    outcome: ContributionOutcome

    remaining_before: Decimal
    deductible: Decimal
    amount_considered: Decimal  # post-deductible base
    coverage_percent: Decimal
    max_payout: Optional[Decimal] = None
    raw_coverage: Decimal
    effective_coverage: Decimal
    remaining_after: Decimal

    model_config = {"frozen": True}


class CoverageResult(BaseModel):
    """Full output of one calculation."""

    patient_id: Optional[int] = None
    service_category_id: int
    as_of_date: date
    billed_amount: Decimal
    contributions: tuple[CoverageContribution, ...] = ()
    total_coverage: Decimal
    patient_share: Decimal

    model_config = {"frozen": True}

    @property
    def policy_ids(self) -> list[int]:
        return [c.policy_id for c in self.contributions]

    @property
    def is_self_pay(self) -> bool:
        return self.total_coverage == 0


class ReceptionCoverage(BaseModel):
    """Coverage for every charge of one reception, priced from one snapshot."""

    patient_id: int
    as_of_date: date
    lines: tuple[CoverageResult, ...]
    total_billed: Decimal
    total_coverage: Decimal
    total_patient_share: Decimal

    model_config = {"frozen": True}


class CalculationRecord(BaseModel):
    """Audit row for one calculation (append-only)."""

    calculation_id: int
    patient_id: int
    service_id: Optional[int] = None
    service_category_id: int
    reception_id: Optional[int] = None
    appointment_id: Optional[int] = None
    policy_ids: tuple[int, ...] = ()

    calculated_by: str = Field(..., max_length=50)
    calculated_at: datetime
    supersedes_id: Optional[int] = None
    superseded_by_id: Optional[int] = None

    result: CoverageResult

    @property
    def is_superseded(self) -> bool:
        return self.superseded_by_id is not None

    @property
    def plan_ids(self) -> set[int]:
        return {c.plan_id for c in self.result.contributions}


class CalculationPage(BaseModel):
    """One page of audit records, newest first, with the total match count."""

    items: tuple[CalculationRecord, ...] = ()
    total_count: int = 0
    page_number: int = 1
    page_size: int = 10

    @staticmethod
    def offset(page_number: int, page_size: int) -> int:
        """Rows to skip for a 1-based page number."""
        if page_number < 1 or page_size < 1:
            raise ValueError(
                f"page_number and page_size must be positive, got {page_number} and {page_size}"
            )
        return (page_number - 1) * page_size


class CalculationStatistics(BaseModel):
    """
    Aggregate figures over the audit store.

    Money totals and averages count current records only; a superseded
    record and its correction describe the same charge.
    """

    total_calculations: int = 0
    current_calculations: int = 0
    superseded_calculations: int = 0
    total_coverage: Decimal = ZERO
    total_patient_share: Decimal = ZERO
    average_coverage: Decimal = ZERO
    average_patient_share: Decimal = ZERO

    model_config = {"frozen": True}

    @classmethod
    def from_totals(
        cls,
        total_calculations: int,
        current_calculations: int,
        total_coverage: Decimal,
        total_patient_share: Decimal,
    ) -> "CalculationStatistics":
        def average(amount: Decimal) -> Decimal:
            if not current_calculations:
                return ZERO
            return quantize_currency(amount / current_calculations, SMALLEST_CURRENCY_UNIT)

        return cls(
            total_calculations=total_calculations,
            current_calculations=current_calculations,
            superseded_calculations=total_calculations - current_calculations,
            total_coverage=total_coverage,
            total_patient_share=total_patient_share,
            average_coverage=average(total_coverage),
            average_patient_share=average(total_patient_share),
        )


class CalculationFailure(BaseModel):
    """Typed failure returned in place of a result."""

    kind: FailureKind
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_error(cls, error: CoverageError) -> "CalculationFailure":
        return cls(
            kind=error.kind,
            code=error.code,
            message=error.message,
            details=error.details,
        )

    def to_error(self) -> CoverageError:
        error_cls = ERRORS_BY_CODE.get(self.code, CoverageError)
        return error_cls(self.message, **self.details)


class ServiceOutcome(BaseModel, Generic[T]):
    """
    Either a value or a typed failure.

    ``calculation_ids`` lists the audit records written, if any.
    """

    value: Optional[T] = None
    failure: Optional[CalculationFailure] = None
    calculation_ids: tuple[int, ...] = ()

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> T:
        """Return the value, or raise the error the failure was built from."""
        if self.failure is not None:
            raise self.failure.to_error()
        return self.value

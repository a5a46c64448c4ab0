"""
Insurance policy domain model.

One row per patient enrollment in a plan, with the plan's default tariff
(coverage percent, deductible, max payout) flattened onto it.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from clinic_coverage.utils.money import reject_float


class InsurancePolicy(BaseModel):
    """
    A patient's enrollment in one insurance plan.

    Priority 1 is the primary policy; 2..N are supplementary policies applied
    in ascending order. The numeric tariff fields are carried as stored and
    range-checked by the tariff resolver, so a misconfigured plan surfaces as
    a configuration failure rather than a model validation error.
    """

    policy_id: int
    patient_id: int
    plan_id: int
    policy_number: str = Field(..., max_length=50)
    card_number: Optional[str] = Field(default=None, max_length=50)

    priority: int = Field(..., ge=1)

    coverage_percent: Decimal
    deductible: Decimal = Decimal("0")
    max_payout: Optional[Decimal] = None  # None = uncapped

    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True

    model_config = {"frozen": True}

    @field_validator("coverage_percent", "deductible", "max_payout", mode="before")
    @classmethod
    def no_binary_floats(cls, v):
        """Money and percentages must not pass through float."""
        return reject_float(v)

    @property
    def is_primary(self) -> bool:
        return self.priority == 1

    def is_effective_on(self, as_of_date: date) -> bool:
        """Active and inside its validity window (both ends inclusive)."""
        if not self.is_active:
            return False
        if self.start_date > as_of_date:
            return False
        return self.end_date is None or self.end_date >= as_of_date

"""
Tariff domain models.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator

from clinic_coverage.domain.enums import TariffSource
from clinic_coverage.utils.money import reject_float


class ServiceTariffOverride(BaseModel):
    """
    Plan- and category-specific replacement for a plan's default tariff.

    Overrides are field-level: a field left as None falls through to the
    plan default. ``is_covered=False`` excludes the category entirely.
    """

    plan_id: int
    service_category_id: int
    coverage_percent_override: Optional[Decimal] = None
    max_payout_override: Optional[Decimal] = None
    is_covered: bool = True

    model_config = {"frozen": True}

    @field_validator("coverage_percent_override", "max_payout_override", mode="before")
    @classmethod
    def no_binary_floats(cls, v):
        return reject_float(v)

    @property
    def key(self) -> tuple[int, int]:
        return (self.plan_id, self.service_category_id)


class ResolvedTariff(BaseModel):
    """The tariff a policy applies to one service category."""

    coverage_percent: Decimal
    deductible: Decimal
    max_payout: Optional[Decimal] = None
    is_covered: bool = True

    coverage_percent_source: TariffSource = TariffSource.PLAN_DEFAULT
    max_payout_source: TariffSource = TariffSource.PLAN_DEFAULT

    model_config = {"frozen": True}

    @field_validator("coverage_percent", "deductible", "max_payout", mode="before")
    @classmethod
    def no_binary_floats(cls, v):
        return reject_float(v)

    @classmethod
    def not_covered(cls) -> "ResolvedTariff":
        """Tariff of a policy that excludes the category."""
        return cls(
            coverage_percent=Decimal("0"),
            deductible=Decimal("0"),
            max_payout=None,
            is_covered=False,
            coverage_percent_source=TariffSource.OVERRIDE,
            max_payout_source=TariffSource.OVERRIDE,
        )

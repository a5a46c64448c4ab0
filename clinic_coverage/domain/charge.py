"""
Charge domain models: the inputs of one calculation.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from clinic_coverage.utils.money import reject_float


class ChargeContext(BaseModel):
    """One service charge to price against a patient's policies."""

    service_category_id: int
    billed_amount: Decimal
    as_of_date: date

    model_config = {"frozen": True}

    @field_validator("billed_amount", mode="before")
    @classmethod
    def no_binary_floats(cls, v):
        return reject_float(v)


class ChargeLine(BaseModel):
    """One line of a reception: a service charge without a date."""

    service_category_id: int
    billed_amount: Decimal
    service_id: Optional[int] = None
    description: Optional[str] = Field(default=None, max_length=200)

    model_config = {"frozen": True}

    @field_validator("billed_amount", mode="before")
    @classmethod
    def no_binary_floats(cls, v):
        return reject_float(v)

"""
Utility modules for the coverage engine.

Provides:
- Structured logging configuration
- Decimal currency helpers
- JSON serialization
"""

from clinic_coverage.utils.logging import configure_logging, CalculationLogger
from clinic_coverage.utils.money import (
    ZERO,
    HUNDRED,
    to_decimal,
    quantize_currency,
    is_valid_currency_unit,
)
from clinic_coverage.utils.serializers import CoverageEncoder, serialize_to_json

__all__ = [
    # Logging
    "configure_logging",
    "CalculationLogger",
    # Money
    "ZERO",
    "HUNDRED",
    "to_decimal",
    "quantize_currency",
    "is_valid_currency_unit",
    # Serialization
    "CoverageEncoder",
    "serialize_to_json",
]

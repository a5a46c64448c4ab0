"""
Reference data module for the coverage engine.

Loads patient, plan, enrollment and tariff override data from JSON files.
"""

from clinic_coverage.reference.loader import ReferenceDataLoader

__all__ = ["ReferenceDataLoader"]

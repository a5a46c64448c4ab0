"""
Core calculation module for the coverage engine.

Provides:
- Consistent per-patient snapshots
- Policy and tariff resolution
- The coverage waterfall
- The CoverageService entry point
"""

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.core.policy_resolver import PolicyResolver, resolve_active_policies
from clinic_coverage.core.tariff_resolver import TariffResolver, resolve_tariff, merge_field
from clinic_coverage.core.calculator import calculate, apply_policy
from clinic_coverage.core.service import CoverageService

__all__ = [
    "CoverageSnapshot",
    "PolicyResolver",
    "resolve_active_policies",
    "TariffResolver",
    "resolve_tariff",
    "merge_field",
    "calculate",
    "apply_policy",
    "CoverageService",
]

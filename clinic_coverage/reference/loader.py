"""
Reference data loader for the coverage engine.

Loads and caches patient, category, plan, enrollment and override data from
JSON files, and turns it into an in-memory coverage data source. JSON
numbers with a fraction are parsed straight to Decimal.
"""

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

import structlog

from clinic_coverage.db.memory import InMemoryCoverageDataSource
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ServiceTariffOverride

logger = structlog.get_logger()


class ReferenceDataLoader:
    """
    Loads and caches reference data from JSON files.

    Usage:
        loader = ReferenceDataLoader(Path("data/reference"))
        source = loader.build_data_source()
        snapshot = source.load_snapshot(patient_id=1, service_category_ids=[3])
    """

    PATIENTS = "patients.json"
    SERVICE_CATEGORIES = "service_categories.json"
    INSURANCE_PLANS = "insurance_plans.json"
    PATIENT_INSURANCES = "patient_insurances.json"
    PLAN_SERVICES = "plan_services.json"

    def __init__(self, data_path: Path | str):
        """
        Initialize the reference data loader.

        Args:
            data_path: Directory holding the JSON files
        """
        self.data_path = Path(data_path)
        self._cache: dict[str, list[dict[str, Any]]] = {}

    def load(self, filename: str) -> list[dict[str, Any]]:
        """
        Load a JSON file (cached).

        Args:
            filename: File name inside data_path

        Returns:
            List of records

        Raises:
            FileNotFoundError: If the file does not exist
        """
        if filename in self._cache:
            return self._cache[filename]

        path = self.data_path / filename
        if not path.exists():
            raise FileNotFoundError(f"Reference data file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = json.load(f, parse_float=Decimal)

        if not isinstance(data, list):
            raise ValueError(f"Reference data file {path} must contain a JSON list")

        self._cache[filename] = data
        logger.debug("reference_data_loaded", file=filename, records=len(data))
        return data

    def clear_cache(self) -> None:
        """Invalidate cached files so the next load re-reads them."""
        self._cache.clear()

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def get_patient_ids(self) -> set[int]:
        return {
            r["patient_id"] for r in self.load(self.PATIENTS)
            if not r.get("is_deleted", False)
        }

    def get_service_category_ids(self) -> set[int]:
        return {
            r["service_category_id"] for r in self.load(self.SERVICE_CATEGORIES)
            if r.get("is_active", True)
        }

    def get_plans(self) -> dict[int, dict[str, Any]]:
        return {r["insurance_plan_id"]: r for r in self.load(self.INSURANCE_PLANS)}

    def get_policies(self) -> list[InsurancePolicy]:
        """Enrollment rows with their plan's default tariff flattened on."""
        plans = self.get_plans()
        policies = []
        for row in self.load(self.PATIENT_INSURANCES):
            if row.get("is_deleted", False):
                continue
            plan = plans.get(row["insurance_plan_id"])
            if plan is None:
                raise ValueError(
                    f"Policy {row['patient_insurance_id']} references unknown plan "
                    f"{row['insurance_plan_id']}"
                )
            policies.append(
                InsurancePolicy(
                    policy_id=row["patient_insurance_id"],
                    patient_id=row["patient_id"],
                    plan_id=row["insurance_plan_id"],
                    policy_number=row["policy_number"],
                    card_number=row.get("card_number"),
                    priority=row["priority"],
                    coverage_percent=plan["coverage_percent"],
                    deductible=plan.get("deductible", 0),
                    max_payout=plan.get("max_payout"),
                    start_date=row["start_date"],
                    end_date=row.get("end_date"),
                    is_active=row.get("is_active", True),
                )
            )
        return policies

    def get_overrides(self) -> list[ServiceTariffOverride]:
        return [
            ServiceTariffOverride(
                plan_id=row["insurance_plan_id"],
                service_category_id=row["service_category_id"],
                coverage_percent_override=row.get("coverage_override"),
                max_payout_override=row.get("max_payout_override"),
                is_covered=row.get("is_covered", True),
            )
            for row in self.load(self.PLAN_SERVICES)
            if not row.get("is_deleted", False)
        ]

    def build_data_source(
        self,
        clock: Callable[[], datetime] = datetime.now,
    ) -> InMemoryCoverageDataSource:
        """Build an in-memory data source from the loaded files."""
        source = InMemoryCoverageDataSource(
            patient_ids=self.get_patient_ids(),
            service_category_ids=self.get_service_category_ids(),
            policies=self.get_policies(),
            overrides=self.get_overrides(),
            clock=clock,
        )
        logger.info("reference_data_source_built", path=str(self.data_path))
        return source

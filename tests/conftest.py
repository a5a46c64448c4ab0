"""
Shared test fixtures for the clinic coverage engine tests.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.engine import Engine

from clinic_coverage.config.models import CalculationConfig
from clinic_coverage.core.service import CoverageService
from clinic_coverage.db.initialize import init_database
from clinic_coverage.db.memory import InMemoryCalculationRecorder, InMemoryCoverageDataSource
from clinic_coverage.db.schema import (
    insurance_plan,
    patient,
    patient_insurance,
    plan_service,
    service_category,
)
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ServiceTariffOverride
from clinic_coverage.reference.loader import ReferenceDataLoader


FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Category ids used throughout the tests
VISIT = 1
LABORATORY = 2
COSMETIC = 3


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def as_of() -> date:
    """Calculation date every policy fixture is valid on."""
    return date(2025, 1, 1)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 1, 1, 9, 30)


@pytest.fixture
def clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Deterministic clock."""
    return lambda: fixed_now


# =============================================================================
# Policy Fixtures
# =============================================================================


@pytest.fixture
def policy_factory() -> Callable[..., InsurancePolicy]:
    """Build policies with sensible defaults; keyword arguments override them."""

    def make(**overrides) -> InsurancePolicy:
        values = {
            "policy_id": 101,
            "patient_id": 1,
            "plan_id": 10,
            "policy_number": "B-0001",
            "priority": 1,
            "coverage_percent": Decimal("70"),
            "deductible": Decimal("0"),
            "max_payout": None,
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "is_active": True,
        }
        values.update(overrides)
        return InsurancePolicy(**values)

    return make


@pytest.fixture
def primary_policy(policy_factory) -> InsurancePolicy:
    """Basic plan: 70%, 100,000 deductible, uncapped."""
    return policy_factory(deductible=Decimal("100000"))


@pytest.fixture
def supplementary_policy(policy_factory) -> InsurancePolicy:
    """Supplementary plan: 80%, no deductible, capped at 150,000."""
    return policy_factory(
        policy_id=102,
        plan_id=20,
        policy_number="S-0001",
        priority=2,
        coverage_percent=Decimal("80"),
        max_payout=Decimal("150000"),
        end_date=date(2025, 12, 31),
    )


@pytest.fixture
def overrides() -> list[ServiceTariffOverride]:
    """Basic plan excludes cosmetic work; supplementary pays labs in full."""
    return [
        ServiceTariffOverride(plan_id=10, service_category_id=COSMETIC, is_covered=False),
        ServiceTariffOverride(
            plan_id=20,
            service_category_id=LABORATORY,
            coverage_percent_override=Decimal("100"),
            max_payout_override=Decimal("500000"),
        ),
    ]


# =============================================================================
# Data Source / Recorder / Service Fixtures
# =============================================================================


@pytest.fixture
def data_source(primary_policy, supplementary_policy, overrides, clock) -> InMemoryCoverageDataSource:
    """Patient 1 has two policies; patient 2 has none."""
    return InMemoryCoverageDataSource(
        patient_ids={1, 2},
        service_category_ids={VISIT, LABORATORY, COSMETIC},
        policies=[supplementary_policy, primary_policy],
        overrides=overrides,
        clock=clock,
    )


@pytest.fixture
def recorder() -> InMemoryCalculationRecorder:
    return InMemoryCalculationRecorder()


@pytest.fixture
def service(data_source, recorder, clock) -> CoverageService:
    return CoverageService(data_source, recorder=recorder, clock=clock)


@pytest.fixture
def cents_config() -> CalculationConfig:
    return CalculationConfig(currency_unit=Decimal("0.01"), currency_code="USD")


# =============================================================================
# Reference Data Fixtures
# =============================================================================


@pytest.fixture
def reference_data_dir() -> Path:
    """Checked-in JSON reference data (same scenario as the in-memory fixtures)."""
    return FIXTURES_DIR / "reference_data"


@pytest.fixture
def reference_loader(reference_data_dir: Path) -> ReferenceDataLoader:
    return ReferenceDataLoader(reference_data_dir)


@pytest.fixture
def config_file(tmp_path: Path, reference_data_dir: Path) -> Path:
    """YAML config pointing at the fixture data and a SQLite audit database."""
    path = tmp_path / "coverage.yaml"
    path.write_text(
        "calculation:\n"
        "  currency_unit: 1\n"
        "database:\n"
        f"  url: sqlite:///{tmp_path / 'audit.db'}\n"
        "logging:\n"
        "  level: WARNING\n"
        f"reference_data_path: {reference_data_dir}\n"
    )
    return path


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def sqlite_engine() -> Engine:
    """In-memory SQLite engine with every table created."""
    engine = create_engine("sqlite://")
    init_database(engine, include_reference=True)
    yield engine
    engine.dispose()


@pytest.fixture
def seeded_engine(sqlite_engine: Engine) -> Engine:
    """SQLite engine holding the same patients, plans and policies as the JSON fixtures."""
    with sqlite_engine.begin() as conn:
        conn.execute(
            insert(patient),
            [
                {"patient_id": 1, "national_code": "0012345678", "is_deleted": False},
                {"patient_id": 2, "national_code": "0023456789", "is_deleted": False},
                {"patient_id": 5, "national_code": "0056789012", "is_deleted": True},
            ],
        )
        conn.execute(
            insert(service_category),
            [
                {"service_category_id": VISIT, "title": "General visit", "is_active": True},
                {"service_category_id": LABORATORY, "title": "Laboratory", "is_active": True},
                {"service_category_id": COSMETIC, "title": "Cosmetic dentistry", "is_active": True},
                {"service_category_id": 4, "title": "Retired category", "is_active": False},
            ],
        )
        conn.execute(
            insert(insurance_plan),
            [
                {
                    "insurance_plan_id": 10,
                    "plan_code": "BASIC",
                    "name": "Basic social insurance",
                    "coverage_percent": Decimal("70"),
                    "deductible": Decimal("100000"),
                    "max_payout": None,
                },
                {
                    "insurance_plan_id": 20,
                    "plan_code": "SUPP",
                    "name": "Supplementary insurance",
                    "coverage_percent": Decimal("80"),
                    "deductible": Decimal("0"),
                    "max_payout": Decimal("150000"),
                },
            ],
        )
        conn.execute(
            insert(patient_insurance),
            [
                {
                    "patient_insurance_id": 101,
                    "patient_id": 1,
                    "insurance_plan_id": 10,
                    "policy_number": "B-0001",
                    "card_number": "C-0001",
                    "priority": 1,
                    "start_date": date(2024, 1, 1),
                    "end_date": None,
                    "is_active": True,
                    "is_deleted": False,
                },
                {
                    "patient_insurance_id": 102,
                    "patient_id": 1,
                    "insurance_plan_id": 20,
                    "policy_number": "S-0001",
                    "card_number": None,
                    "priority": 2,
                    "start_date": date(2024, 1, 1),
                    "end_date": date(2025, 12, 31),
                    "is_active": True,
                    "is_deleted": False,
                },
                {
                    "patient_insurance_id": 103,
                    "patient_id": 1,
                    "insurance_plan_id": 20,
                    "policy_number": "S-OLD",
                    "card_number": None,
                    "priority": 2,
                    "start_date": date(2020, 1, 1),
                    "end_date": None,
                    "is_active": True,
                    "is_deleted": True,
                },
            ],
        )
        conn.execute(
            insert(plan_service),
            [
                {
                    "plan_service_id": 1,
                    "insurance_plan_id": 10,
                    "service_category_id": COSMETIC,
                    "coverage_override": None,
                    "max_payout_override": None,
                    "is_covered": False,
                    "is_deleted": False,
                },
                {
                    "plan_service_id": 2,
                    "insurance_plan_id": 20,
                    "service_category_id": LABORATORY,
                    "coverage_override": Decimal("100"),
                    "max_payout_override": Decimal("500000"),
                    "is_covered": True,
                    "is_deleted": False,
                },
            ],
        )
    return sqlite_engine

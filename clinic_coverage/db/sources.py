"""
SQL data source: reads a patient's coverage snapshot in one transaction.
"""

from datetime import datetime
from typing import Callable, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.db.schema import (
    insurance_plan,
    patient,
    patient_insurance,
    plan_service,
    service_category,
)
from clinic_coverage.domain.errors import UnknownPatientError
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.tariff import ServiceTariffOverride
from clinic_coverage.utils.serializers import deserialize_decimal

logger = structlog.get_logger()


class SqlCoverageDataSource:
    """
    Coverage data source backed by the clinic database.

    Patient, policies (joined with their plans), overrides and categories
    are read inside a single transaction; on PostgreSQL that transaction
    runs at REPEATABLE READ so a concurrent plan edit cannot leak into half
    of a snapshot.

    Usage:
        source = SqlCoverageDataSource(engine)
        snapshot = source.load_snapshot(patient_id=12, service_category_ids=[3])
    """

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = datetime.now):
        self.engine = engine
        self.clock = clock

    def load_snapshot(
        self,
        patient_id: int,
        service_category_ids: Iterable[int],
    ) -> CoverageSnapshot:
        requested = set(service_category_ids)

        with self.engine.connect() as conn:
            if conn.dialect.name == "postgresql":
                conn = conn.execution_options(isolation_level="REPEATABLE READ")
            with conn.begin():
                if not self._patient_exists(conn, patient_id):
                    raise UnknownPatientError(
                        f"Patient {patient_id} does not exist",
                        patient_id=patient_id,
                    )
                policies = self._load_policies(conn, patient_id)
                overrides = self._load_overrides(conn, {p.plan_id for p in policies})
                known = self._known_categories(conn, requested)

        logger.debug(
            "snapshot_loaded",
            patient_id=patient_id,
            policies=len(policies),
            overrides=len(overrides),
        )
        return CoverageSnapshot(
            patient_id=patient_id,
            policies=policies,
            overrides=overrides,
            known_service_category_ids=known,
            taken_at=self.clock(),
        )

    def _patient_exists(self, conn: Connection, patient_id: int) -> bool:
        row = conn.execute(
            select(patient.c.patient_id).where(
                patient.c.patient_id == patient_id,
                patient.c.is_deleted.is_(False),
            )
        ).first()
        return row is not None

    def _load_policies(self, conn: Connection, patient_id: int) -> list[InsurancePolicy]:
        stmt = (
            select(
                patient_insurance.c.patient_insurance_id,
                patient_insurance.c.patient_id,
                patient_insurance.c.insurance_plan_id,
                patient_insurance.c.policy_number,
                patient_insurance.c.card_number,
                patient_insurance.c.priority,
                patient_insurance.c.start_date,
                patient_insurance.c.end_date,
                patient_insurance.c.is_active,
                insurance_plan.c.coverage_percent,
                insurance_plan.c.deductible,
                insurance_plan.c.max_payout,
            )
            .join(
                insurance_plan,
                insurance_plan.c.insurance_plan_id == patient_insurance.c.insurance_plan_id,
            )
            .where(
                patient_insurance.c.patient_id == patient_id,
                patient_insurance.c.is_deleted.is_(False),
            )
            .order_by(patient_insurance.c.priority, patient_insurance.c.patient_insurance_id)
        )
        return [
            InsurancePolicy(
                policy_id=row.patient_insurance_id,
                patient_id=row.patient_id,
                plan_id=row.insurance_plan_id,
                policy_number=row.policy_number,
                card_number=row.card_number,
                priority=row.priority,
                coverage_percent=deserialize_decimal(row.coverage_percent),
                deductible=deserialize_decimal(row.deductible),
                max_payout=deserialize_decimal(row.max_payout),
                start_date=row.start_date,
                end_date=row.end_date,
                is_active=row.is_active,
            )
            for row in conn.execute(stmt)
        ]

    def _load_overrides(self, conn: Connection, plan_ids: set[int]) -> list[ServiceTariffOverride]:
        if not plan_ids:
            return []
        stmt = select(plan_service).where(
            plan_service.c.insurance_plan_id.in_(sorted(plan_ids)),
            plan_service.c.is_deleted.is_(False),
        )
        return [
            ServiceTariffOverride(
                plan_id=row.insurance_plan_id,
                service_category_id=row.service_category_id,
                coverage_percent_override=deserialize_decimal(row.coverage_override),
                max_payout_override=deserialize_decimal(row.max_payout_override),
                is_covered=row.is_covered,
            )
            for row in conn.execute(stmt)
        ]

    def _known_categories(self, conn: Connection, requested: set[int]) -> set[int]:
        if not requested:
            return set()
        stmt = select(service_category.c.service_category_id).where(
            service_category.c.service_category_id.in_(sorted(requested)),
            service_category.c.is_active.is_(True),
        )
        return {row.service_category_id for row in conn.execute(stmt)}

"""
Append-only audit store for calculation results (SQLAlchemy Core).

Rows are inserted, never updated or deleted. Whether a record has been
superseded is derived on read from the record that references it.
"""

from datetime import date, datetime
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy import func, insert, select
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import IntegrityError

from clinic_coverage.db.schema import insurance_calculation, insurance_calculation_line
from clinic_coverage.domain.errors import CalculationNotFoundError, CalculationSupersededError
from clinic_coverage.domain.result import (
    CalculationPage,
    CalculationRecord,
    CalculationStatistics,
    CoverageContribution,
    CoverageResult,
)
from clinic_coverage.utils.money import ZERO
from clinic_coverage.utils.serializers import deserialize_decimal

logger = structlog.get_logger()

# The record, if any, that supersedes a given row
successor = insurance_calculation.alias("successor")


class SqlCalculationRecorder:
    """
    Writes one header row plus one line per contribution, in one transaction.

    Usage:
        recorder = SqlCalculationRecorder(engine)
        calculation_id = recorder.record(result, patient_id, result.policy_ids,
                                         service_id, "reception-desk-1", datetime.now())
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def record(
        self,
        result: CoverageResult,
        patient_id: int,
        policy_ids: list[int],
        service_id: Optional[int],
        calculated_by: str,
        timestamp: datetime,
        *,
        reception_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        supersedes_id: Optional[int] = None,
    ) -> int:
        try:
            with self.engine.begin() as conn:
                if supersedes_id is not None:
                    self._check_supersedable(conn, supersedes_id)

                calculation_id = self._insert(
                    conn,
                    result,
                    patient_id=patient_id,
                    policy_ids=policy_ids,
                    service_id=service_id,
                    calculated_by=calculated_by,
                    timestamp=timestamp,
                    reception_id=reception_id,
                    appointment_id=appointment_id,
                    supersedes_id=supersedes_id,
                )
        except IntegrityError as e:
            # A concurrent correction won the unique supersedes_id slot
            if supersedes_id is None:
                raise
            winner = self._successor_id(supersedes_id)
            raise CalculationSupersededError(
                f"Calculation {supersedes_id} is already superseded by {winner}",
                calculation_id=supersedes_id,
                superseded_by_id=winner,
            ) from e

        logger.debug(
            "calculation_row_written",
            calculation_id=calculation_id,
            lines=len(result.contributions),
            supersedes_id=supersedes_id,
        )
        return calculation_id

    def record_many(
        self,
        entries: Sequence[tuple[CoverageResult, Optional[int]]],
        patient_id: int,
        calculated_by: str,
        timestamp: datetime,
        *,
        reception_id: Optional[int] = None,
    ) -> list[int]:
        with self.engine.begin() as conn:
            calculation_ids = [
                self._insert(
                    conn,
                    result,
                    patient_id=patient_id,
                    policy_ids=result.policy_ids,
                    service_id=service_id,
                    calculated_by=calculated_by,
                    timestamp=timestamp,
                    reception_id=reception_id,
                )
                for result, service_id in entries
            ]

        logger.debug(
            "calculation_rows_written",
            calculation_ids=calculation_ids,
            reception_id=reception_id,
        )
        return calculation_ids

    def _insert(
        self,
        conn: Connection,
        result: CoverageResult,
        *,
        patient_id: int,
        policy_ids: list[int],
        service_id: Optional[int],
        calculated_by: str,
        timestamp: datetime,
        reception_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        supersedes_id: Optional[int] = None,
    ) -> int:
        header = conn.execute(
            insert(insurance_calculation).values(
                patient_id=patient_id,
                service_id=service_id,
                service_category_id=result.service_category_id,
                reception_id=reception_id,
                appointment_id=appointment_id,
                as_of_date=result.as_of_date,
                billed_amount=result.billed_amount,
                total_coverage=result.total_coverage,
                patient_share=result.patient_share,
                policy_ids=list(policy_ids),
                calculated_by=calculated_by,
                calculated_at=timestamp,
                supersedes_id=supersedes_id,
                result_json=result.model_dump_json(),
            )
        )
        calculation_id = header.inserted_primary_key[0]

        if result.contributions:
            conn.execute(
                insert(insurance_calculation_line),
                [self._line_values(calculation_id, seq, c) for seq, c in enumerate(result.contributions, start=1)],
            )
        return calculation_id

    @staticmethod
    def _line_values(calculation_id: int, sequence: int, c: CoverageContribution) -> dict[str, Any]:
        return {
            "calculation_id": calculation_id,
            "sequence": sequence,
            "policy_id": c.policy_id,
            "plan_id": c.plan_id,
            "priority": c.priority,
            "outcome": c.outcome.value,
            "remaining_before": c.remaining_before,
            "deductible": c.deductible,
            "amount_considered": c.amount_considered,
            "coverage_percent": c.coverage_percent,
            "max_payout": c.max_payout,
            "raw_coverage": c.raw_coverage,
            "effective_coverage": c.effective_coverage,
            "remaining_after": c.remaining_after,
        }

    def _check_supersedable(self, conn: Connection, calculation_id: int) -> None:
        exists = conn.execute(
            select(insurance_calculation.c.calculation_id).where(
                insurance_calculation.c.calculation_id == calculation_id
            )
        ).first()
        if exists is None:
            raise CalculationNotFoundError(
                f"Calculation {calculation_id} does not exist",
                calculation_id=calculation_id,
            )
        successor_row = conn.execute(
            select(insurance_calculation.c.calculation_id).where(
                insurance_calculation.c.supersedes_id == calculation_id
            )
        ).first()
        if successor_row is not None:
            raise CalculationSupersededError(
                f"Calculation {calculation_id} is already superseded by {successor_row.calculation_id}",
                calculation_id=calculation_id,
                superseded_by_id=successor_row.calculation_id,
            )

    def _successor_id(self, calculation_id: int) -> Optional[int]:
        with self.engine.connect() as conn:
            return conn.execute(
                select(insurance_calculation.c.calculation_id).where(
                    insurance_calculation.c.supersedes_id == calculation_id
                )
            ).scalar()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def _select():
        return (
            select(
                insurance_calculation,
                successor.c.calculation_id.label("superseded_by_id"),
            )
            .outerjoin(successor, successor.c.supersedes_id == insurance_calculation.c.calculation_id)
            .order_by(insurance_calculation.c.calculation_id)
        )

    @staticmethod
    def _to_record(row: Row) -> CalculationRecord:
        return CalculationRecord(
            calculation_id=row.calculation_id,
            patient_id=row.patient_id,
            service_id=row.service_id,
            service_category_id=row.service_category_id,
            reception_id=row.reception_id,
            appointment_id=row.appointment_id,
            policy_ids=tuple(row.policy_ids),
            calculated_by=row.calculated_by,
            calculated_at=row.calculated_at,
            supersedes_id=row.supersedes_id,
            superseded_by_id=row.superseded_by_id,
            result=CoverageResult.model_validate_json(row.result_json),
        )

    def _fetch(self, *criteria) -> list[CalculationRecord]:
        with self.engine.connect() as conn:
            rows = conn.execute(self._select().where(*criteria)).all()
        return [self._to_record(row) for row in rows]

    def get(self, calculation_id: int) -> CalculationRecord | None:
        records = self._fetch(insurance_calculation.c.calculation_id == calculation_id)
        return records[0] if records else None

    def list_for_patient(self, patient_id: int) -> list[CalculationRecord]:
        return self._fetch(insurance_calculation.c.patient_id == patient_id)

    def list_for_reception(self, reception_id: int) -> list[CalculationRecord]:
        return self._fetch(insurance_calculation.c.reception_id == reception_id)

    def latest_for_patient_service(
        self,
        patient_id: int,
        service_id: int,
    ) -> CalculationRecord | None:
        current = [
            r for r in self._fetch(
                insurance_calculation.c.patient_id == patient_id,
                insurance_calculation.c.service_id == service_id,
            )
            if not r.is_superseded
        ]
        return current[-1] if current else None

    def search(
        self,
        *,
        patient_id: Optional[int] = None,
        service_id: Optional[int] = None,
        plan_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        current_only: bool = False,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page_number: int = 1,
        page_size: int = 10,
    ) -> CalculationPage:
        offset = CalculationPage.offset(page_number, page_size)
        calc = insurance_calculation.c

        criteria = []
        if patient_id is not None:
            criteria.append(calc.patient_id == patient_id)
        if service_id is not None:
            criteria.append(calc.service_id == service_id)
        if plan_id is not None:
            criteria.append(
                calc.calculation_id.in_(
                    select(insurance_calculation_line.c.calculation_id).where(
                        insurance_calculation_line.c.plan_id == plan_id
                    )
                )
            )
        if appointment_id is not None:
            criteria.append(calc.appointment_id == appointment_id)
        if current_only:
            criteria.append(successor.c.calculation_id.is_(None))
        if from_date is not None:
            criteria.append(calc.as_of_date >= from_date)
        if to_date is not None:
            criteria.append(calc.as_of_date <= to_date)

        matching = self._select().where(*criteria)
        with self.engine.connect() as conn:
            total_count = conn.execute(
                select(func.count()).select_from(matching.order_by(None).subquery())
            ).scalar_one()
            rows = conn.execute(
                matching.order_by(None)
                .order_by(calc.calculation_id.desc())
                .offset(offset)
                .limit(page_size)
            ).all()

        return CalculationPage(
            items=tuple(self._to_record(row) for row in rows),
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
        )

    def statistics(self) -> CalculationStatistics:
        calc = insurance_calculation.c
        with self.engine.connect() as conn:
            total = conn.execute(
                select(func.count()).select_from(insurance_calculation)
            ).scalar_one()
            current, coverage, share = conn.execute(
                select(
                    func.count(),
                    func.sum(calc.total_coverage),
                    func.sum(calc.patient_share),
                )
                .select_from(
                    insurance_calculation.outerjoin(
                        successor, successor.c.supersedes_id == calc.calculation_id
                    )
                )
                .where(successor.c.calculation_id.is_(None))
            ).one()

        return CalculationStatistics.from_totals(
            total_calculations=total,
            current_calculations=current,
            total_coverage=deserialize_decimal(coverage) or ZERO,
            total_patient_share=deserialize_decimal(share) or ZERO,
        )

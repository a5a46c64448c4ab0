"""
In-memory data source and recorder.

Used by tests and by the JSON reference data loader.
"""

from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.domain.errors import (
    CalculationNotFoundError,
    CalculationSupersededError,
    UnknownPatientError,
)
from clinic_coverage.domain.policy import InsurancePolicy
from clinic_coverage.domain.result import (
    CalculationPage,
    CalculationRecord,
    CalculationStatistics,
    CoverageResult,
)
from clinic_coverage.domain.tariff import ServiceTariffOverride
from clinic_coverage.utils.money import ZERO


class InMemoryCoverageDataSource:
    """
    Holds policies and overrides in memory.

    The stored tuples are replaced, never mutated, so a snapshot taken
    before ``replace_overrides`` keeps seeing the old tariff.
    """

    def __init__(
        self,
        patient_ids: Iterable[int],
        service_category_ids: Iterable[int],
        policies: Iterable[InsurancePolicy] = (),
        overrides: Iterable[ServiceTariffOverride] = (),
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._patient_ids = frozenset(patient_ids)
        self._categories = frozenset(service_category_ids)
        self._policies = tuple(policies)
        self._overrides = tuple(overrides)
        self._clock = clock

    def load_snapshot(
        self,
        patient_id: int,
        service_category_ids: Iterable[int],
    ) -> CoverageSnapshot:
        if patient_id not in self._patient_ids:
            raise UnknownPatientError(f"Patient {patient_id} does not exist", patient_id=patient_id)

        policies = tuple(p for p in self._policies if p.patient_id == patient_id)
        plan_ids = {p.plan_id for p in policies}
        return CoverageSnapshot(
            patient_id=patient_id,
            policies=policies,
            overrides=[o for o in self._overrides if o.plan_id in plan_ids],
            known_service_category_ids=set(service_category_ids) & self._categories,
            taken_at=self._clock(),
        )

    def replace_policies(self, policies: Iterable[InsurancePolicy]) -> None:
        self._policies = tuple(policies)

    def replace_overrides(self, overrides: Iterable[ServiceTariffOverride]) -> None:
        self._overrides = tuple(overrides)


class InMemoryCalculationRecorder:
    """
    Captures calculation records in memory.

    NOT thread-safe - intended for single-threaded test use.
    """

    def __init__(self) -> None:
        self._records: dict[int, CalculationRecord] = {}
        self._superseded_by: dict[int, int] = {}
        self._next_id = 1

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
        if supersedes_id is not None:
            self._check_supersedable(supersedes_id)

        record = self._build(
            self._next_id,
            result,
            patient_id,
            policy_ids,
            service_id,
            calculated_by,
            timestamp,
            reception_id=reception_id,
            appointment_id=appointment_id,
            supersedes_id=supersedes_id,
        )
        self._commit([record])
        return record.calculation_id

    def record_many(
        self,
        entries: Sequence[tuple[CoverageResult, Optional[int]]],
        patient_id: int,
        calculated_by: str,
        timestamp: datetime,
        *,
        reception_id: Optional[int] = None,
    ) -> list[int]:
        # Build everything first; nothing is stored unless every entry builds
        staged = [
            self._build(
                self._next_id + offset,
                result,
                patient_id,
                result.policy_ids,
                service_id,
                calculated_by,
                timestamp,
                reception_id=reception_id,
            )
            for offset, (result, service_id) in enumerate(entries)
        ]
        self._commit(staged)
        return [r.calculation_id for r in staged]

    def _check_supersedable(self, calculation_id: int) -> None:
        if calculation_id not in self._records:
            raise CalculationNotFoundError(
                f"Calculation {calculation_id} does not exist",
                calculation_id=calculation_id,
            )
        if calculation_id in self._superseded_by:
            raise CalculationSupersededError(
                f"Calculation {calculation_id} is already superseded by "
                f"{self._superseded_by[calculation_id]}",
                calculation_id=calculation_id,
                superseded_by_id=self._superseded_by[calculation_id],
            )

    def _build(
        self,
        calculation_id: int,
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
    ) -> CalculationRecord:
        return CalculationRecord(
            calculation_id=calculation_id,
            patient_id=patient_id,
            service_id=service_id,
            service_category_id=result.service_category_id,
            reception_id=reception_id,
            appointment_id=appointment_id,
            policy_ids=tuple(policy_ids),
            calculated_by=calculated_by,
            calculated_at=timestamp,
            supersedes_id=supersedes_id,
            result=result,
        )

    def _commit(self, records: list[CalculationRecord]) -> None:
        for record in records:
            self._records[record.calculation_id] = record
            if record.supersedes_id is not None:
                self._superseded_by[record.supersedes_id] = record.calculation_id
        self._next_id += len(records)

    def _with_status(self, record: CalculationRecord) -> CalculationRecord:
        superseded_by = self._superseded_by.get(record.calculation_id)
        if superseded_by is None:
            return record
        return record.model_copy(update={"superseded_by_id": superseded_by})

    def get(self, calculation_id: int) -> CalculationRecord | None:
        record = self._records.get(calculation_id)
        return self._with_status(record) if record else None

    def list_for_patient(self, patient_id: int) -> list[CalculationRecord]:
        return [self._with_status(r) for r in self._records.values() if r.patient_id == patient_id]

    def list_for_reception(self, reception_id: int) -> list[CalculationRecord]:
        return [self._with_status(r) for r in self._records.values() if r.reception_id == reception_id]

    def latest_for_patient_service(
        self,
        patient_id: int,
        service_id: int,
    ) -> CalculationRecord | None:
        candidates = [
            r for r in self._records.values()
            if r.patient_id == patient_id
            and r.service_id == service_id
            and r.calculation_id not in self._superseded_by
        ]
        return candidates[-1] if candidates else None

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

        def matches(r: CalculationRecord) -> bool:
            as_of = r.result.as_of_date
            return (
                (patient_id is None or r.patient_id == patient_id)
                and (service_id is None or r.service_id == service_id)
                and (plan_id is None or plan_id in r.plan_ids)
                and (appointment_id is None or r.appointment_id == appointment_id)
                and (not current_only or r.calculation_id not in self._superseded_by)
                and (from_date is None or as_of >= from_date)
                and (to_date is None or as_of <= to_date)
            )

        found = [self._with_status(r) for r in reversed(self._records.values()) if matches(r)]
        return CalculationPage(
            items=tuple(found[offset:offset + page_size]),
            total_count=len(found),
            page_number=page_number,
            page_size=page_size,
        )

    def statistics(self) -> CalculationStatistics:
        current = [r for r in self._records.values() if r.calculation_id not in self._superseded_by]
        return CalculationStatistics.from_totals(
            total_calculations=len(self._records),
            current_calculations=len(current),
            total_coverage=sum((r.result.total_coverage for r in current), ZERO),
            total_patient_share=sum((r.result.patient_share for r in current), ZERO),
        )

    # ---- Test helpers ----

    @property
    def records(self) -> list[CalculationRecord]:
        """All stored records, oldest first."""
        return [self._with_status(r) for r in self._records.values()]

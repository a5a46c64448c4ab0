"""
Protocol definitions for the engine's persistence boundary.

Defines the contracts that both the in-memory and the SQLAlchemy
implementations satisfy.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.domain.result import (
    CalculationPage,
    CalculationRecord,
    CalculationStatistics,
    CoverageResult,
)


@runtime_checkable
class CoverageDataSource(Protocol):
    """
    Source of policy and tariff data.

    Implementations must read the patient's policies and the overrides of
    their plans from one consistent state (one transaction, or one cached
    configuration version).
    """

    def load_snapshot(
        self,
        patient_id: int,
        service_category_ids: Iterable[int],
    ) -> CoverageSnapshot:
        """
        Read everything a calculation for this patient needs.

        Raises:
            UnknownPatientError: If the patient does not exist
        """
        ...


@runtime_checkable
class CalculationRecorder(Protocol):
    """
    Append-only store of calculation audit records.

    There is deliberately no update or delete: a correction is a new record
    whose supersedes_id references the record it replaces.
    """

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
        """
        Store a result and return the new calculation id.

        Raises:
            CalculationNotFoundError: If supersedes_id does not exist
            CalculationSupersededError: If supersedes_id is already superseded
        """
        ...

    def record_many(
        self,
        entries: Sequence[tuple[CoverageResult, Optional[int]]],
        patient_id: int,
        calculated_by: str,
        timestamp: datetime,
        *,
        reception_id: Optional[int] = None,
    ) -> list[int]:
        """
        Store several (result, service_id) pairs atomically.

        Either every entry is stored or none is. Returns the new ids in
        entry order.
        """
        ...

    def get(self, calculation_id: int) -> CalculationRecord | None:
        """Fetch one record."""
        ...

    def list_for_patient(self, patient_id: int) -> list[CalculationRecord]:
        """All records of a patient, oldest first."""
        ...

    def list_for_reception(self, reception_id: int) -> list[CalculationRecord]:
        """All records of a reception, oldest first."""
        ...

    def latest_for_patient_service(
        self,
        patient_id: int,
        service_id: int,
    ) -> CalculationRecord | None:
        """Latest record for a patient and service that has not been superseded."""
        ...

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
        """
        Filtered, paged records, newest first.

        plan_id matches records where any contribution came from that plan.
        The date range is inclusive and applies to the calculation date
        (as_of_date of the result).
        """
        ...

    def statistics(self) -> CalculationStatistics:
        """Counts and money totals over the whole store."""
        ...

"""
Coverage service: the engine's public operation.

Wires the pieces together for one request:

    data source -> snapshot -> policy resolver -> tariff resolver
                -> calculator -> recorder

Configuration and input errors raised anywhere along the way are returned
as a typed CalculationFailure inside a ServiceOutcome. A configuration
failure means the charge must be blocked and flagged for administrator
review; the service never falls back to full self-pay or full coverage.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Iterable, Optional

import structlog

from clinic_coverage.config.models import CalculationConfig
from clinic_coverage.core.calculator import calculate
from clinic_coverage.core.policy_resolver import PolicyResolver
from clinic_coverage.core.snapshot import CoverageSnapshot
from clinic_coverage.core.tariff_resolver import TariffResolver
from clinic_coverage.domain.charge import ChargeContext, ChargeLine
from clinic_coverage.domain.errors import (
    CalculationNotFoundError,
    CalculationSupersededError,
    CoverageError,
    UnknownServiceCategoryError,
)
from clinic_coverage.domain.result import (
    CalculationFailure,
    CoverageResult,
    ReceptionCoverage,
    ServiceOutcome,
)
from clinic_coverage.utils.logging import CalculationLogger
from clinic_coverage.utils.money import ZERO, to_decimal

if TYPE_CHECKING:
    from clinic_coverage.db.protocol import CalculationRecorder, CoverageDataSource


logger = structlog.get_logger()


class CoverageService:
    """
    Calculates coverage for patients and records the results.

    Stateless between calls: every call takes its own snapshot, so calls
    for different patients can run concurrently.

    Usage:
        service = CoverageService(data_source, recorder=recorder)
        outcome = service.calculate_coverage(patient_id=12, service_category_id=3,
                                             billed_amount=Decimal("1000000"))
        if outcome.ok:
            print(outcome.value.patient_share)
    """

    def __init__(
        self,
        data_source: "CoverageDataSource",
        recorder: Optional["CalculationRecorder"] = None,
        clock: Callable[[], datetime] = datetime.now,
        config: Optional[CalculationConfig] = None,
    ):
        """
        Initialize the service.

        Args:
            data_source: Where policies and tariff overrides are read from
            recorder: Audit store; when None, nothing is recorded
            clock: Supplies "now" for default dates and audit timestamps
            config: Numeric settings (currency unit)
        """
        self.data_source = data_source
        self.recorder = recorder
        self.clock = clock
        self.config = config or CalculationConfig()

    # =========================================================================
    # Public operations
    # =========================================================================

    def calculate_coverage(
        self,
        patient_id: int,
        service_category_id: int,
        billed_amount: Decimal | int | str,
        as_of_date: Optional[date] = None,
        *,
        service_id: Optional[int] = None,
        reception_id: Optional[int] = None,
        appointment_id: Optional[int] = None,
        calculated_by: str = "SYSTEM",
    ) -> ServiceOutcome[CoverageResult]:
        """
        Calculate coverage for one service charge.

        Args:
            patient_id: Patient being charged
            service_category_id: Category of the charged service
            billed_amount: Amount billed (Decimal, int or str; never float)
            as_of_date: Date policies must be valid on (default: today)
            service_id: Service being charged, stored on the audit record
            reception_id: Reception the charge belongs to, if any
            appointment_id: Appointment the charge belongs to, if any
            calculated_by: User id stored on the audit record

        Returns:
            ServiceOutcome holding the CoverageResult or a CalculationFailure
        """
        log = CalculationLogger(patient_id=patient_id, service_category_id=service_category_id)
        try:
            as_of = as_of_date or self.clock().date()
            charge = ChargeContext(
                service_category_id=service_category_id,
                billed_amount=to_decimal(billed_amount, "billed_amount"),
                as_of_date=as_of,
            )
            snapshot = self.data_source.load_snapshot(patient_id, [service_category_id])
            result = self._price(snapshot, charge)

            calculation_ids: tuple[int, ...] = ()
            if self.recorder is not None:
                calculation_id = self._record(
                    result,
                    patient_id,
                    service_id=service_id,
                    reception_id=reception_id,
                    appointment_id=appointment_id,
                    calculated_by=calculated_by,
                )
                log.calculation_recorded(calculation_id)
                calculation_ids = (calculation_id,)

            return ServiceOutcome[CoverageResult](value=result, calculation_ids=calculation_ids)

        except CoverageError as e:
            return self._failure(log, e)

    def calculate_reception_costs(
        self,
        patient_id: int,
        charges: Iterable[ChargeLine],
        as_of_date: Optional[date] = None,
        *,
        reception_id: Optional[int] = None,
        calculated_by: str = "SYSTEM",
    ) -> ServiceOutcome[ReceptionCoverage]:
        """
        Price every charge of a reception from one snapshot.

        Each line is an independent claim: deductibles apply per line. If any
        line fails, the whole reception fails and nothing is recorded.

        Returns:
            ServiceOutcome holding a ReceptionCoverage or a CalculationFailure
        """
        lines = list(charges)
        log = CalculationLogger(patient_id=patient_id, reception_id=reception_id)
        try:
            as_of = as_of_date or self.clock().date()
            snapshot = self.data_source.load_snapshot(
                patient_id, {line.service_category_id for line in lines}
            )
            results = [
                self._price(
                    snapshot,
                    ChargeContext(
                        service_category_id=line.service_category_id,
                        billed_amount=line.billed_amount,
                        as_of_date=as_of,
                    ),
                )
                for line in lines
            ]

            calculation_ids: list[int] = []
            if self.recorder is not None:
                calculation_ids = self.recorder.record_many(
                    [(result, line.service_id) for line, result in zip(lines, results)],
                    patient_id,
                    calculated_by,
                    self.clock(),
                    reception_id=reception_id,
                )

            reception = ReceptionCoverage(
                patient_id=patient_id,
                as_of_date=as_of,
                lines=tuple(results),
                total_billed=sum((r.billed_amount for r in results), ZERO),
                total_coverage=sum((r.total_coverage for r in results), ZERO),
                total_patient_share=sum((r.patient_share for r in results), ZERO),
            )
            logger.info(
                "reception_priced",
                patient_id=patient_id,
                reception_id=reception_id,
                lines=len(results),
                total_coverage=str(reception.total_coverage),
                total_patient_share=str(reception.total_patient_share),
            )
            return ServiceOutcome[ReceptionCoverage](
                value=reception,
                calculation_ids=tuple(calculation_ids),
            )

        except CoverageError as e:
            return self._failure(log, e)

    def is_service_covered(
        self,
        patient_id: int,
        service_category_id: int,
        as_of_date: Optional[date] = None,
    ) -> ServiceOutcome[bool]:
        """
        Whether at least one active policy covers the service category.

        Returns:
            ServiceOutcome holding True/False or a CalculationFailure
        """
        log = CalculationLogger(patient_id=patient_id, service_category_id=service_category_id)
        try:
            as_of = as_of_date or self.clock().date()
            snapshot = self.data_source.load_snapshot(patient_id, [service_category_id])
            self._require_category(snapshot, service_category_id)

            policies = PolicyResolver(snapshot).resolve_active_policies(patient_id, as_of)
            resolve_tariff = TariffResolver(snapshot)
            covered = any(resolve_tariff(p, service_category_id).is_covered for p in policies)
            return ServiceOutcome[bool](value=covered)

        except CoverageError as e:
            return self._failure(log, e)

    def has_valid_insurance(
        self,
        patient_id: int,
        as_of_date: Optional[date] = None,
    ) -> ServiceOutcome[bool]:
        """Whether the patient has at least one active policy on the date."""
        log = CalculationLogger(patient_id=patient_id)
        try:
            as_of = as_of_date or self.clock().date()
            snapshot = self.data_source.load_snapshot(patient_id, [])
            policies = PolicyResolver(snapshot).resolve_active_policies(patient_id, as_of)
            return ServiceOutcome[bool](value=bool(policies))

        except CoverageError as e:
            return self._failure(log, e)

    def correct_calculation(
        self,
        calculation_id: int,
        *,
        calculated_by: str,
        billed_amount: Decimal | int | str | None = None,
    ) -> ServiceOutcome[CoverageResult]:
        """
        Supersede an audit record with a fresh calculation.

        The original charge (patient, category, date, service, reception) is
        recalculated against current policy data, optionally with a corrected
        amount, and stored as a new record referencing the old one.

        Returns:
            ServiceOutcome holding the new CoverageResult or a CalculationFailure
        """
        log = CalculationLogger(calculation_id=calculation_id)
        try:
            if self.recorder is None:
                raise CalculationNotFoundError(
                    "No calculation recorder is configured",
                    calculation_id=calculation_id,
                )
            original = self.recorder.get(calculation_id)
            if original is None:
                raise CalculationNotFoundError(
                    f"Calculation {calculation_id} does not exist",
                    calculation_id=calculation_id,
                )
            if original.is_superseded:
                raise CalculationSupersededError(
                    f"Calculation {calculation_id} is already superseded by "
                    f"{original.superseded_by_id}",
                    calculation_id=calculation_id,
                    superseded_by_id=original.superseded_by_id,
                )

            amount = (
                original.result.billed_amount
                if billed_amount is None
                else to_decimal(billed_amount, "billed_amount")
            )
            charge = ChargeContext(
                service_category_id=original.service_category_id,
                billed_amount=amount,
                as_of_date=original.result.as_of_date,
            )
            snapshot = self.data_source.load_snapshot(
                original.patient_id, [original.service_category_id]
            )
            result = self._price(snapshot, charge)

            new_id = self._record(
                result,
                original.patient_id,
                service_id=original.service_id,
                reception_id=original.reception_id,
                appointment_id=original.appointment_id,
                calculated_by=calculated_by,
                supersedes_id=calculation_id,
            )
            log.calculation_recorded(new_id, supersedes_id=calculation_id)
            return ServiceOutcome[CoverageResult](value=result, calculation_ids=(new_id,))

        except CoverageError as e:
            return self._failure(log, e)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _require_category(snapshot: CoverageSnapshot, service_category_id: int) -> None:
        if not snapshot.has_service_category(service_category_id):
            raise UnknownServiceCategoryError(
                f"Service category {service_category_id} does not exist",
                service_category_id=service_category_id,
            )

    def _price(self, snapshot: CoverageSnapshot, charge: ChargeContext) -> CoverageResult:
        """Resolve policies and tariffs from the snapshot and run the waterfall."""
        self._require_category(snapshot, charge.service_category_id)
        policies = PolicyResolver(snapshot).resolve_active_policies(
            snapshot.patient_id, charge.as_of_date
        )
        return calculate(
            charge,
            policies,
            TariffResolver(snapshot),
            patient_id=snapshot.patient_id,
            currency_unit=self.config.currency_unit,
        )

    def _record(
        self,
        result: CoverageResult,
        patient_id: int,
        *,
        service_id: Optional[int],
        reception_id: Optional[int],
        calculated_by: str,
        appointment_id: Optional[int] = None,
        supersedes_id: Optional[int] = None,
    ) -> int:
        return self.recorder.record(
            result,
            patient_id,
            result.policy_ids,
            service_id,
            calculated_by,
            self.clock(),
            reception_id=reception_id,
            appointment_id=appointment_id,
            supersedes_id=supersedes_id,
        )

    @staticmethod
    def _failure(log: CalculationLogger, error: CoverageError) -> ServiceOutcome:
        failure = CalculationFailure.from_error(error)
        log.calculation_failed(failure.kind.value, failure.code, failure.message, **failure.details)
        return ServiceOutcome(failure=failure)

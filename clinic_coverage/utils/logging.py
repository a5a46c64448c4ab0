"""
Structured logging configuration for the coverage engine.

Uses structlog for structured, contextual logging.
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output logs as JSON
    """
    # Logs go to stderr so CLI output on stdout stays machine-readable
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )
    # basicConfig is a no-op once handlers exist; a later call still sets the level
    logging.getLogger().setLevel(getattr(logging, level.upper()))

    processors: list[Any] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class CalculationLogger:
    """
    Specialized logger for coverage calculation events.

    Provides convenience methods for the events a calculation emits, so
    every call site logs the same event names and field names.

    Usage:
        logger = CalculationLogger(patient_id=12, service_category_id=3)
        logger.calculation_started(billed_amount, as_of_date)
        logger.policy_not_covered(policy_id, priority)
    """

    def __init__(self, **context: Any):
        """
        Initialize the calculation logger.

        Args:
            **context: Fields bound to every event (patient_id, etc.)
        """
        self._logger = structlog.get_logger("clinic_coverage.calculation").bind(**context)

    # Calculation lifecycle events
    def calculation_started(self, billed_amount: Any, as_of_date: Any, **kwargs: Any) -> None:
        """Log the start of a calculation."""
        self._logger.debug(
            "calculation_started",
            billed_amount=str(billed_amount),
            as_of_date=str(as_of_date),
            **kwargs,
        )

    def calculation_completed(
        self,
        total_coverage: Any,
        patient_share: Any,
        policy_count: int,
        **kwargs: Any,
    ) -> None:
        """Log a completed calculation."""
        self._logger.info(
            "calculation_completed",
            total_coverage=str(total_coverage),
            patient_share=str(patient_share),
            policy_count=policy_count,
            **kwargs,
        )

    def calculation_failed(self, kind: str, code: str, message: str, **kwargs: Any) -> None:
        """Log a failed calculation.

        Configuration failures need administrator review and go out at error
        level; input failures are the caller's to fix and stay at warning.
        """
        log = self._logger.error if kind == "configuration" else self._logger.warning
        log("calculation_failed", kind=kind, code=code, message=message, **kwargs)

    def calculation_recorded(self, calculation_id: int, **kwargs: Any) -> None:
        """Log an audit record write."""
        self._logger.info("calculation_recorded", calculation_id=calculation_id, **kwargs)

    # Per-policy events
    def contribution_computed(
        self,
        policy_id: int,
        priority: int,
        outcome: str,
        effective_coverage: Any,
        remaining_after: Any,
        **kwargs: Any,
    ) -> None:
        """Log one policy's contribution."""
        self._logger.debug(
            "contribution_computed",
            policy_id=policy_id,
            priority=priority,
            outcome=outcome,
            effective_coverage=str(effective_coverage),
            remaining_after=str(remaining_after),
            **kwargs,
        )

    def policy_not_covered(self, policy_id: int, priority: int, **kwargs: Any) -> None:
        """Log a policy that excludes the charged service category."""
        self._logger.info(
            "policy_not_covered",
            policy_id=policy_id,
            priority=priority,
            **kwargs,
        )

    def policy_zero_cap(self, policy_id: int, priority: int, **kwargs: Any) -> None:
        """Log a covered policy whose payout cap is exactly zero."""
        self._logger.info(
            "policy_zero_cap",
            policy_id=policy_id,
            priority=priority,
            **kwargs,
        )

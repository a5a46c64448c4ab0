"""
Configuration validation for the coverage engine.

Provides additional validation beyond Pydantic model validation.
"""

from pathlib import Path

import structlog

from clinic_coverage.config.models import EngineConfig

logger = structlog.get_logger()

REFERENCE_FILES = [
    "patients.json",
    "service_categories.json",
    "insurance_plans.json",
    "patient_insurances.json",
    "plan_services.json",
]


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


def validate_config(config: EngineConfig) -> list[str]:
    """
    Validate engine configuration.

    Performs validation checks beyond what Pydantic models provide,
    such as cross-field validation and resource availability checks.

    Args:
        config: EngineConfig to validate

    Returns:
        List of warning messages (non-fatal issues)

    Raises:
        ConfigurationError: If configuration has fatal issues
    """
    warnings: list[str] = []
    errors: list[str] = []

    ref_path = Path(config.reference_data_path)
    if not ref_path.exists():
        warnings.append(
            f"Reference data path does not exist: {ref_path}. "
            "Only the database data source will be usable."
        )
    elif not ref_path.is_dir():
        errors.append(f"Reference data path is not a directory: {ref_path}")
    else:
        missing_files = [f for f in REFERENCE_FILES if not (ref_path / f).exists()]
        if missing_files:
            warnings.append(
                f"Missing reference data files: {', '.join(missing_files)}. "
                "The JSON data source needs all of them."
            )

    if not config.database.url and not config.database.password:
        warnings.append("Database password is empty.")

    for warning in warnings:
        logger.warning("config_validation_warning", message=warning)

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return warnings


def validate_database_connection(config: EngineConfig) -> bool:
    """
    Test database connection using configuration.

    Args:
        config: EngineConfig with database settings

    Returns:
        True if connection successful

    Raises:
        ConfigurationError: If connection fails
    """
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from clinic_coverage.db.connection import create_engine_from_config

    try:
        engine = create_engine_from_config(config.database)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        raise ConfigurationError(f"Database connection failed: {e}") from e

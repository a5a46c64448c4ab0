"""
Database initialization for the coverage engine.

Creates the audit tables and, optionally, the reference tables the SQL data
source reads (useful for local setups and tests; in production those tables
belong to the clinic system).
"""

import structlog
from sqlalchemy.engine import Engine

from clinic_coverage.db.schema import AUDIT_TABLES, REFERENCE_TABLES, metadata

logger = structlog.get_logger()


def init_database(
    engine: Engine,
    include_reference: bool = False,
    drop_existing: bool = False,
) -> list[str]:
    """
    Create the engine's tables.

    Args:
        engine: SQLAlchemy engine
        include_reference: Also create patient/plan/policy/override tables
        drop_existing: Drop the selected tables first

    Returns:
        Names of the tables created (or already present)
    """
    tables = list(AUDIT_TABLES)
    if include_reference:
        tables = REFERENCE_TABLES + tables

    if drop_existing:
        logger.warning("dropping_existing_tables", tables=[t.name for t in tables])
        metadata.drop_all(engine, tables=tables)

    logger.info("creating_tables", tables=[t.name for t in tables])
    metadata.create_all(engine, tables=tables)

    logger.info("database_initialized_successfully")
    return [t.name for t in tables]

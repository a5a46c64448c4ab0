"""
Database connection management for the coverage engine.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from clinic_coverage.config.models import DatabaseConfig


def get_connection_string(config: DatabaseConfig) -> str:
    """
    Build the connection string.

    Args:
        config: Database configuration

    Returns:
        The configured URL, or a PostgreSQL URL for psycopg3
    """
    return config.connection_string


def create_engine_from_config(config: DatabaseConfig, application_name: str = "clinic_coverage") -> Engine:
    """
    Create SQLAlchemy engine from configuration.

    Pool settings and the application name only apply to PostgreSQL; other
    URLs (SQLite in tests) get SQLAlchemy's defaults.

    Args:
        config: Database configuration
        application_name: Label shown in pg_stat_activity

    Returns:
        SQLAlchemy Engine instance
    """
    connection_string = get_connection_string(config)

    if not connection_string.startswith("postgresql"):
        return create_engine(connection_string)

    return create_engine(
        connection_string,
        pool_size=config.pool_size,
        pool_pre_ping=True,
        connect_args={"application_name": application_name},
    )

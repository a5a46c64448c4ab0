"""
Database module for the coverage engine.

Provides:
- Data source and recorder protocols
- In-memory implementations
- SQLAlchemy data source, append-only recorder and schema
- Database initialization
"""

from clinic_coverage.db.protocol import CoverageDataSource, CalculationRecorder
from clinic_coverage.db.memory import InMemoryCoverageDataSource, InMemoryCalculationRecorder
from clinic_coverage.db.connection import create_engine_from_config, get_connection_string
from clinic_coverage.db.sources import SqlCoverageDataSource
from clinic_coverage.db.recorder import SqlCalculationRecorder
from clinic_coverage.db.initialize import init_database

__all__ = [
    "CoverageDataSource",
    "CalculationRecorder",
    "InMemoryCoverageDataSource",
    "InMemoryCalculationRecorder",
    "create_engine_from_config",
    "get_connection_string",
    "SqlCoverageDataSource",
    "SqlCalculationRecorder",
    "init_database",
]

"""
Pydantic configuration models for the coverage engine.

These models define the structure and validation for engine configuration.
"""

from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from clinic_coverage.utils.money import normalize_currency_unit


class CalculationConfig(BaseModel):
    """Numeric settings for the coverage waterfall."""

    currency_unit: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description=(
            "Smallest currency unit that each policy's effective coverage is "
            "rounded to (half-up). 1 for whole rials, 0.1 or 0.01 for minor units."
        ),
    )
    currency_code: str = Field(
        default="IRR",
        min_length=3,
        max_length=3,
        description="ISO 4217 code, carried for display only",
    )

    @field_validator("currency_unit", mode="before")
    @classmethod
    def unit_from_yaml_float(cls, v):
        """YAML reads 0.01 as a float; go through its repr, not its binary value."""
        if isinstance(v, float):
            return Decimal(repr(v))
        return v

    @field_validator("currency_unit")
    @classmethod
    def canonical_unit(cls, v: Decimal) -> Decimal:
        """Reject units other than 1, 0.1 or 0.01 and drop trailing zeros (1.0 -> 1)."""
        return normalize_currency_unit(v)


class DatabaseConfig(BaseModel):
    """Database connection settings for the audit store and SQL data source."""

    url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the individual fields when set",
    )
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="clinic", description="Database name")
    username: str = Field(default="clinic", description="Database username")
    password: str = Field(default="", description="Database password")
    pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Connection pool size",
    )

    @property
    def connection_string(self) -> str:
        """Build the connection string (PostgreSQL via psycopg unless url is set)."""
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg://{self.username}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Log level")
    json_output: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        """Ensure the level is one the logging module knows."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class EngineConfig(BaseSettings):
    """
    Root engine configuration.

    Values can be loaded from YAML files; environment variables fill in
    whatever the file leaves out, e.g. CLINIC_COVERAGE_DATABASE__URL=sqlite:///audit.db.
    """

    calculation: CalculationConfig = Field(default_factory=CalculationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    reference_data_path: Path = Field(
        default=Path("data/reference"),
        description="Path to reference data JSON files",
    )

    model_config = {
        "env_prefix": "CLINIC_COVERAGE_",
        "env_nested_delimiter": "__",
    }

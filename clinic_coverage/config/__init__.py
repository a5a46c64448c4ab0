"""
Configuration module for the coverage engine.

This module provides:
- Pydantic configuration models
- YAML configuration loading
- Configuration validation
"""

from clinic_coverage.config.models import (
    EngineConfig,
    CalculationConfig,
    DatabaseConfig,
    LoggingConfig,
)
from clinic_coverage.config.loader import load_config
from clinic_coverage.config.validation import ConfigurationError, validate_config

__all__ = [
    "EngineConfig",
    "CalculationConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "load_config",
    "ConfigurationError",
    "validate_config",
]

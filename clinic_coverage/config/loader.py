"""
YAML configuration loader for the coverage engine.

Loads configuration from YAML files with environment variable substitution.
"""

import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml

from clinic_coverage.config.models import EngineConfig

logger = structlog.get_logger()

DEFAULT_CONFIG_PATHS = [
    Path("config/coverage.yaml"),
    Path("coverage.yaml"),
    Path.home() / ".clinic_coverage" / "coverage.yaml",
]


def _substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute environment variables in configuration values.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replace(match: re.Match) -> str:
            var_name = match.group(1)
            default = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def load_yaml(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and substitute environment variables.

    Args:
        path: Path to the YAML file

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        yaml.YAMLError: If the YAML is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return {}

    return _substitute_env_vars(raw_config)


def load_config(
    config_path: str | Path | None = None,
    override_values: dict[str, Any] | None = None,
) -> EngineConfig:
    """
    Load engine configuration.

    A calculation needs no mandatory settings, so a
    missing default file is not an error: defaults plus environment apply.

    Args:
        config_path: Path to configuration YAML file. If None, the default
                    locations are searched.
        override_values: Dictionary of values to override after loading

    Returns:
        Validated EngineConfig object

    Raises:
        FileNotFoundError: If an explicit configuration file is not found
        ValidationError: If configuration is invalid
    """
    config_dict: dict[str, Any] = {}

    if config_path is None:
        for path in DEFAULT_CONFIG_PATHS:
            if path.exists():
                config_path = path
                break

    if config_path is not None:
        config_path = Path(config_path)
        config_dict = load_yaml(config_path)
        logger.debug("config_loaded", path=str(config_path))
    else:
        logger.debug("config_defaults_used")

    if override_values:
        config_dict = _deep_merge(config_dict, override_values)

    return EngineConfig(**config_dict)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base dictionary
        override: Dictionary with values to override

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result

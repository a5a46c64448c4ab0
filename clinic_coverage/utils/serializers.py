"""
JSON serialization helpers.

Coverage results leave the engine as JSON for front-end previews and for
the audit table's stored result column. Decimals are written as strings so
no precision is lost on the way out.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel


class CoverageEncoder(json.JSONEncoder):
    """
    Custom JSON encoder for engine types.

    Handles:
    - Decimal -> string (preserves precision)
    - date/datetime -> ISO format string
    - Enum -> value
    - Pydantic models -> dict (via model_dump)
    - set/frozenset/tuple -> list
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        return super().default(obj)


def serialize_to_json(data: Any, indent: int | None = 2) -> str:
    """
    Serialize data to JSON string using CoverageEncoder.

    Args:
        data: Data to serialize
        indent: JSON indentation (None for compact)

    Returns:
        JSON string
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return json.dumps(data, cls=CoverageEncoder, indent=indent)


def deserialize_decimal(value: str | int | None) -> Decimal | None:
    """Convert string to Decimal, handling None."""
    if value is None:
        return None
    return Decimal(str(value))

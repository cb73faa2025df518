from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import inspect


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def json_safe(value: Any) -> Any:
    """Convert a value into something a JSON column accepts.

    Decimals become strings so audited amounts keep their exact scale.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [json_safe(v) for v in value]
    return str(value)


def sa_model_to_dict(obj: Any) -> dict[str, Any]:
    """Column values of a mapped row, JSON-safe. Relationships are skipped."""
    columns = inspect(obj).mapper.column_attrs
    return {col.key: json_safe(getattr(obj, col.key)) for col in columns}

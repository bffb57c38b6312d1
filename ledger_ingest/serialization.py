"""JSON encoding that keeps large integer identifiers intact.

Chat platform ids are 64-bit snowflakes. Any integer outside the range a
double can represent exactly is written as a string so downstream JSON readers
never round it.
"""
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

MAX_SAFE_INTEGER = 2 ** 53 - 1


def _safe(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, dict):
        return {str(k): _safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_safe(v) for v in value]
    return value


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(obj: Any) -> str:
    """Serialize ``obj`` with big integers and timestamps as strings."""
    return json.dumps(_safe(obj), default=_default)

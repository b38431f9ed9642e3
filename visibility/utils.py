"""Shared utility functions used across the visibility modules."""
from __future__ import annotations

import json
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def join_list(values: list[Any] | None) -> str:
    """Join a list for display, ``""`` for empty or missing lists."""
    return ", ".join(str(v) for v in values or [])


def format_number(value: float | int) -> str:
    """Render a number as a plain decimal (``42`` rather than ``42.0``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

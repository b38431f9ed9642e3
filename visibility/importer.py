"""Parse an uploaded AI-search visibility export into new-analysis form fields.

Expected shape (other keys are ignored)::

    {
      "params": {"brandName": ..., "domain": ..., "company": ...,
                 "competitors": [...], "categories": [...]},
      "analysisResult": {"brandScores": {"<domain>": {"visibilityScore": 42}},
                         "rankings": [...]},
      "prompts": [...]
    }
"""
from __future__ import annotations

import json
import logging
from typing import Any

from visibility.errors import ValidationError
from visibility.schemas import ImportResult, VisibilityData

log = logging.getLogger(__name__)


def _s(value: object) -> str:
    """Safely coerce a value to a stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def _f(value: object) -> float:
    """Safely coerce a score to a float within 0-100."""
    try:
        v = float(value)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return 0.0
    return max(0.0, min(100.0, v))


def _list(value: object) -> list[Any]:
    return value if isinstance(value, list) else []


def is_visibility_export(data: Any) -> bool:
    """True if *data* carries the fields the form needs."""
    if not isinstance(data, dict):
        return False
    params = data.get("params")
    result = data.get("analysisResult")
    return (
        isinstance(params, dict) and bool(params.get("brandName"))
        and isinstance(result, dict) and bool(result.get("brandScores"))
    )


def parse_visibility_export(content: bytes | str) -> ImportResult:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Error reading JSON file. Please ensure it's valid JSON.") from exc
    if not is_visibility_export(data):
        raise ValidationError("Invalid JSON format. Please check your file.")

    params = data["params"]
    result = data["analysisResult"]
    brand_scores = result.get("brandScores") or {}

    domain = _s(params.get("domain")) or _s(params.get("company"))
    customer_score = brand_scores.get(domain) or {}
    visibility_score = _f(customer_score.get("visibilityScore") if isinstance(customer_score, dict) else None)
    customer_name = _s(params.get("brandName")) or _s(params.get("company")) or domain

    log.info("Imported visibility export for %s (score %s)", customer_name, visibility_score)
    return ImportResult(
        customer_name=customer_name,
        visibility_data=VisibilityData(
            topics=[_s(t) for t in _list(params.get("categories"))],
            competitors=[_s(c) for c in _list(params.get("competitors"))],
            visibility_score=visibility_score,
            prompts=_list(data.get("prompts")),
            leaderboard=_list(result.get("rankings")),
        ),
    )

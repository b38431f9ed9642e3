"""Extraction of brief candidates from free-form model output."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from visibility.errors import MalformedResponse

log = logging.getLogger(__name__)

# Greedy: first "[" through last "]" in the whole text.
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class BriefCandidate(BaseModel):
    """One brief proposal as returned by the model, before scoring."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    why_it_matters: str = ""
    implementation_steps: list[str] = []
    effort_score: int
    impact_score: int
    keywords: list[str] = []
    timeline: str = ""

    @field_validator("title", "description", "why_it_matters", "timeline", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("implementation_steps", "keywords", mode="before")
    @classmethod
    def _strings(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [str(x) for x in v if x is not None]


class ResponseParser(Protocol):
    def __call__(self, text: str) -> list[BriefCandidate]: ...


def extract_json_array(text: str) -> list[Any]:
    """Parse the bracketed section of *text* as a JSON array.

    Returns ``[]`` when the text has no ``[...]`` section. Raises
    ``MalformedResponse`` when the section is not valid JSON.
    """
    m = _ARRAY_RE.search(text or "")
    if not m:
        return []
    try:
        return json.loads(m.group(0))
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Model returned invalid JSON: {m.group(0)[:200]}") from exc


def parse_candidates(text: str) -> list[BriefCandidate]:
    """Default ``ResponseParser``: extract the array, keep elements that validate.

    Elements without numeric effort/impact scores cannot be ranked and are
    skipped. Out-of-range numbers are scored as given.
    """
    candidates: list[BriefCandidate] = []
    for idx, item in enumerate(extract_json_array(text)):
        if not isinstance(item, dict):
            log.warning("Skipping non-object brief at position %d", idx)
            continue
        try:
            candidates.append(BriefCandidate.model_validate(item))
        except PydanticValidationError as exc:
            log.warning("Skipping brief %r: %s", item.get("title", idx), exc.errors()[0]["msg"])
    return candidates

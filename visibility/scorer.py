"""Brief scoring and selection.

Scoring
-------
Each candidate gets a composite score from its effort and impact scores
(nominally 1-10)::

    composite = round(((impact * 2) - effort) / 10 * 100)

High impact and low effort rank first. For in-range inputs the score runs
from -80 (effort 10, impact 1) to 190 (effort 1, impact 10); out-of-range
numbers from the model are scored as given. Negative scores are kept: they are
still selected when there are not enough better candidates.

Selection
---------
Candidates from all categories are pooled in processing order, sorted by
composite score descending, and truncated to the requested count. The sort is
stable, so equal scores keep category order and then model return order.
"""
from __future__ import annotations

from dataclasses import dataclass

from visibility.parser import BriefCandidate

MIN_BRIEF_COUNT = 1
MAX_BRIEF_COUNT = 30
DEFAULT_BRIEF_COUNT = 15


def composite_score(effort: int, impact: int) -> int:
    """Effort/impact ranking value (higher = better)."""
    return round(((impact * 2) - effort) / 10 * 100)


@dataclass
class ScoredBrief:
    category: str
    candidate: BriefCandidate
    score: int


def score_candidates(category: str, candidates: list[BriefCandidate]) -> list[ScoredBrief]:
    return [
        ScoredBrief(category=category, candidate=c, score=composite_score(c.effort_score, c.impact_score))
        for c in candidates
    ]


def select_top(pool: list[ScoredBrief], count: int) -> list[ScoredBrief]:
    """Return the *count* highest-scoring briefs, ties in pool order."""
    return sorted(pool, key=lambda b: b.score, reverse=True)[:max(count, 0)]

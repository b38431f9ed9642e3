"""Tests for composite scoring and top-N selection."""
from __future__ import annotations

import pytest

from visibility.parser import BriefCandidate
from visibility.scorer import ScoredBrief, composite_score, score_candidates, select_top


def _candidate(title: str, effort: int = 5, impact: int = 5) -> BriefCandidate:
    return BriefCandidate(title=title, effort_score=effort, impact_score=impact)


def _scored(title: str, score: int, category: str = "Technology") -> ScoredBrief:
    return ScoredBrief(category=category, candidate=_candidate(title), score=score)


class TestCompositeScore:
    def test_best_case(self):
        assert composite_score(effort=1, impact=10) == 190

    def test_worst_case_is_negative(self):
        assert composite_score(effort=10, impact=1) == -80

    def test_matches_formula_for_all_valid_pairs(self):
        for effort in range(1, 11):
            for impact in range(1, 11):
                expected = round(((impact * 2 - effort) / 10) * 100)
                assert composite_score(effort, impact) == expected

    def test_returns_int(self):
        assert isinstance(composite_score(3, 7), int)

    @pytest.mark.parametrize("effort,impact,expected", [
        (1, 5, 90), (1, 3, 50), (2, 5, 80), (3, 1, -10), (5, 5, 50),
    ])
    def test_known_values(self, effort, impact, expected):
        assert composite_score(effort, impact) == expected


class TestScoreCandidates:
    def test_attaches_category_and_score(self):
        scored = score_candidates("Content Types", [_candidate("A", effort=2, impact=9)])
        assert len(scored) == 1
        assert scored[0].category == "Content Types"
        assert scored[0].score == 160
        assert scored[0].candidate.title == "A"

    def test_empty(self):
        assert score_candidates("Technology", []) == []


class TestSelectTop:
    def test_sorted_descending(self):
        pool = [_scored("low", 10), _scored("high", 150), _scored("mid", 60)]
        assert [b.candidate.title for b in select_top(pool, 3)] == ["high", "mid", "low"]

    def test_truncates_to_count(self):
        pool = [_scored(str(i), i) for i in range(10)]
        top = select_top(pool, 3)
        assert [b.score for b in top] == [9, 8, 7]

    def test_count_larger_than_pool(self):
        pool = [_scored("a", 1), _scored("b", 2)]
        assert len(select_top(pool, 15)) == 2

    def test_ties_keep_insertion_order(self):
        pool = [
            _scored("first", 70, "Technology"),
            _scored("other", 90, "Technology"),
            _scored("second", 70, "Content Types"),
        ]
        top = select_top(pool, 3)
        assert [b.candidate.title for b in top] == ["other", "first", "second"]

    def test_repeated_runs_identical(self):
        pool = [_scored(f"b{i}", i % 3) for i in range(12)]
        first = [b.candidate.title for b in select_top(pool, 5)]
        second = [b.candidate.title for b in select_top(list(pool), 5)]
        assert first == second

    def test_negative_scores_fill_remaining_slots(self):
        pool = [_scored("neg", -80), _scored("pos", 40)]
        assert [b.score for b in select_top(pool, 2)] == [40, -80]

    def test_does_not_mutate_pool(self):
        pool = [_scored("a", 1), _scored("b", 2)]
        select_top(pool, 1)
        assert [b.candidate.title for b in pool] == ["a", "b"]

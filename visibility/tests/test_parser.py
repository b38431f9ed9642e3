"""Tests for JSON array extraction from model output."""
from __future__ import annotations

import pytest

from visibility.errors import MalformedResponse
from visibility.parser import extract_json_array, parse_candidates
from visibility.scorer import score_candidates

GOOD_BRIEF = (
    '{"title": "Add FAQ schema", "description": "Mark up FAQs.", '
    '"why_it_matters": "LLMs quote FAQs.", "implementation_steps": ["Audit", "Add"], '
    '"effort_score": 3, "impact_score": 8, "keywords": ["faq", "schema"], "timeline": "2 weeks"}'
)


class TestExtractJsonArray:
    def test_no_brackets_returns_empty(self):
        assert extract_json_array("I cannot help with that.") == []

    def test_empty_text(self):
        assert extract_json_array("") == []

    def test_array_in_prose(self):
        text = f"Here are the briefs:\n```json\n[{GOOD_BRIEF}]\n```\nHope this helps."
        items = extract_json_array(text)
        assert len(items) == 1
        assert items[0]["title"] == "Add FAQ schema"

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedResponse):
            extract_json_array("[{title: unquoted}]")

    def test_greedy_match_spans_separate_arrays(self):
        # first "[" to last "]" is not a single JSON document
        with pytest.raises(MalformedResponse):
            extract_json_array("See [1] and also [2].")

    def test_empty_array_literal(self):
        assert extract_json_array("[]") == []


class TestParseCandidates:
    def test_parses_full_brief(self):
        [c] = parse_candidates(f"[{GOOD_BRIEF}]")
        assert c.title == "Add FAQ schema"
        assert c.implementation_steps == ["Audit", "Add"]
        assert c.effort_score == 3
        assert c.impact_score == 8
        assert c.keywords == ["faq", "schema"]
        assert c.timeline == "2 weeks"

    def test_missing_optional_fields_default(self):
        [c] = parse_candidates('[{"effort_score": 2, "impact_score": 9}]')
        assert c.title == ""
        assert c.implementation_steps == []
        assert c.keywords == []
        assert c.timeline == ""

    def test_null_fields_default(self):
        [c] = parse_candidates('[{"title": null, "keywords": null, "effort_score": 2, "impact_score": 9}]')
        assert c.title == ""
        assert c.keywords == []

    def test_numeric_strings_accepted(self):
        [c] = parse_candidates('[{"effort_score": "4", "impact_score": "7"}]')
        assert (c.effort_score, c.impact_score) == (4, 7)

    def test_skips_unscorable_items(self):
        text = (
            '[{"title": "no scores"},'
            ' {"title": "bad", "effort_score": "high", "impact_score": 5},'
            ' {"title": "out of range", "effort_score": 0, "impact_score": 11},'
            ' "just a string",'
            f' {GOOD_BRIEF}]'
        )
        assert [c.title for c in parse_candidates(text)] == ["out of range", "Add FAQ schema"]

    def test_out_of_range_scores_are_ranked(self):
        text = (
            '[{"title": "zero effort", "effort_score": 0, "impact_score": 10},'
            ' {"title": "ok", "effort_score": 5, "impact_score": 5}]'
        )
        scored = score_candidates("Technology", parse_candidates(text))
        assert [(s.candidate.title, s.score) for s in scored] == [("zero effort", 200), ("ok", 50)]

    def test_keeps_model_order(self):
        text = '[{"title": "a", "effort_score": 1, "impact_score": 1}, {"title": "b", "effort_score": 1, "impact_score": 1}]'
        assert [c.title for c in parse_candidates(text)] == ["a", "b"]

    def test_no_json_returns_empty(self):
        assert parse_candidates("Analysis failed") == []

    def test_malformed_propagates(self):
        with pytest.raises(MalformedResponse):
            parse_candidates("[{title: unquoted}]")

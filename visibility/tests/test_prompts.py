"""Tests for prompt template substitution and the technical context block."""
from __future__ import annotations

from visibility.prompts import (
    DEFAULT_PROMPT,
    PromptContext,
    build_category_prompt,
    build_competitive_prompt,
    render_prompt,
    technical_context,
)
from visibility.schemas import TechnicalData

ACME = PromptContext(customer_name="Acme", competitors=["X", "Y"], visibility_score=42, topics=["search"])


class TestRenderPrompt:
    def test_replaces_all_recognized_tokens(self):
        template = "[CUSTOMER_NAME] | [COMPETITORS] | [VISIBILITY_SCORE] | [TOPICS]"
        assert render_prompt(template, ACME) == "Acme | X, Y | 42 | search"

    def test_replaces_every_occurrence(self):
        assert render_prompt("[CUSTOMER_NAME] and [CUSTOMER_NAME]", ACME) == "Acme and Acme"

    def test_unknown_tokens_pass_through(self):
        template = "[TOP_COMPETITOR] vs [CUSTOMER_NAME] [ANALYSIS_DATA]"
        assert render_prompt(template, ACME) == "[TOP_COMPETITOR] vs Acme [ANALYSIS_DATA]"

    def test_template_without_tokens_unchanged(self):
        assert render_prompt("no tokens here", ACME) == "no tokens here"

    def test_empty_lists_become_empty_strings(self):
        ctx = PromptContext(customer_name="Acme")
        assert render_prompt("c=[COMPETITORS];t=[TOPICS]", ctx) == "c=;t="

    def test_fractional_score(self):
        ctx = PromptContext(customer_name="Acme", visibility_score=42.5)
        assert render_prompt("[VISIBILITY_SCORE]%", ctx) == "42.5%"

    def test_float_integral_score_has_no_decimal(self):
        ctx = PromptContext(customer_name="Acme", visibility_score=42.0)
        assert render_prompt("[VISIBILITY_SCORE]", ctx) == "42"

    def test_values_are_not_expanded_again(self):
        ctx = PromptContext(customer_name="[TOPICS]", topics=["search"])
        assert render_prompt("[CUSTOMER_NAME]", ctx) == "[TOPICS]"

    def test_default_template_when_missing(self):
        out = render_prompt(None, ACME)
        assert out.startswith("Give me 20 clear reasons why Acme is not winning")
        assert "Competitors to analyze: X, Y" in out
        assert "Current visibility score: 42%" in out
        assert "Focus topics: search" in out

    def test_empty_template_uses_default(self):
        assert render_prompt("", ACME) == render_prompt(DEFAULT_PROMPT, ACME)


class TestTechnicalContext:
    def test_renders_yes_no_and_literals(self):
        data = TechnicalData(
            crawler_accessible=True, has_schema=False, ttfb=350,
            wikipedia_presence=True, google_business_profile=False,
            reddit_activity="high", review_count=120, review_sentiment="positive",
        )
        block = technical_context(data)
        assert "- Crawler Accessible: Yes" in block
        assert "- Has Schema Markup: No" in block
        assert "- Time to First Byte: 350ms" in block
        assert "- Wikipedia Presence: Yes" in block
        assert "- Google Business Profile: No" in block
        assert "- Reddit Activity: high" in block
        assert "- Review Count: 120" in block
        assert "- Review Sentiment: positive" in block

    def test_block_layout_is_fixed(self):
        data = TechnicalData(wikidata_presence=True, ttfb=120)
        assert technical_context(data) == (
            "\nTechnical Analysis Context:\n"
            "- Crawler Accessible: No\n"
            "- Has Schema Markup: No\n"
            "- Time to First Byte: 120ms\n"
            "- Wikipedia Presence: No\n"
            "- Google Business Profile: No\n"
            "- Reddit Activity: low\n"
            "- Review Count: 0\n"
            "- Review Sentiment: mixed\n"
        )

    def test_addendum_only_when_not_blank(self):
        data = TechnicalData()
        assert "Additional Technical Analysis" not in technical_context(data, "")
        assert "Additional Technical Analysis" not in technical_context(data, "   \n ")
        block = technical_context(data, "Slow LCP on mobile")
        assert "Additional Technical Analysis:\nSlow LCP on mobile" in block

    def test_competitive_prompt_appends_context(self):
        prompt = build_competitive_prompt("Hello [CUSTOMER_NAME]", ACME, TechnicalData())
        assert prompt.startswith("Hello Acme\n\n")
        assert "Technical Analysis Context:" in prompt

    def test_no_escaping(self):
        ctx = PromptContext(customer_name='Acme "<b>" & Co')
        prompt = build_competitive_prompt("[CUSTOMER_NAME]", ctx, TechnicalData())
        assert prompt.startswith('Acme "<b>" & Co')


class TestCategoryPrompt:
    def test_mentions_category_and_analysis(self):
        prompt = build_category_prompt("Acme", "Content Types", "Competitors publish more FAQs.")
        assert 'for the category: "Content Types"' in prompt
        assert "Competitors publish more FAQs." in prompt
        assert "competitive analysis for Acme" in prompt
        assert '"effort_score": 5' in prompt

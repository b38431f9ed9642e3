"""Prompt assembly for competitive analysis and per-category brief generation.

The competitive-analysis prompt is a user-editable template with four
placeholder tokens::

    [CUSTOMER_NAME]     customer name
    [COMPETITORS]       competitor names joined with ", "
    [VISIBILITY_SCORE]  visibility score as a plain decimal
    [TOPICS]            topics joined with ", "

Any other bracketed token passes through untouched. A technical context block
built from the form's technical signals is appended after substitution.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from visibility.schemas import TechnicalData
from visibility.utils import format_number, join_list

PLACEHOLDERS = ("CUSTOMER_NAME", "COMPETITORS", "VISIBILITY_SCORE", "TOPICS")

_PLACEHOLDER_RE = re.compile(r"\[(" + "|".join(PLACEHOLDERS) + r")\]")

DEFAULT_PROMPT = """\
Give me 20 clear reasons why [CUSTOMER_NAME] is not winning in the AI visibility space compared to the competitors. Do a thorough analysis of the competitors and explain what they are doing right, that [CUSTOMER_NAME] is not doing. Do deep research to understand the situation.

Competitors to analyze: [COMPETITORS]
Current visibility score: [VISIBILITY_SCORE]%
Focus topics: [TOPICS]

Provide specific, actionable insights that can be turned into implementation briefs."""


@dataclass
class PromptContext:
    customer_name: str
    competitors: list[str] = field(default_factory=list)
    visibility_score: float = 0
    topics: list[str] = field(default_factory=list)

    def values(self) -> dict[str, str]:
        return {
            "CUSTOMER_NAME": self.customer_name,
            "COMPETITORS": join_list(self.competitors),
            "VISIBILITY_SCORE": format_number(self.visibility_score),
            "TOPICS": join_list(self.topics),
        }


def render_prompt(template: str | None, context: PromptContext) -> str:
    """Replace every recognized placeholder in *template*.

    Substitution is a single pass, so values that themselves look like
    placeholders are not expanded again.
    """
    values = context.values()
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template or DEFAULT_PROMPT)


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def technical_context(data: TechnicalData, technical_analysis: str = "") -> str:
    block = (
        "\nTechnical Analysis Context:\n"
        f"- Crawler Accessible: {_yes_no(data.crawler_accessible)}\n"
        f"- Has Schema Markup: {_yes_no(data.has_schema)}\n"
        f"- Time to First Byte: {data.ttfb}ms\n"
        f"- Wikipedia Presence: {_yes_no(data.wikipedia_presence)}\n"
        f"- Google Business Profile: {_yes_no(data.google_business_profile)}\n"
        f"- Reddit Activity: {data.reddit_activity}\n"
        f"- Review Count: {data.review_count}\n"
        f"- Review Sentiment: {data.review_sentiment}\n"
    )
    if technical_analysis and technical_analysis.strip():
        block += f"\n\nAdditional Technical Analysis:\n{technical_analysis}\n"
    return block


def build_competitive_prompt(
    template: str | None,
    context: PromptContext,
    data: TechnicalData,
    technical_analysis: str = "",
) -> str:
    """Full prompt for the competitive-analysis call."""
    return render_prompt(template, context) + "\n\n" + technical_context(data, technical_analysis)


def build_category_prompt(customer_name: str, category: str, competitive_analysis: str) -> str:
    """Prompt asking for 2-3 briefs in one category, grounded in the analysis text."""
    return f"""
Based on this competitive analysis for {customer_name}:

{competitive_analysis}

Generate 2-3 specific, actionable briefs for the category: "{category}".

For each brief, provide:
1. Title (max 80 characters)
2. Description (2-3 sentences explaining what to do)
3. Why it matters (1-2 sentences on business impact)
4. Implementation steps (3-5 specific steps as array)
5. Effort score (1-10, where 10 is highest effort)
6. Impact score (1-10, where 10 is highest impact)
7. Keywords (3-5 relevant keywords as array)
8. Timeline (estimated time like "2-4 weeks")

Return as JSON array with exactly this structure:
[
  {{
    "title": "Brief title",
    "description": "What to do",
    "why_it_matters": "Business impact",
    "implementation_steps": ["Step 1", "Step 2", "Step 3"],
    "effort_score": 5,
    "impact_score": 8,
    "keywords": ["keyword1", "keyword2"],
    "timeline": "2-3 weeks"
  }}
]

Focus on AI visibility improvements specific to {category}.
"""


# JSON schema for schema-constrained brief output. The array is wrapped in an
# object because tool inputs and strict response formats require an object root.
BRIEF_ITEM_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "why_it_matters": {"type": "string"},
        "implementation_steps": {"type": "array", "items": {"type": "string"}},
        "effort_score": {"type": "integer", "description": "1-10, 10 is highest effort"},
        "impact_score": {"type": "integer", "description": "1-10, 10 is highest impact"},
        "keywords": {"type": "array", "items": {"type": "string"}},
        "timeline": {"type": "string"},
    },
    "required": [
        "title", "description", "why_it_matters", "implementation_steps",
        "effort_score", "impact_score", "keywords", "timeline",
    ],
    "additionalProperties": False,
}

BRIEFS_SCHEMA: dict = {
    "type": "object",
    "properties": {"briefs": {"type": "array", "items": BRIEF_ITEM_SCHEMA}},
    "required": ["briefs"],
    "additionalProperties": False,
}

"""Markdown export of an analysis and its briefs."""
from __future__ import annotations

import re

from visibility.models import Analysis, Brief
from visibility.utils import format_number, join_list, json_parse


def export_filename(customer_name: str) -> str:
    name = re.sub(r"\s+", "_", customer_name)
    return f"{name}_AI_Visibility_Analysis.md"


def _brief_section(b: Brief) -> list[str]:
    lines = [
        f"### {b.title}\n",
        f"**Score:** {b.effort_impact_score} (Effort: {b.effort_score}/10, Impact: {b.impact_score}/10)\n",
        f"**Timeline:** {b.timeline}\n",
        f"**Description:** {b.description}\n",
        f"**Why it matters:** {b.why_it_matters}\n",
        "**Implementation Steps:**",
    ]
    lines += [f"{i}. {step}" for i, step in enumerate(json_parse(b.implementation_steps_json, []), 1)]
    lines.append("")
    keywords = json_parse(b.keywords_json, [])
    if keywords:
        lines.append(f"**Keywords:** {join_list(keywords)}\n")
    lines.append("---\n")
    return lines


def render_markdown(analysis: Analysis, briefs: list[Brief]) -> str:
    """Render *briefs* grouped by category in order of first appearance."""
    created = analysis.created_at.strftime("%Y-%m-%d") if analysis.created_at else ""
    lines = [
        f"# AI Visibility Analysis: {analysis.customer_name}\n",
        f"**Generated:** {created}",
        f"**Visibility Score:** {format_number(analysis.visibility_score)}%",
        f"**Total Briefs:** {len(briefs)}\n",
    ]
    competitors = json_parse(analysis.competitors_json, [])
    if competitors:
        lines.append(f"**Competitors:** {join_list(competitors)}\n")
    topics = json_parse(analysis.topics_json, [])
    if topics:
        lines.append(f"**Topics:** {join_list(topics)}\n")

    by_category: dict[str, list[Brief]] = {}
    for b in briefs:
        by_category.setdefault(b.category, []).append(b)
    for category, items in by_category.items():
        lines.append(f"## {category}\n")
        for b in items:
            lines += _brief_section(b)

    return "\n".join(lines) + "\n"


def export_briefs(briefs: list[Brief], selected_only: bool = False) -> list[Brief]:
    """Briefs to export: all in ranked order, or the selected ones in selection order."""
    if not selected_only:
        return briefs
    chosen = [b for b in briefs if b.is_selected]
    return sorted(chosen, key=lambda b: (b.selection_order is None, b.selection_order or 0))

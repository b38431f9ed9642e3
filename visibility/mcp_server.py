from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from visibility import services
from visibility.db import init_db, session_scope
from visibility.errors import VisibilityError
from visibility.export import render_markdown
from visibility.models import BRIEF_CATEGORIES, Analysis
from visibility.schemas import AnalysisCreate
from visibility.scorer import MAX_BRIEF_COUNT

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def visibility_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "AI Visibility Briefs",
    instructions=(
        "Tools for customer AI-visibility analyses. Each analysis holds a competitive "
        "narrative and briefs ranked by effort and impact. Start with list_analyses(), "
        "then get_analysis(id) for the narrative and ranked briefs."
    ),
    lifespan=visibility_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_or_error(session, model, entity_id, label="Entity"):
    obj = session.execute(select(model).where(model.id == entity_id)).scalars().first()
    if not obj:
        return None, {"error": f"{label} {entity_id} not found"}
    return obj, None


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("visibility://overview")
def visibility_overview() -> str:
    """Overview of the data model, scoring formula, and brief categories."""
    return json.dumps({
        "data_model": {
            "analysis": "One customer's visibility analysis: inputs, competitive narrative, status.",
            "brief": "An actionable recommendation with effort/impact scores and implementation steps.",
        },
        "scoring": "effort_impact_score = round(((impact * 2) - effort) / 10 * 100); higher is better.",
        "categories": list(BRIEF_CATEGORIES),
        "statuses": ["processing", "completed"],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_analyses(limit: int = 50) -> list[dict]:
    """List analyses, newest first.

    Args:
        limit: Max results (default 50, max 500).
    """
    with session_scope() as session:
        return services.list_analyses(session, limit=max(1, min(limit, 500)))


@mcp.tool()
def get_analysis(analysis_id: str) -> dict:
    """Get one analysis with its competitive narrative and ranked briefs."""
    with session_scope() as session:
        analysis, err = _get_or_error(session, Analysis, analysis_id, "Analysis")
        if err:
            return err
        detail = services.analysis_detail(analysis)
        detail["briefs"] = [services.brief_summary(b) for b in services.ranked_briefs(session, analysis_id)]
        return detail


@mcp.tool()
def export_analysis_markdown(analysis_id: str) -> str:
    """Render an analysis and its briefs as markdown."""
    with session_scope() as session:
        analysis, err = _get_or_error(session, Analysis, analysis_id, "Analysis")
        if err:
            return err["error"]
        return render_markdown(analysis, services.ranked_briefs(session, analysis_id))


@mcp.tool()
async def create_analysis(
    customer_name: str,
    competitors: list[str] | None = None,
    topics: list[str] | None = None,
    visibility_score: float = 0,
    technical_analysis: str = "",
    categories: list[str] | None = None,
    brief_count: int = 15,
) -> dict:
    """Create an analysis and generate ranked briefs. Requires ANTHROPIC_API_KEY.

    Args:
        customer_name: Customer to analyze.
        competitors: Competitor names.
        topics: Focus topics.
        visibility_score: Current visibility score (0-100).
        technical_analysis: Free-text technical findings.
        categories: Brief categories to generate; all categories when omitted.
        brief_count: Number of briefs to keep (1-30).
    """
    try:
        request = AnalysisCreate(
            customer_name=customer_name,
            visibility_data={
                "competitors": competitors or [], "topics": topics or [],
                "visibility_score": visibility_score,
            },
            technical_analysis=technical_analysis,
            categories_selected=categories or [],
            use_most_impactful=not categories,
            brief_count=max(1, min(brief_count, MAX_BRIEF_COUNT)),
        )
    except PydanticValidationError as exc:
        return {"error": f"Invalid input: {exc.errors()[0]['msg']}"}
    with session_scope() as session:
        orchestrator = services.AnalysisOrchestrator(services.SqlAnalysisStore(session))
        try:
            # stdio tools run locally on the operator's machine
            result = await orchestrator.run(request, authenticated=True)
        except VisibilityError as exc:
            return {"error": f"Failed to create analysis: {exc}"}
        return {
            "analysis_id": result.analysis_id,
            "brief_count": result.brief_count,
            "message": result.message,
        }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()

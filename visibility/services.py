"""Shared business logic for the visibility API and MCP server."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from visibility.errors import (
    AuthorizationError,
    GenerationFailed,
    MalformedResponse,
    StorageError,
    ValidationError,
)
from visibility.llm import LLMClient
from visibility.models import (
    BRIEF_CATEGORIES,
    STATUS_COMPLETED,
    STATUS_PROCESSING,
    Analysis,
    Brief,
    PromptTemplate,
)
from visibility.parser import ResponseParser, parse_candidates
from visibility.prompts import (
    BRIEFS_SCHEMA,
    DEFAULT_PROMPT,
    PLACEHOLDERS,
    PromptContext,
    build_category_prompt,
    build_competitive_prompt,
)
from visibility.schemas import AnalysisCreate
from visibility.scorer import ScoredBrief, score_candidates, select_top
from visibility.utils import json_parse

log = logging.getLogger(__name__)

COMPETITIVE_MAX_TOKENS = 4000
CATEGORY_MAX_TOKENS = 2000
ANALYSIS_FALLBACK = "Analysis failed"
BRIEFS_FALLBACK = "[]"

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def analysis_summary(a: Analysis) -> dict:
    return {
        "id": a.id, "customer_name": a.customer_name, "status": a.status,
        "created_at": _iso(a.created_at), "completed_at": _iso(a.completed_at),
        "visibility_score": a.visibility_score,
        "competitors": json_parse(a.competitors_json, []),
        "topics": json_parse(a.topics_json, []),
        "categories_selected": json_parse(a.categories_json, []),
        "brief_count": a.brief_count,
    }


def analysis_detail(a: Analysis) -> dict:
    base = analysis_summary(a)
    base.update({
        "technical_data": json_parse(a.technical_data_json, {}),
        "technical_analysis": a.technical_analysis,
        "custom_prompt": a.custom_prompt,
        "competitive_analysis": a.competitive_analysis,
    })
    return base


def brief_summary(b: Brief) -> dict:
    return {
        "id": b.id, "category": b.category, "title": b.title,
        "description": b.description, "why_it_matters": b.why_it_matters,
        "implementation_steps": json_parse(b.implementation_steps_json, []),
        "effort_score": b.effort_score, "impact_score": b.impact_score,
        "effort_impact_score": b.effort_impact_score,
        "keywords": json_parse(b.keywords_json, []),
        "timeline": b.timeline,
        "is_selected": b.is_selected, "selection_order": b.selection_order,
        "created_at": _iso(b.created_at),
    }


def prompt_template_summary(t: PromptTemplate) -> dict:
    return {
        "id": t.id, "name": t.name, "prompt": t.prompt,
        "variables": json_parse(t.variables_json, []),
        "description": t.description, "use_count": t.use_count,
        "created_at": _iso(t.created_at), "last_used_at": _iso(t.last_used_at),
    }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_analyses(session: Session, limit: int = 50, offset: int = 0) -> list[dict]:
    rows = session.execute(
        select(Analysis).order_by(Analysis.created_at.desc()).limit(limit).offset(offset)
    ).scalars().all()
    return [analysis_summary(a) for a in rows]


def ranked_briefs(session: Session, analysis_id: str) -> list[Brief]:
    return list(session.execute(
        select(Brief).where(Brief.analysis_id == analysis_id)
        .order_by(Brief.effort_impact_score.desc(), Brief.rank.asc())
    ).scalars().all())


def set_brief_selection(brief: Brief, is_selected: bool, selection_order: int | None) -> None:
    """Mark a brief for export (caller must commit)."""
    brief.is_selected = is_selected
    brief.selection_order = selection_order if is_selected else None


def list_prompt_templates(session: Session) -> list[dict]:
    rows = session.execute(
        select(PromptTemplate).order_by(PromptTemplate.use_count.desc(), PromptTemplate.created_at.desc())
    ).scalars().all()
    return [prompt_template_summary(t) for t in rows]


def create_prompt_template(session: Session, name: str, prompt: str, description: str = "") -> PromptTemplate:
    """Save a template, recording which placeholders it uses (caller must commit)."""
    variables = [p for p in PLACEHOLDERS if f"[{p}]" in prompt]
    tmpl = PromptTemplate(
        name=name, prompt=prompt, description=description,
        variables_json=json.dumps(variables),
    )
    session.add(tmpl)
    return tmpl


def use_prompt_template(session: Session, template_id: int) -> str | None:
    """Return a template's prompt and bump its usage (caller must commit)."""
    tmpl = session.get(PromptTemplate, template_id)
    if tmpl is None:
        return None
    tmpl.use_count = (tmpl.use_count or 0) + 1
    tmpl.last_used_at = datetime.now(UTC)
    return tmpl.prompt


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class AnalysisStore(Protocol):
    def create_analysis(
        self, request: AnalysisCreate, categories: list[str], template: str, prompt_text: str,
    ) -> str: ...

    def save_competitive_analysis(self, analysis_id: str, text: str) -> None: ...

    def update_status(self, analysis_id: str, status: str) -> None: ...

    def insert_briefs(self, analysis_id: str, briefs: list[ScoredBrief]) -> None: ...


class SqlAnalysisStore:
    """``AnalysisStore`` backed by a SQLAlchemy session. Every operation commits."""

    def __init__(self, session: Session):
        self.session = session

    def _commit(self, what: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Failed to {what}: {exc}") from exc

    def create_analysis(
        self, request: AnalysisCreate, categories: list[str], template: str, prompt_text: str,
    ) -> str:
        vis = request.visibility_data
        analysis = Analysis(
            customer_name=request.customer_name.strip(),
            visibility_score=vis.visibility_score,
            competitors_json=json.dumps(vis.competitors),
            topics_json=json.dumps(vis.topics),
            technical_data_json=request.technical_data.model_dump_json(),
            technical_analysis=request.technical_analysis or "",
            custom_prompt=template,
            prompt_text=prompt_text,
            categories_json=json.dumps(categories),
            brief_count=request.brief_count,
            status=STATUS_PROCESSING,
        )
        self.session.add(analysis)
        self._commit("create analysis")
        return analysis.id

    def _get(self, analysis_id: str) -> Analysis:
        try:
            analysis = self.session.get(Analysis, analysis_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load analysis {analysis_id}: {exc}") from exc
        if analysis is None:
            raise StorageError(f"Analysis {analysis_id} not found")
        return analysis

    def save_competitive_analysis(self, analysis_id: str, text: str) -> None:
        self._get(analysis_id).competitive_analysis = text
        self._commit("save competitive analysis")

    def update_status(self, analysis_id: str, status: str) -> None:
        analysis = self._get(analysis_id)
        analysis.status = status
        if status == STATUS_COMPLETED:
            analysis.completed_at = datetime.now(UTC)
        self._commit("update analysis status")

    def insert_briefs(self, analysis_id: str, briefs: list[ScoredBrief]) -> None:
        for rank, sb in enumerate(briefs):
            c = sb.candidate
            self.session.add(Brief(
                analysis_id=analysis_id, category=sb.category, title=c.title,
                description=c.description, why_it_matters=c.why_it_matters,
                implementation_steps_json=json.dumps(c.implementation_steps),
                effort_score=c.effort_score, impact_score=c.impact_score,
                effort_impact_score=sb.score,
                keywords_json=json.dumps(c.keywords), timeline=c.timeline,
                rank=rank,
            ))
        self._commit("save briefs")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    analysis_id: str
    brief_count: int
    message: str


def resolve_categories(request: AnalysisCreate) -> list[str]:
    """All categories for "most impactful" or an empty selection, else the selection."""
    if request.use_most_impactful or not request.categories_selected:
        return list(BRIEF_CATEGORIES)
    return list(request.categories_selected)


class AnalysisOrchestrator:
    """Runs one analysis: competitive analysis, per-category briefs, selection.

    Args:
        store: Persistence for the analysis and its selected briefs.
        client: Text-generation client. Built from the environment when
            omitted, after the request has been authorized and validated.
        parser: Turns a category reply into brief candidates.
    """

    def __init__(
        self,
        store: AnalysisStore,
        client: LLMClient | None = None,
        parser: ResponseParser = parse_candidates,
    ):
        self.store = store
        self.client = client
        self.parser = parser

    async def run(self, request: AnalysisCreate, *, authenticated: bool) -> AnalysisResult:
        if not authenticated:
            raise AuthorizationError("Unauthorized")
        customer = request.customer_name.strip()
        if not customer:
            raise ValidationError("Customer name is required")
        if self.client is None:
            self.client = LLMClient()

        categories = resolve_categories(request)
        template = request.custom_prompt or DEFAULT_PROMPT
        vis = request.visibility_data
        prompt = build_competitive_prompt(
            template,
            PromptContext(customer, vis.competitors, vis.visibility_score, vis.topics),
            request.technical_data,
            request.technical_analysis,
        )

        analysis_id = self.store.create_analysis(request, categories, template, prompt)
        log.info("Analysis %s created for %s (%d categories)", analysis_id, customer, len(categories))

        analysis_text = await self.client.generate(
            prompt, COMPETITIVE_MAX_TOKENS, fallback=ANALYSIS_FALLBACK,
        )
        self.store.save_competitive_analysis(analysis_id, analysis_text)

        pool: list[ScoredBrief] = []
        for category in categories:
            pool.extend(await self._category_briefs(customer, category, analysis_text))

        selected = select_top(pool, request.brief_count)
        self.store.insert_briefs(analysis_id, selected)
        self.store.update_status(analysis_id, STATUS_COMPLETED)
        log.info("Analysis %s completed: %d of %d candidates kept", analysis_id, len(selected), len(pool))

        return AnalysisResult(
            analysis_id=analysis_id,
            brief_count=len(selected),
            message=f"Successfully created analysis with {len(selected)} briefs",
        )

    async def _category_briefs(self, customer: str, category: str, analysis_text: str) -> list[ScoredBrief]:
        """Candidates for one category; generation or parse failures yield none."""
        prompt = build_category_prompt(customer, category, analysis_text)
        try:
            text = await self.client.generate(
                prompt, CATEGORY_MAX_TOKENS, fallback=BRIEFS_FALLBACK, schema=BRIEFS_SCHEMA,
            )
            candidates = self.parser(text)
        except (GenerationFailed, MalformedResponse) as exc:
            log.warning("Brief generation failed for category %s: %s", category, exc)
            return []
        if not candidates:
            log.warning("No briefs found in response for category: %s", category)
        else:
            log.info("Category %s: %d candidates", category, len(candidates))
        return score_candidates(category, candidates)

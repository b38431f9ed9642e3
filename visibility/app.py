from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Generator

from fastapi import Body, Depends, FastAPI, File, HTTPException, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from visibility import services
from visibility.auth import (
    SESSION_COOKIE,
    SESSION_MAX_AGE,
    SessionAuthenticator,
    get_authenticator,
    require_session,
    session_authenticated,
)
from visibility.db import get_session, init_db
from visibility.errors import VisibilityError
from visibility.export import export_briefs, export_filename, render_markdown
from visibility.importer import parse_visibility_export
from visibility.models import Analysis, Brief
from visibility.schemas import (
    AnalysisCreate,
    AnalysisCreated,
    AnalysisDetail,
    AnalysisOut,
    BriefOut,
    BriefSelectionUpdate,
    ImportResult,
    LoginRequest,
    PromptTemplateCreate,
    PromptTemplateOut,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="AI Visibility Briefs",
    version="0.1.0",
    description=(
        "Internal API for customer AI-visibility analyses. "
        "Creates a competitive analysis with an LLM and ranks actionable briefs "
        "by effort and impact. All routes except login require a session cookie."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Shared-password login and logout."},
        {"name": "Analyses", "description": "Create, list, and inspect analyses. Creation requires ANTHROPIC_API_KEY."},
        {"name": "Briefs", "description": "Ranked briefs and export selection."},
        {"name": "Prompt Templates", "description": "Saved competitive-analysis prompt templates."},
        {"name": "Import", "description": "Parse an uploaded visibility export into form fields."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_orchestrator(session: Session = Depends(db_session)) -> services.AnalysisOrchestrator:
    return services.AnalysisOrchestrator(services.SqlAnalysisStore(session))


def _get_or_404(session: Session, model, entity_id, label: str = "Entity"):
    obj = session.execute(select(model).where(model.id == entity_id)).scalars().first()
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


# ---------------------------------------------------------------------------
# Routes: Auth
# ---------------------------------------------------------------------------


@app.post("/api/auth/login", tags=["Auth"], summary="Log in with the shared password")
async def login(body: LoginRequest, auth: SessionAuthenticator = Depends(get_authenticator)):
    if not body.password:
        raise HTTPException(400, "Password is required")
    if not auth.check_password(body.password):
        raise HTTPException(401, "Invalid password")
    response = JSONResponse({"success": True})
    response.set_cookie(
        SESSION_COOKIE, auth.issue_token(),
        max_age=SESSION_MAX_AGE, httponly=True, secure=auth.secure_cookies,
        samesite="lax", path="/",
    )
    return response


@app.post("/api/auth/logout", tags=["Auth"], summary="Clear the session cookie")
async def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


# ---------------------------------------------------------------------------
# Routes: Analyses
# ---------------------------------------------------------------------------


@app.get("/api/analyses", response_model=list[AnalysisOut], dependencies=[Depends(require_session)],
         tags=["Analyses"], summary="List analyses, newest first")
async def list_analyses(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: Session = Depends(db_session),
):
    return services.list_analyses(session, limit=limit, offset=offset)


@app.post("/api/analyses", response_model=AnalysisCreated,
          tags=["Analyses"], summary="Create an analysis and generate ranked briefs")
async def create_analysis(
    payload: dict[str, Any] = Body(default={}, description="AnalysisCreate fields, camelCase or snake_case"),
    authenticated: bool = Depends(session_authenticated),
    session: Session = Depends(db_session),
    orchestrator: services.AnalysisOrchestrator = Depends(get_orchestrator),
):
    if not authenticated:
        raise HTTPException(401, "Unauthorized")
    # body is validated only once the session is known to be valid
    try:
        body = AnalysisCreate.model_validate(payload)
    except PydanticValidationError as exc:
        raise RequestValidationError([
            {**err, "loc": ("body", *err["loc"])}
            for err in exc.errors(include_url=False, include_context=False)
        ]) from exc
    if body.prompt_template_id is not None and not body.custom_prompt:
        prompt = services.use_prompt_template(session, body.prompt_template_id)
        if prompt is None:
            raise HTTPException(404, "Prompt template not found")
        session.commit()
        body = body.model_copy(update={"custom_prompt": prompt})
    try:
        result = await orchestrator.run(body, authenticated=authenticated)
    except VisibilityError as exc:
        if exc.status_code < 500:
            raise HTTPException(exc.status_code, str(exc)) from exc
        log.exception("Error creating analysis")
        raise HTTPException(exc.status_code, f"Failed to create analysis: {exc}") from exc
    return AnalysisCreated(
        analysis_id=result.analysis_id, brief_count=result.brief_count, message=result.message,
    )


@app.get("/api/analyses/{analysis_id}", response_model=AnalysisDetail, dependencies=[Depends(require_session)],
         tags=["Analyses"], summary="Get one analysis with its competitive narrative")
async def get_analysis(analysis_id: str, session: Session = Depends(db_session)):
    return services.analysis_detail(_get_or_404(session, Analysis, analysis_id, "Analysis"))


@app.delete("/api/analyses/{analysis_id}", dependencies=[Depends(require_session)],
            tags=["Analyses"], summary="Delete an analysis and its briefs")
async def delete_analysis(analysis_id: str, session: Session = Depends(db_session)):
    analysis = _get_or_404(session, Analysis, analysis_id, "Analysis")
    session.delete(analysis)
    session.commit()
    return {"ok": True}


@app.get("/api/analyses/{analysis_id}/briefs", response_model=list[BriefOut],
         dependencies=[Depends(require_session)],
         tags=["Briefs"], summary="Briefs of an analysis, best composite score first")
async def list_briefs(analysis_id: str, session: Session = Depends(db_session)):
    _get_or_404(session, Analysis, analysis_id, "Analysis")
    return [services.brief_summary(b) for b in services.ranked_briefs(session, analysis_id)]


@app.get("/api/analyses/{analysis_id}/export", dependencies=[Depends(require_session)],
         tags=["Briefs"], summary="Download the analysis as markdown")
async def export_analysis(
    analysis_id: str,
    selected_only: bool = Query(False, description="Only briefs marked as selected, in selection order"),
    session: Session = Depends(db_session),
):
    analysis = _get_or_404(session, Analysis, analysis_id, "Analysis")
    briefs = export_briefs(services.ranked_briefs(session, analysis_id), selected_only)
    return PlainTextResponse(
        render_markdown(analysis, briefs),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(analysis.customer_name)}"'},
    )


# ---------------------------------------------------------------------------
# Routes: Briefs
# ---------------------------------------------------------------------------


@app.put("/api/briefs/{brief_id}/selection", response_model=BriefOut, dependencies=[Depends(require_session)],
         tags=["Briefs"], summary="Mark a brief as selected for export")
async def update_brief_selection(brief_id: int, body: BriefSelectionUpdate, session: Session = Depends(db_session)):
    brief = _get_or_404(session, Brief, brief_id, "Brief")
    services.set_brief_selection(brief, body.is_selected, body.selection_order)
    session.commit()
    return services.brief_summary(brief)


# ---------------------------------------------------------------------------
# Routes: Prompt Templates
# ---------------------------------------------------------------------------


@app.get("/api/prompt-templates", response_model=list[PromptTemplateOut], dependencies=[Depends(require_session)],
         tags=["Prompt Templates"], summary="List saved prompt templates, most used first")
async def list_prompt_templates(session: Session = Depends(db_session)):
    return services.list_prompt_templates(session)


@app.post("/api/prompt-templates", response_model=PromptTemplateOut, status_code=201,
          dependencies=[Depends(require_session)],
          tags=["Prompt Templates"], summary="Save a prompt template")
async def create_prompt_template(body: PromptTemplateCreate, session: Session = Depends(db_session)):
    tmpl = services.create_prompt_template(session, body.name, body.prompt, body.description)
    session.commit()
    session.refresh(tmpl)
    return services.prompt_template_summary(tmpl)


# ---------------------------------------------------------------------------
# Routes: Import
# ---------------------------------------------------------------------------


@app.post("/api/import", response_model=ImportResult, dependencies=[Depends(require_session)],
          tags=["Import"], summary="Parse a visibility export JSON file into form fields")
async def import_file(file: UploadFile = File(...)):
    if not file.filename or not file.filename.endswith(".json"):
        raise HTTPException(400, "Please upload a JSON file")
    content = await file.read()
    try:
        return parse_visibility_export(content)
    except VisibilityError as exc:
        raise HTTPException(exc.status_code, str(exc)) from exc


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("visibility.app:app", host="127.0.0.1", port=8001, reload=True)


if __name__ == "__main__":
    main()

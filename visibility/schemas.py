"""Pydantic request/response schemas for the visibility API.

Request bodies accept both the camelCase keys sent by the dashboard form and
snake_case keys.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from visibility.models import BRIEF_CATEGORIES


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TechnicalData(_CamelModel):
    crawler_accessible: bool = False
    has_schema: bool = False
    ttfb: int = 0
    wikipedia_presence: bool = False
    wikidata_presence: bool = False
    google_business_profile: bool = False
    reddit_activity: Literal["low", "medium", "high"] = "low"
    review_count: int = 0
    review_sentiment: Literal["positive", "negative", "mixed"] = "mixed"


class VisibilityData(_CamelModel):
    topics: list[str] = []
    competitors: list[str] = []
    visibility_score: float = Field(0, ge=0, le=100)
    prompts: list[Any] = []
    leaderboard: list[Any] = []


class AnalysisCreate(_CamelModel):
    customer_name: str = ""
    visibility_data: VisibilityData = Field(default_factory=VisibilityData)
    technical_data: TechnicalData = Field(default_factory=TechnicalData)
    technical_analysis: str = ""
    custom_prompt: str = ""
    prompt_template_id: int | None = None
    categories_selected: list[str] = []
    use_most_impactful: bool = True
    brief_count: int = Field(15, ge=1, le=30)

    @field_validator("categories_selected")
    @classmethod
    def _known_categories(cls, v: list[str]) -> list[str]:
        unknown = [c for c in v if c not in BRIEF_CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        # keep first occurrence order
        return list(dict.fromkeys(v))


class AnalysisCreated(_CamelModel):
    success: bool = True
    analysis_id: str
    brief_count: int
    message: str


class AnalysisOut(BaseModel):
    id: str
    customer_name: str
    status: str
    created_at: str | None = None
    completed_at: str | None = None
    visibility_score: float
    competitors: list[str] = []
    topics: list[str] = []
    categories_selected: list[str] = []
    brief_count: int


class AnalysisDetail(AnalysisOut):
    technical_data: dict[str, Any] = {}
    technical_analysis: str = ""
    custom_prompt: str = ""
    competitive_analysis: str = ""


class BriefOut(BaseModel):
    id: int
    category: str
    title: str
    description: str
    why_it_matters: str
    implementation_steps: list[str] = []
    effort_score: int
    impact_score: int
    effort_impact_score: int
    keywords: list[str] = []
    timeline: str
    is_selected: bool = False
    selection_order: int | None = None
    created_at: str | None = None


class BriefSelectionUpdate(_CamelModel):
    is_selected: bool
    selection_order: int | None = None


class LoginRequest(BaseModel):
    password: str = ""


class PromptTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    prompt: str = Field(..., min_length=1)
    description: str = ""


class PromptTemplateOut(BaseModel):
    id: int
    name: str
    prompt: str
    variables: list[str] = []
    description: str = ""
    use_count: int = 0
    created_at: str | None = None
    last_used_at: str | None = None


class ImportResult(_CamelModel):
    customer_name: str
    visibility_data: VisibilityData

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"

BRIEF_CATEGORIES = (
    "Technology",
    "Platform Presence",
    "Content Structure",
    "Content Types",
    "Reviews and Testimonials",
    "PR Outreach and LLM Seeding",
    "Social Engagement and Community Strategy",
    "Multimodal and Visual Optimization",
    "Data Authority and Proprietary Statistics",
)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Analysis(Base):
    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    visibility_score: Mapped[float] = mapped_column(Float, default=0.0)
    competitors_json: Mapped[str] = mapped_column(Text, default="[]")
    topics_json: Mapped[str] = mapped_column(Text, default="[]")
    technical_data_json: Mapped[str] = mapped_column(Text, default="{}")
    technical_analysis: Mapped[str] = mapped_column(Text, default="")
    custom_prompt: Mapped[str] = mapped_column(Text, default="")
    prompt_text: Mapped[str] = mapped_column(Text, default="")
    competitive_analysis: Mapped[str] = mapped_column(Text, default="")
    categories_json: Mapped[str] = mapped_column(Text, default="[]")
    brief_count: Mapped[int] = mapped_column(Integer, default=15)
    status: Mapped[str] = mapped_column(String(20), default=STATUS_PROCESSING)  # processing | completed
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    briefs: Mapped[list[Brief]] = relationship(
        "Brief", back_populates="analysis", cascade="all, delete-orphan", order_by="Brief.rank",
    )


class Brief(Base):
    __tablename__ = "briefs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_id: Mapped[str] = mapped_column(String(36), ForeignKey("analyses.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    why_it_matters: Mapped[str] = mapped_column(Text, default="")
    implementation_steps_json: Mapped[str] = mapped_column(Text, default="[]")
    effort_score: Mapped[int] = mapped_column(Integer, nullable=False)
    impact_score: Mapped[int] = mapped_column(Integer, nullable=False)
    effort_impact_score: Mapped[int] = mapped_column(Integer, nullable=False)
    keywords_json: Mapped[str] = mapped_column(Text, default="[]")
    timeline: Mapped[str] = mapped_column(String(100), default="")
    rank: Mapped[int] = mapped_column(Integer, default=0)  # position in the selected list
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False)
    selection_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    analysis: Mapped[Analysis] = relationship("Analysis", back_populates="briefs")


class PromptTemplate(Base):
    __tablename__ = "prompt_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    variables_json: Mapped[str] = mapped_column(Text, default="[]")
    description: Mapped[str] = mapped_column(Text, default="")
    use_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

from __future__ import annotations

import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, inspect as sa_inspect, text
from sqlalchemy.orm import Session, sessionmaker

from visibility.models import Base

_lock = threading.Lock()
_engine = None
_SessionLocal = None

DATA_DIR = Path(__file__).parent / "data"


def _database_url(db_path: str | Path | None) -> str:
    if db_path is not None:
        return f"sqlite:///{Path(db_path)}"
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    db_path = DATA_DIR / "visibility.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def init_db(db_path: str | Path | None = None) -> None:
    global _engine, _SessionLocal
    with _lock:
        if _engine is not None:
            _engine.dispose()
        url = _database_url(db_path)
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(url, connect_args=connect_args)
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        _migrate_existing_db(_engine)


def _migrate_existing_db(engine) -> None:
    """Add columns that may be missing in older databases."""
    inspector = sa_inspect(engine)
    if not inspector.has_table("analyses"):
        return
    columns = {col["name"] for col in inspector.get_columns("analyses")}
    if "technical_analysis" not in columns:
        with engine.begin() as conn:
            conn.execute(text(
                "ALTER TABLE analyses ADD COLUMN technical_analysis TEXT DEFAULT ''"
            ))
    seed_prompt_templates(engine)


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    Usage (MCP server, scripts, etc.)::

        with session_scope() as session:
            ...
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def seed_prompt_templates(engine) -> None:
    """Seed the default competitive-analysis template if the table is empty."""
    with engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM prompt_templates")).scalar()
        if count > 0:
            return
    from visibility.prompts import DEFAULT_PROMPT, PLACEHOLDERS
    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO prompt_templates (name, prompt, variables_json, description, use_count) "
            "VALUES (:name, :prompt, :variables, :description, 0)"
        ), {
            "name": "Default Competitive Analysis",
            "prompt": DEFAULT_PROMPT,
            "variables": json.dumps(list(PLACEHOLDERS)),
            "description": "Default template for competitive analysis",
        })

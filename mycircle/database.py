"""SQLAlchemy engine and session factory backing the SQL document store."""
from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

settings = get_settings()


def _connect_args(url: str) -> dict[str, Any]:
    # Store transactions may run on any worker thread.
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine: Engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    future=True,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
)

Base = declarative_base()


def create_session() -> Session:
    """Return a new session; the document store opens one per transaction."""
    return SessionLocal()


def init_db(bind: Engine | None = None) -> None:
    """Create the ``documents`` table when missing."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


__all__ = ["Base", "SessionLocal", "engine", "create_session", "init_db"]

"""Database engine and session management helpers."""

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments suited to the configured backend."""

    if database_url.startswith("sqlite"):
        # One shared connection keeps in-memory databases alive across sessions.
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True}


settings = get_settings()

engine = create_engine(settings.database_url, **engine_options(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)

"""ORM models backing the patent document store."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PatentRecord(Base):
    """One unified patent document keyed by its patent_id."""

    __tablename__ = "patent_record"

    patent_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    source: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    document: Mapped[dict] = mapped_column(
        JSON, nullable=False, doc="Unified patent document in JSON form."
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

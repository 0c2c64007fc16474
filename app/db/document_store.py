"""Keyed document store for unified patent records."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import NotFoundError, PersistenceError
from app.models import PatentRecord

LOGGER = logging.getLogger(__name__)

DocumentWrite = Tuple[str, Dict[str, Any]]


class DocumentStore(Protocol):
    """Interface the persistence engine needs from a document store."""

    def exists(self, patent_id: str) -> bool:
        ...

    def get(self, patent_id: str) -> Dict[str, Any]:
        ...

    def set(self, patent_id: str, document: Dict[str, Any], merge: bool = True) -> None:
        ...

    def commit(self, writes: Sequence[DocumentWrite], merge: bool = True) -> None:
        ...


def merge_documents(existing: Optional[Dict[str, Any]], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Top-level merge: incoming keys replace stored ones, the rest survive."""

    if not existing:
        return dict(incoming)
    return {**existing, **incoming}


class SqlDocumentStore:
    """Document store persisting JSON documents through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def exists(self, patent_id: str) -> bool:
        try:
            with self._session_factory() as session:
                return session.get(PatentRecord, patent_id) is not None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Existence check failed for {patent_id}: {exc}") from exc

    def get(self, patent_id: str) -> Dict[str, Any]:
        try:
            with self._session_factory() as session:
                record = session.get(PatentRecord, patent_id)
                if record is None:
                    raise NotFoundError(patent_id)
                return dict(record.document)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {patent_id}: {exc}") from exc

    def set(self, patent_id: str, document: Dict[str, Any], merge: bool = True) -> None:
        self.commit([(patent_id, document)], merge=merge)

    def commit(self, writes: Sequence[DocumentWrite], merge: bool = True) -> None:
        """Apply every write in one transaction; nothing is stored on failure."""

        if not writes:
            return
        try:
            with self._session_factory() as session:
                with session.begin():
                    for patent_id, document in writes:
                        self._apply(session, patent_id, document, merge)
        except SQLAlchemyError as exc:
            LOGGER.error("Commit of %s documents failed: %s", len(writes), exc)
            raise PersistenceError(str(exc)) from exc

    @staticmethod
    def _apply(session: Session, patent_id: str, document: Dict[str, Any], merge: bool) -> None:
        record = session.get(PatentRecord, patent_id)
        metadata = document.get("metadata") or {}
        if record is None:
            session.add(
                PatentRecord(
                    patent_id=patent_id,
                    source=document.get("source"),
                    version=int(metadata.get("version") or 1),
                    document=dict(document),
                )
            )
            # Keeps a second write of the same id inside this transaction visible.
            session.flush()
            return

        # Assign a new dict so the JSON column is flagged dirty.
        record.document = merge_documents(record.document, document) if merge else dict(document)
        record.source = record.document.get("source")
        record.version = int((record.document.get("metadata") or {}).get("version") or record.version)

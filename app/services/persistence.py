"""Versioned upsert of unified patents into the document store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from app.core.config import Settings, get_settings
from app.core.errors import NotFoundError, PersistenceError, ValidationError
from app.db.document_store import DocumentStore, DocumentWrite
from app.schemas.patent import Patent
from app.services.change_detection import detect_changed_fields
from app.services.validation import PatentLike, PatentValidator

LOGGER = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    patent_id: Optional[str]
    success: bool
    created: bool = False
    version: Optional[int] = None
    fields_changed: List[str] = field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    total_processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    results: List[UpsertResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    def record(self, result: UpsertResult) -> None:
        self.total_processed += 1
        self.results.append(result)
        if result.success:
            self.success_count += 1
        else:
            self.failure_count += 1
            self.errors.append({"patent_id": result.patent_id, "error": result.error})


def json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_document(patent: PatentLike) -> Dict[str, Any]:
    """JSON-safe copy of a patent, ready for the document store."""

    if isinstance(patent, BaseModel):
        return patent.model_dump(mode="json")
    return json.loads(json.dumps(dict(patent), default=json_default))


class PatentUpsertEngine:
    """Validate, version and persist patents one at a time or in chunks."""

    def __init__(
        self,
        store: DocumentStore,
        validator: Optional[PatentValidator] = None,
        chunk_size: int = 500,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.store = store
        self.validator = validator or PatentValidator()
        self.chunk_size = chunk_size
        self._clock = clock

    @classmethod
    def from_settings(cls, store: DocumentStore, settings: Optional[Settings] = None) -> "PatentUpsertEngine":
        settings = settings or get_settings()
        return cls(
            store,
            validator=PatentValidator.from_settings(settings),
            chunk_size=settings.persistence_chunk_size,
        )

    def get_patent(self, patent_id: str) -> Patent:
        return Patent.model_validate(self.store.get(patent_id))

    def upsert(self, patent: PatentLike) -> UpsertResult:
        result, document = self._prepare(patent, pending={})
        if document is None:
            return result
        try:
            self.store.set(result.patent_id, document, merge=True)
        except PersistenceError as exc:
            LOGGER.error("Failed to persist patent %s: %s", result.patent_id, exc)
            result.success = False
            result.error = str(exc)
        return result

    def upsert_batch(self, patents: Sequence[PatentLike]) -> BatchResult:
        batch = BatchResult()
        for start in range(0, len(patents), self.chunk_size):
            self._upsert_chunk(patents[start : start + self.chunk_size], batch)
        LOGGER.info(
            "Batch upsert finished: %s processed, %s succeeded, %s failed",
            batch.total_processed,
            batch.success_count,
            batch.failure_count,
        )
        return batch

    def _upsert_chunk(self, chunk: Sequence[PatentLike], batch: BatchResult) -> None:
        pending: Dict[str, Dict[str, Any]] = {}
        writes: List[DocumentWrite] = []
        results: List[UpsertResult] = []
        prepared: List[UpsertResult] = []

        for patent in chunk:
            result, document = self._prepare(patent, pending)
            results.append(result)
            if document is not None:
                pending[result.patent_id] = document
                writes.append((result.patent_id, document))
                prepared.append(result)

        try:
            self.store.commit(writes, merge=True)
        except PersistenceError as exc:
            LOGGER.error("Chunk of %s patents failed to commit: %s", len(writes), exc)
            for result in prepared:
                result.success = False
                result.error = f"Batch commit failed: {exc}"

        for result in results:
            batch.record(result)

    def _prepare(
        self, patent: PatentLike, pending: Dict[str, Dict[str, Any]]
    ) -> Tuple[UpsertResult, Optional[Dict[str, Any]]]:
        """Validate one patent and build the document to write, without writing it."""

        validation = self.validator.validate(patent)
        document = to_document(patent)
        patent_id = document.get("patent_id")
        warnings = validation.warning_messages()
        for warning in warnings:
            LOGGER.warning("Validation warning for patent %s: %s", patent_id, warning)

        if not validation.is_valid:
            error = str(ValidationError(patent_id, validation.error_messages()))
            return UpsertResult(patent_id, success=False, error=error, warnings=warnings), None

        try:
            existing = pending.get(patent_id) or self._load_existing(patent_id)
        except PersistenceError as exc:
            return UpsertResult(patent_id, success=False, error=str(exc), warnings=warnings), None

        now = self._clock()
        if existing is None:
            document = self._as_created(document, now)
            return (
                UpsertResult(patent_id, success=True, created=True, version=1, fields_changed=["all"], warnings=warnings),
                document,
            )

        stored_source = existing.get("source")
        if stored_source and stored_source != document.get("source"):
            error = f"Source mismatch for patent {patent_id}: stored as {stored_source!r}, got {document.get('source')!r}"
            return UpsertResult(patent_id, success=False, error=error, warnings=warnings), None

        fields_changed = detect_changed_fields(document, existing)
        document = self._as_updated(document, existing, fields_changed, now)
        version = document["metadata"]["version"]
        return (
            UpsertResult(
                patent_id,
                success=True,
                version=version,
                fields_changed=fields_changed,
                warnings=warnings,
            ),
            document,
        )

    def _load_existing(self, patent_id: str) -> Optional[Dict[str, Any]]:
        if not self.store.exists(patent_id):
            return None
        try:
            return self.store.get(patent_id)
        except NotFoundError:
            LOGGER.warning("Patent %s disappeared between existence check and read; creating it", patent_id)
            return None

    @staticmethod
    def _as_created(document: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        metadata = dict(document.get("metadata") or {})
        timestamp = now.isoformat()
        metadata.update(
            created_at=metadata.get("created_at") or timestamp,
            updated_at=timestamp,
            version=1,
            change_history=[
                {"version": 1, "timestamp": timestamp, "source": document.get("source"), "fields_changed": ["all"]}
            ],
        )
        return {**document, "metadata": metadata}

    @staticmethod
    def _as_updated(
        document: Dict[str, Any], existing: Dict[str, Any], fields_changed: List[str], now: datetime
    ) -> Dict[str, Any]:
        previous = existing.get("metadata") or {}
        history = list(previous.get("change_history") or [])
        version = int(previous.get("version") or len(history) or 1) + 1
        timestamp = now.isoformat()
        incoming = document.get("metadata") or {}
        source_version = {**(previous.get("source_version") or {}), **(incoming.get("source_version") or {})}

        history.append(
            {
                "version": version,
                "timestamp": timestamp,
                "source": document.get("source"),
                "fields_changed": fields_changed,
            }
        )
        metadata = {
            **incoming,
            "created_at": previous.get("created_at") or timestamp,
            "updated_at": timestamp,
            "version": version,
            "source_version": source_version,
            "change_history": history,
        }
        return {**document, "metadata": metadata}

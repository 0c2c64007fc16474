"""Batched indexing of source patents into the search engine."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional

from app.core.config import Settings, get_settings
from app.core.errors import PipelineError
from app.services.ingestion import PATENTSVIEW_FIELDS, PatentSource, PatentsViewTransformer
from app.services.search_engine import MeilisearchClient
from app.services.validation import PatentLike

LOGGER = logging.getLogger(__name__)


class IndexingStatus(str, Enum):
    COMPLETE = "complete"
    ALREADY_IN_PROGRESS = "already-in-progress"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class IndexingRun:
    """Progress of one indexing run plus its cancel signal."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    progress: int = 0
    total: int = 0
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


@dataclass
class IndexingOutcome:
    status: IndexingStatus
    indexed: int = 0
    run_id: Optional[str] = None
    message: Optional[str] = None


@dataclass
class IndexingState:
    in_progress: bool
    progress: int
    total: int
    run_id: Optional[str] = None


def default_query() -> Dict[str, Any]:
    """Patents granted today."""

    return {"_eq": {"patent_date": datetime.now(UTC).date().isoformat()}}


class IndexingOrchestrator:
    """Page through a source and push transformed patents into the search index.

    Only one run is active at a time. ``begin_run`` reserves it and ``run``
    executes it, so callers can hand the work to a background task.
    """

    def __init__(
        self,
        source: PatentSource,
        transformer: PatentsViewTransformer,
        search_engine: MeilisearchClient,
        page_size: int = 100,
    ) -> None:
        self.source = source
        self.transformer = transformer
        self.search_engine = search_engine
        self.page_size = page_size
        self._lock = threading.Lock()
        self._active: Optional[IndexingRun] = None
        self._last: Optional[IndexingRun] = None

    @classmethod
    def from_settings(
        cls,
        source: PatentSource,
        transformer: PatentsViewTransformer,
        search_engine: MeilisearchClient,
        settings: Optional[Settings] = None,
    ) -> "IndexingOrchestrator":
        settings = settings or get_settings()
        return cls(source, transformer, search_engine, page_size=settings.indexing_page_size)

    # -- run lifecycle -------------------------------------------------------

    def begin_run(self) -> Optional[IndexingRun]:
        """Reserve a new run, or return ``None`` if one is already active."""

        with self._lock:
            if self._active is not None:
                return None
            self._active = IndexingRun()
            return self._active

    def index_from_source(
        self,
        query: Optional[Dict[str, Any]] = None,
        batch_size: Optional[int] = None,
        max_patents: Optional[int] = None,
    ) -> IndexingOutcome:
        run = self.begin_run()
        if run is None:
            LOGGER.warning("Indexing requested while a run is already in progress")
            return IndexingOutcome(IndexingStatus.ALREADY_IN_PROGRESS, message="Indexing already in progress")
        return self.run(run, query, batch_size, max_patents)

    def run(
        self,
        run: IndexingRun,
        query: Optional[Dict[str, Any]] = None,
        batch_size: Optional[int] = None,
        max_patents: Optional[int] = None,
    ) -> IndexingOutcome:
        query = query or default_query()
        page_size = batch_size or self.page_size
        try:
            head = self.source.fetch(query, ["patent_id"], {"per_page": 1})
            run.total = head.total_count if max_patents is None else min(head.total_count, max_patents)
            run.progress = 0
            LOGGER.info("Indexing run %s started: %s patents to index", run.run_id, run.total)

            page = 1
            while run.progress < run.total:
                if run.cancelled:
                    LOGGER.info("Indexing run %s cancelled after %s patents", run.run_id, run.progress)
                    return IndexingOutcome(IndexingStatus.CANCELLED, indexed=run.progress, run_id=run.run_id)

                response = self.source.fetch(
                    query, PATENTSVIEW_FIELDS, {"per_page": page_size, "page": page}
                )
                patents = self.transformer.transform_many(response.records)
                patents = patents[: run.total - run.progress]
                if not patents:
                    break
                self.search_engine.add_documents(patents)
                run.progress += len(patents)
                LOGGER.info("Indexed page %s: %s/%s patents", page, run.progress, run.total)
                page += 1
        except PipelineError as exc:
            LOGGER.error("Indexing run %s failed after %s patents: %s", run.run_id, run.progress, exc)
            return IndexingOutcome(IndexingStatus.ERROR, indexed=run.progress, run_id=run.run_id, message=str(exc))
        except Exception as exc:
            LOGGER.exception("Indexing run %s crashed after %s patents", run.run_id, run.progress)
            return IndexingOutcome(
                IndexingStatus.ERROR, indexed=run.progress, run_id=run.run_id, message=f"Unexpected error: {exc}"
            )
        finally:
            self._release(run)

        return IndexingOutcome(IndexingStatus.COMPLETE, indexed=run.progress, run_id=run.run_id)

    def cancel(self) -> bool:
        with self._lock:
            if self._active is None:
                return False
            self._active.cancel_event.set()
            return True

    def get_status(self) -> IndexingState:
        with self._lock:
            if self._active is not None:
                run, in_progress = self._active, True
            else:
                run, in_progress = self._last, False
        if run is None:
            return IndexingState(in_progress=False, progress=0, total=0)
        return IndexingState(in_progress=in_progress, progress=run.progress, total=run.total, run_id=run.run_id)

    def _release(self, run: IndexingRun) -> None:
        with self._lock:
            if self._active is run:
                self._active = None
                self._last = run

    # -- search engine passthroughs -------------------------------------------

    def initialize_index(self) -> Dict[str, Any]:
        return self.search_engine.initialize_index()

    def index_patent(self, patent: PatentLike) -> Dict[str, Any]:
        return self.search_engine.add_documents([patent])

    def get_index_stats(self) -> Dict[str, Any]:
        return self.search_engine.get_stats()

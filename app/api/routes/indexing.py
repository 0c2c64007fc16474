"""Search index setup and indexing-run endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, HTTPException, status

from app import schemas
from app.api.dependencies import Orchestrator
from app.core.errors import IndexingError
from app.services.indexing import IndexingState

router = APIRouter(prefix="/indexing", tags=["indexing"])


def to_status_read(state: IndexingState) -> schemas.IndexingStatusRead:
    return schemas.IndexingStatusRead(
        in_progress=state.in_progress,
        progress=state.progress,
        total=state.total,
        run_id=state.run_id,
    )


@router.post("/setup")
def setup_index(orchestrator: Orchestrator) -> Dict[str, Any]:
    """Create the search index and apply its settings."""

    try:
        return orchestrator.initialize_index()
    except IndexingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post(
    "/runs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=schemas.IndexingStatusRead,
)
def start_run(
    payload: schemas.IndexingRequest,
    background_tasks: BackgroundTasks,
    orchestrator: Orchestrator,
) -> schemas.IndexingStatusRead:
    """Reserve an indexing run and execute it after the response is sent."""

    run = orchestrator.begin_run()
    if run is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Indexing already in progress")
    background_tasks.add_task(
        orchestrator.run, run, payload.query, payload.batch_size, payload.max_patents
    )
    return schemas.IndexingStatusRead(in_progress=True, progress=0, total=0, run_id=run.run_id)


@router.get("/status", response_model=schemas.IndexingStatusRead)
def indexing_status(orchestrator: Orchestrator) -> schemas.IndexingStatusRead:
    return to_status_read(orchestrator.get_status())


@router.post("/cancel")
def cancel_run(orchestrator: Orchestrator) -> Dict[str, bool]:
    return {"cancelled": orchestrator.cancel()}


@router.get("/stats")
def index_stats(orchestrator: Orchestrator) -> Dict[str, Any]:
    try:
        return orchestrator.get_index_stats()
    except IndexingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

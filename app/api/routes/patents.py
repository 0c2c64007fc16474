"""Patent search, lookup and ingestion endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from app import schemas
from app.api.dependencies import IntegrationService, SearchService, UpsertEngine
from app.core.errors import IndexingError, NotFoundError, PersistenceError, SourceApiError
from app.services.persistence import BatchResult

router = APIRouter(prefix="/patents", tags=["patents"])


def to_integration_read(batch: BatchResult) -> schemas.IntegrationResultRead:
    return schemas.IntegrationResultRead(
        success=batch.success,
        total_processed=batch.total_processed,
        success_count=batch.success_count,
        failure_count=batch.failure_count,
        errors=[schemas.IntegrationErrorRead(**error) for error in batch.errors],
    )


@router.get("/search", response_model=schemas.SearchResponse)
def search_patents(
    service: SearchService,
    q: str = Query("", description="Free-text query."),
    patent_type: Optional[str] = Query(None, description="Exact kind code."),
    inventor: Optional[str] = Query(None),
    assignee: Optional[str] = Query(None),
    date_range: Optional[str] = Query(None, description="'Last year', 'Last 5 years' or 'Last 10 years'."),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    classifications: Optional[List[str]] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    sort: Optional[List[str]] = Query(None),
) -> schemas.SearchResponse:
    """Search the patent index with optional structured filters."""

    filters = schemas.SearchFilters(
        patent_type=patent_type,
        inventor=inventor,
        assignee=assignee,
        date_range=date_range,
        start_date=start_date,
        end_date=end_date,
        classifications=classifications or [],
    )
    options = schemas.SearchOptions(limit=limit, offset=offset, sort=sort or [])
    try:
        return service.search(q, filters, options)
    except IndexingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/integrate", response_model=schemas.IntegrationResultRead)
def integrate_patents(
    payload: schemas.IntegrationRequest, service: IntegrationService
) -> schemas.IntegrationResultRead:
    """Fetch patents matching a PatentsView query and load them into the store."""

    options = {"per_page": payload.per_page, "page": payload.page}
    try:
        batch = service.integrate(payload.query, payload.fields, options)
    except SourceApiError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return to_integration_read(batch)


@router.post("/integrate/range", response_model=schemas.IntegrationResultRead)
def integrate_date_range(
    service: IntegrationService,
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> schemas.IntegrationResultRead:
    try:
        batch = service.integrate_by_date_range(start_date.isoformat(), end_date.isoformat())
    except SourceApiError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return to_integration_read(batch)


@router.get("/{patent_id}", response_model=schemas.Patent)
def get_patent(patent_id: str, engine: UpsertEngine) -> schemas.Patent:
    """Fetch a stored patent by its patent_id."""

    try:
        return engine.get_patent(patent_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/{patent_id}/similar", response_model=List[Dict[str, Any]])
def similar_patents(
    patent_id: str,
    service: SearchService,
    limit: int = Query(5, ge=1, le=100),
) -> List[Dict[str, Any]]:
    try:
        return service.find_similar_patents(patent_id, limit)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except IndexingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/{patent_id}/integrate", response_model=schemas.IntegrationResultRead)
def integrate_patent(patent_id: str, service: IntegrationService) -> schemas.IntegrationResultRead:
    """Fetch one patent from PatentsView and upsert it."""

    try:
        batch = service.integrate_patent_by_id(patent_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SourceApiError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return to_integration_read(batch)

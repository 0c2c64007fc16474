"""Schemas for search and indexing payloads."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchFilters(BaseModel):
    patent_type: Optional[str] = Field(None, description="Exact kind code to match.")
    inventor: Optional[str] = Field(None, description="Substring of an inventor name.")
    assignee: Optional[str] = Field(None, description="Substring of an assignee name.")
    date_range: Optional[str] = Field(
        None, description="Relative filing range: 'Last year', 'Last 5 years', 'Last 10 years'."
    )
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    classifications: List[str] = Field(
        default_factory=list, description="Classification codes, any of which may match."
    )


class SearchOptions(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    sort: List[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    hits: List[Dict[str, Any]] = Field(default_factory=list)
    estimated_total_hits: int = 0
    query: str = ""
    processing_time_ms: int = 0
    limit: int
    offset: int = 0


class IntegrationRequest(BaseModel):
    query: Dict[str, Any] = Field(..., description="PatentsView query expression.")
    fields: Optional[List[str]] = None
    per_page: Optional[int] = Field(None, ge=1, le=1000)
    page: Optional[int] = Field(None, ge=1)


class IntegrationErrorRead(BaseModel):
    patent_id: Optional[str]
    error: str


class IntegrationResultRead(BaseModel):
    success: bool
    total_processed: int
    success_count: int
    failure_count: int
    errors: List[IntegrationErrorRead]


class IndexingRequest(BaseModel):
    query: Optional[Dict[str, Any]] = Field(
        None, description="PatentsView query; defaults to patents granted today."
    )
    batch_size: Optional[int] = Field(None, ge=1, le=1000)
    max_patents: Optional[int] = Field(None, ge=1)


class IndexingStatusRead(BaseModel):
    in_progress: bool
    progress: int
    total: int
    run_id: Optional[str] = None

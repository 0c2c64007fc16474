"""Filtered full-text search over the patent index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.config import Settings, get_settings
from app.schemas.search import SearchFilters, SearchOptions, SearchResponse
from app.services.llm import QueryEnhancer
from app.services.search_engine import MeilisearchClient, epoch_millis

LOGGER = logging.getLogger(__name__)

# Named relative ranges and how many years back they start.
RELATIVE_RANGES = {
    "Last year": 1,
    "Last 5 years": 5,
    "Last 10 years": 10,
}


@dataclass
class SearchQuery:
    query: str
    filter_expression: str = ""
    limit: int = 20
    offset: int = 0
    sort: List[str] = field(default_factory=list)


def quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def years_before(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year.
        return moment.replace(year=moment.year - years, day=28)


class SearchQueryBuilder:
    """Turn free text, filters and paging options into a search-engine query."""

    def __init__(
        self,
        date_floor: date = date(1790, 1, 1),
        default_limit: int = 20,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.date_floor = date_floor
        self.default_limit = default_limit
        self._clock = clock

    def build_query(
        self,
        raw_query_text: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None,
    ) -> SearchQuery:
        options = options or SearchOptions()
        return SearchQuery(
            query=raw_query_text,
            filter_expression=self.build_filter(filters or SearchFilters()),
            limit=options.limit or self.default_limit,
            offset=options.offset or 0,
            sort=list(options.sort),
        )

    def build_filter(self, filters: SearchFilters) -> str:
        clauses: List[str] = []
        if filters.patent_type:
            clauses.append(f"kind_code = {quote(filters.patent_type)}")
        if filters.inventor:
            clauses.append(f"inventors.name CONTAINS {quote(filters.inventor)}")
        if filters.assignee:
            clauses.append(f"assignees.name CONTAINS {quote(filters.assignee)}")
        clauses.extend(self._date_clauses(filters))
        if filters.classifications:
            codes = " OR ".join(f"classifications.code = {quote(code)}" for code in filters.classifications)
            clauses.append(f"({codes})")
        return " AND ".join(clauses)

    def _date_clauses(self, filters: SearchFilters) -> List[str]:
        if filters.start_date or filters.end_date:
            clauses = []
            if filters.start_date:
                clauses.append(f"dates.filing >= {epoch_millis(filters.start_date)}")
            if filters.end_date:
                clauses.append(f"dates.filing <= {epoch_millis(filters.end_date)}")
            return clauses
        if not filters.date_range:
            return []

        now = self._clock()
        years = RELATIVE_RANGES.get(filters.date_range)
        start = years_before(now, years) if years else self.date_floor
        return [
            f"dates.filing >= {epoch_millis(start)}",
            f"dates.filing <= {epoch_millis(now)}",
        ]


class SemanticSearchService:
    """Search the patent index, optionally rewriting the query with an LLM first."""

    def __init__(
        self,
        search_engine: MeilisearchClient,
        builder: Optional[SearchQueryBuilder] = None,
        enhancer: Optional[QueryEnhancer] = None,
    ) -> None:
        self.search_engine = search_engine
        self.builder = builder or SearchQueryBuilder()
        self.enhancer = enhancer

    @classmethod
    def from_settings(
        cls,
        search_engine: MeilisearchClient,
        enhancer: Optional[QueryEnhancer] = None,
        settings: Optional[Settings] = None,
    ) -> "SemanticSearchService":
        settings = settings or get_settings()
        builder = SearchQueryBuilder(
            date_floor=settings.search_date_floor, default_limit=settings.search_default_limit
        )
        return cls(search_engine, builder=builder, enhancer=enhancer)

    def search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None,
    ) -> SearchResponse:
        options = options or SearchOptions()
        if not query or not query.strip():
            return SearchResponse(
                hits=[],
                estimated_total_hits=0,
                query=query or "",
                limit=options.limit or self.builder.default_limit,
                offset=options.offset,
            )

        text = self.enhancer.enhance(query) if self.enhancer is not None else query
        if text != query:
            LOGGER.debug("Enhanced query %r to %r", query, text)

        built = self.builder.build_query(text, filters, options)
        payload = self.search_engine.search(
            built.query,
            filter_expression=built.filter_expression or None,
            limit=built.limit,
            offset=built.offset,
            sort=built.sort,
        )
        return SearchResponse(
            hits=payload.get("hits", []),
            estimated_total_hits=payload.get("estimatedTotalHits", len(payload.get("hits", []))),
            query=built.query,
            processing_time_ms=payload.get("processingTimeMs", 0),
            limit=built.limit,
            offset=built.offset,
        )

    def get_patent_by_id(self, patent_id: str) -> Dict[str, Any]:
        return self.search_engine.get_document(patent_id)

    def find_similar_patents(self, patent_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Patents whose text resembles the reference patent, excluding the reference itself."""

        reference = self.get_patent_by_id(patent_id)
        text = f"{reference.get('title') or ''} {reference.get('abstract') or ''}".strip()
        if not text:
            return []
        results = self.search(text, options=SearchOptions(limit=limit + 1))
        return [hit for hit in results.hits if hit.get("patent_id") != patent_id][:limit]

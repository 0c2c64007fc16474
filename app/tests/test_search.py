from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from app.core.errors import NotFoundError
from app.schemas.search import SearchFilters, SearchOptions
from app.services.search import SearchQueryBuilder, SemanticSearchService, quote
from app.services.search_engine import epoch_millis

NOW = datetime(2024, 2, 29, 12, 0, tzinfo=UTC)


class RecordingEngine:
    def __init__(self, hits=None, documents=None):
        self.hits = hits or []
        self.documents = documents or {}
        self.searches = []

    def search(self, query, filter_expression=None, limit=20, offset=0, sort=None):
        self.searches.append(
            {"query": query, "filter": filter_expression, "limit": limit, "offset": offset, "sort": sort}
        )
        return {"hits": self.hits, "estimatedTotalHits": len(self.hits), "processingTimeMs": 3}

    def get_document(self, patent_id):
        if patent_id not in self.documents:
            raise NotFoundError(patent_id, where="search index")
        return self.documents[patent_id]


class StubEnhancer:
    def __init__(self, rewrite):
        self.rewrite = rewrite

    def enhance(self, query):
        return self.rewrite(query)


@pytest.fixture
def builder():
    return SearchQueryBuilder(clock=lambda: NOW)


def test_defaults_without_filters(builder):
    query = builder.build_query("peptide")

    assert query.query == "peptide"
    assert query.filter_expression == ""
    assert (query.limit, query.offset, query.sort) == (20, 0, [])


def test_all_filters_are_joined_with_and(builder):
    filters = SearchFilters(
        patent_type="B2",
        inventor="Ada",
        assignee="Display Bio",
        start_date=date(2020, 1, 1),
        end_date=date(2020, 12, 31),
        classifications=["C07K", "C12N"],
    )
    query = builder.build_query("peptide", filters, SearchOptions(limit=5, offset=10, sort=["dates.filing:desc"]))

    assert query.filter_expression == (
        'kind_code = "B2" AND inventors.name CONTAINS "Ada" AND assignees.name CONTAINS "Display Bio" '
        f"AND dates.filing >= {epoch_millis(date(2020, 1, 1))} AND dates.filing <= {epoch_millis(date(2020, 12, 31))} "
        'AND (classifications.code = "C07K" OR classifications.code = "C12N")'
    )
    assert (query.limit, query.offset, query.sort) == (5, 10, ["dates.filing:desc"])


def test_explicit_dates_take_precedence_over_relative_range(builder):
    filters = SearchFilters(date_range="Last year", start_date=date(2020, 1, 1))

    assert builder.build_filter(filters) == f"dates.filing >= {epoch_millis(date(2020, 1, 1))}"


def test_relative_ranges(builder):
    last_year = builder.build_filter(SearchFilters(date_range="Last year"))
    assert last_year == (
        f"dates.filing >= {epoch_millis(datetime(2023, 2, 28, 12, 0))} AND dates.filing <= {epoch_millis(NOW)}"
    )

    decade = builder.build_filter(SearchFilters(date_range="Last 10 years"))
    assert decade.startswith(f"dates.filing >= {epoch_millis(datetime(2014, 2, 28, 12, 0))}")

    anything = builder.build_filter(SearchFilters(date_range="All time"))
    assert anything.startswith(f"dates.filing >= {epoch_millis(date(1790, 1, 1))}")


def test_quotes_in_values_are_escaped():
    assert quote('Acme "Labs"') == '"Acme \\"Labs\\""'


def test_blank_query_skips_the_search_engine(builder):
    engine = RecordingEngine()
    service = SemanticSearchService(engine, builder)

    response = service.search("   ")

    assert response.hits == []
    assert response.estimated_total_hits == 0
    assert response.limit == 20
    assert engine.searches == []


def test_search_passes_built_query_to_engine(builder):
    engine = RecordingEngine(hits=[{"patent_id": "1"}])
    service = SemanticSearchService(engine, builder, enhancer=StubEnhancer(lambda text: text + " display"))

    response = service.search("mRNA", SearchFilters(patent_type="B1"), SearchOptions(limit=3))

    assert engine.searches == [
        {"query": "mRNA display", "filter": 'kind_code = "B1"', "limit": 3, "offset": 0, "sort": []}
    ]
    assert response.query == "mRNA display"
    assert response.estimated_total_hits == 1
    assert response.processing_time_ms == 3


def test_find_similar_excludes_reference():
    engine = RecordingEngine(
        hits=[{"patent_id": "ref"}, {"patent_id": "a"}, {"patent_id": "b"}, {"patent_id": "c"}],
        documents={"ref": {"patent_id": "ref", "title": "Widget", "abstract": "A widget."}},
    )
    service = SemanticSearchService(engine)

    similar = service.find_similar_patents("ref", limit=2)

    assert [hit["patent_id"] for hit in similar] == ["a", "b"]
    assert engine.searches[0]["query"] == "Widget A widget."
    assert engine.searches[0]["limit"] == 3


def test_find_similar_missing_reference_raises():
    with pytest.raises(NotFoundError):
        SemanticSearchService(RecordingEngine()).find_similar_patents("missing")

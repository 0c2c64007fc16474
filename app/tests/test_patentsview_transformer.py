from __future__ import annotations

from datetime import date

import pytest

from app.core.errors import InvalidInputError
from app.schemas.patent import ClassificationSystem
from app.services.ingestion import PatentsViewTransformer, RawPatentRecord
from app.services.ingestion.patentsview import (
    PATENTSVIEW_FIELD_RULES,
    map_assignee_type,
    parse_dependency,
    safe_date,
)


def test_transform_populates_every_unified_field(transformer, raw_patent):
    patent = transformer.transform(raw_patent)

    assert patent.patent_id == "10000001"
    assert patent.source == "patentsview"
    assert patent.external_ids == {"patentsview_id": "10000001"}
    assert patent.kind_code == "B2"
    assert patent.title == "Cyclic peptide display library"
    assert patent.abstract and patent.description
    assert patent.dates.filing == date(2019, 2, 1)
    assert patent.dates.publication == date(2021, 6, 15)
    assert patent.dates.grant == date(2021, 6, 15)
    assert patent.dates.priority == date(2018, 2, 1)

    inventor = patent.inventors[0]
    assert inventor.name == "Ada Lovelace"
    assert inventor.location.country == "US"
    assert inventor.location.city == "Boston"
    assert inventor.normalized_id == "inv-1"

    assignee = patent.assignees[0]
    assert assignee.name == "Display Bio Inc."
    assert assignee.type == "U.S. Company or Corporation"

    assert [claim.number for claim in patent.claims] == [1, 2]
    assert patent.claims[0].dependent_on is None
    assert patent.claims[1].dependent_on == 1

    systems = [classification.system for classification in patent.classifications]
    assert systems == [ClassificationSystem.CPC, ClassificationSystem.USPC, ClassificationSystem.IPC]
    assert patent.classifications[0].hierarchy == ["C", "C07K"]
    assert patent.classifications[1].hierarchy is None

    assert patent.citations[0].patent_id == "9000000"
    assert patent.citations[0].citation_type == "cited by examiner"


def test_transform_creates_fresh_metadata(transformer, raw_patent):
    metadata = transformer.transform(raw_patent).metadata

    assert metadata.version == 1
    assert metadata.created_at == metadata.updated_at
    assert metadata.source_version == {"patentsview": "2024-01-01"}
    assert len(metadata.change_history) == 1
    assert metadata.change_history[0].fields_changed == ["all"]


def test_transform_empty_record_keeps_source_and_defaults(transformer):
    patent = transformer.transform({})

    assert patent.patent_id is None
    assert patent.source == "patentsview"
    assert patent.title == ""
    assert patent.claims == []
    assert patent.dates.filing is None
    assert patent.metadata.source_version == {"patentsview": "unknown"}


def test_transform_rejects_missing_or_foreign_records(transformer):
    with pytest.raises(InvalidInputError):
        transformer.transform(None)
    with pytest.raises(InvalidInputError):
        transformer.transform(["not", "a", "record"])
    with pytest.raises(InvalidInputError):
        transformer.transform(RawPatentRecord(source="epo", payload={"patent_id": "1"}))


def test_transform_accepts_tagged_records(transformer, raw_patent):
    patent = transformer.transform(RawPatentRecord(source="patentsview", payload=raw_patent))
    assert patent.patent_id == "10000001"


def test_transform_many_skips_bad_records(transformer, raw_patent):
    patents = transformer.transform_many([raw_patent, None, {"patent_id": "2"}])

    assert [patent.patent_id for patent in patents] == ["10000001", "2"]
    assert transformer.transform_many({"patents": []}) == []
    assert transformer.transform_many(None) == []


def test_numeric_source_scalars_are_coerced_to_text(transformer):
    patent = transformer.transform(
        {
            "patent_id": 1,
            "patent_title": 123,
            "patent_kind": 2,
            "inventors": [{"inventor_id": 77, "inventor_name_first": "Ada", "inventor_name_last": 9}],
            "assignees": [{"assignee_id": 5, "assignee_organization": 3, "assignee_type": 2}],
            "claims": [{"claim_text": 42}],
            "cited_patents": [{"cited_patent_id": 9876543}],
            "cpc_subsections": [{"cpc_subsection_id": 1, "cpc_subsection_title": 0}],
        }
    )

    assert patent.patent_id == "1"
    assert patent.title == "123"
    assert patent.kind_code == "2"
    assert patent.inventors[0].name == "Ada 9"
    assert patent.inventors[0].normalized_id == "77"
    assert patent.assignees[0].name == "3"
    assert patent.claims[0].text == "42"
    assert patent.citations[0].patent_id == "9876543"
    assert patent.classifications[0].code == "1"
    assert patent.classifications[0].description == "0"


def test_model_errors_surface_as_invalid_input_and_are_skipped_in_batches():
    rules = dict(PATENTSVIEW_FIELD_RULES, title=lambda payload: payload.get("patent_title"))
    transformer = PatentsViewTransformer(field_rules=rules)
    bad = {"patent_id": "1", "patent_title": {"en": "Peptide"}}

    with pytest.raises(InvalidInputError, match="Invalid patent data for 1"):
        transformer.transform(bad)
    patents = transformer.transform_many([bad, {"patent_id": "2", "patent_title": "Library"}])
    assert [patent.patent_id for patent in patents] == ["2"]


def test_unknown_assignee_type_and_dependency_references():
    assert map_assignee_type("42") == "Unknown"
    assert map_assignee_type(None) == "Unknown"
    assert parse_dependency("") is None
    assert parse_dependency("claim-12") == 12
    assert parse_dependency("no digits") is None


def test_safe_date_handles_bad_input():
    assert safe_date("2020-05-01T00:00:00Z") == date(2020, 5, 1)
    assert safe_date("not-a-date") is None
    assert safe_date(None) is None

from __future__ import annotations

import pytest

from app.core.config import Settings
from app.core.errors import ValidationError
from app.services.validation import PatentValidator, Severity, coerce_date


def minimal_document(**overrides):
    document = {
        "patent_id": "P-1",
        "source": "patentsview",
        "title": "Widget",
        "external_ids": {"patentsview_id": "P-1"},
        "metadata": {
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-01T00:00:00Z",
            "version": 1,
            "source_version": {"patentsview": "2024-01-01"},
        },
    }
    document.update(overrides)
    return document


def test_transformed_patent_is_valid_without_warnings(transformer, raw_patent):
    result = PatentValidator().validate(transformer.transform(raw_patent))

    assert result.is_valid
    assert result.errors == []


def test_empty_record_only_reports_missing_patent_id(transformer):
    result = PatentValidator().validate(transformer.transform({}))

    assert not result.is_valid
    assert result.error_messages() == ["patent_id: Patent ID is required"]


def test_validate_is_idempotent(transformer, raw_patent):
    validator = PatentValidator()
    patent = transformer.transform(raw_patent)
    assert validator.validate(patent) == validator.validate(patent)


def test_missing_metadata_fields_are_errors():
    result = PatentValidator().validate(minimal_document(metadata={"source_version": {"x": "1"}}))

    assert set(result.error_messages()) == {
        "metadata.created_at: Created date is required in metadata",
        "metadata.updated_at: Updated date is required in metadata",
        "metadata.version: Version number is required in metadata",
    }


def test_type_errors_are_reported_for_malformed_mappings():
    document = minimal_document(
        patent_id=123,
        dates={"filing": "yesterday"},
        inventors="Ada",
        claims=[{"number": "one", "text": 5, "dependent_on": "x"}, "bad"],
    )
    messages = PatentValidator().validate(document).error_messages()

    assert "patent_id: Patent ID must be a string" in messages
    assert "dates.filing: Filing date must be a valid date" in messages
    assert "inventors: Inventors must be an array" in messages
    assert "claims[0].number: Claim number must be a number" in messages
    assert "claims[0].text: Claim text must be a string" in messages
    assert "claims[0].dependent_on: Dependent claim reference must be a number" in messages
    assert "claims[1]: Claim must be an object" in messages


@pytest.mark.parametrize("dependent_on", [2, 3, 0])
def test_bad_claim_dependency_is_a_single_warning(dependent_on):
    document = minimal_document(
        claims=[
            {"number": 1, "text": "first"},
            {"number": 2, "text": "second", "dependent_on": dependent_on},
        ]
    )
    result = PatentValidator().validate(document)

    assert result.is_valid
    assert result.warning_messages() == [f"claims[1].dependent_on: Invalid dependent claim reference: {dependent_on}"]


def test_filing_after_grant_is_a_warning_by_default():
    document = minimal_document(dates={"filing": "2022-01-01", "publication": "2021-01-01", "grant": "2021-01-01"})
    result = PatentValidator().validate(document)

    assert result.is_valid
    assert result.warning_messages() == [
        "dates: Filing date cannot be after publication date",
        "dates: Filing date cannot be after grant date",
    ]


def test_severities_can_be_raised_to_errors():
    settings = Settings(
        validation_date_order_severity="error", validation_claim_dependency_severity="error"
    )
    validator = PatentValidator.from_settings(settings)
    document = minimal_document(
        dates={"filing": "2022-01-01", "grant": "2021-01-01"},
        claims=[{"number": 1, "text": "only", "dependent_on": 1}],
    )
    result = validator.validate(document)

    assert not result.is_valid
    with pytest.raises(ValidationError) as excinfo:
        result.raise_for_errors("P-1")
    assert str(excinfo.value).startswith("Validation failed: dates: Filing date cannot be after grant date")


def test_missing_external_id_and_source_version_are_warnings():
    document = minimal_document(external_ids={}, metadata={"created_at": "x", "updated_at": "y", "version": 1})
    result = PatentValidator().validate(document)

    assert result.is_valid
    assert result.warning_messages() == [
        "external_ids.patentsview_id: patentsview_id is required for patents from the patentsview source",
        "metadata.source_version: Source version information is missing in metadata",
    ]
    assert all(issue.severity is Severity.WARNING for issue in result.errors)


def test_completeness_score_bounds(transformer, raw_patent):
    validator = PatentValidator()

    assert validator.completeness_score(transformer.transform(raw_patent)) == 100
    assert validator.completeness_score({"patent_id": "P-1", "source": "patentsview"}) == 14


def test_coerce_date_normalises_representations():
    assert coerce_date("2020-01-01") == coerce_date("2020-01-01T00:00:00Z")
    assert coerce_date("garbage") is None
    assert coerce_date(42) is None

"""Structural and business-rule validation of unified patent records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel

from app.core.config import Settings
from app.core.errors import ValidationError


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    severity: Severity

    def render(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(issue.severity is Severity.ERROR for issue in self.errors)

    def error_messages(self) -> List[str]:
        return [issue.render() for issue in self.errors if issue.severity is Severity.ERROR]

    def warning_messages(self) -> List[str]:
        return [issue.render() for issue in self.errors if issue.severity is Severity.WARNING]

    def raise_for_errors(self, patent_id: Optional[str] = None) -> None:
        if not self.is_valid:
            raise ValidationError(patent_id, self.error_messages())


PatentLike = Union[BaseModel, Mapping[str, Any]]

DATE_FIELDS = ("filing", "publication", "grant", "priority")
ARRAY_FIELDS = ("claims", "inventors", "assignees", "classifications", "citations")
SOURCE_ID_KEYS = {"patentsview": "patentsview_id", "epo": "epo_id", "wipo": "wipo_id"}

COMPLETENESS_TEXT_FIELDS = ("patent_id", "source", "title", "abstract", "description")
COMPLETENESS_ARRAY_MINIMUMS = (
    ("inventors", 1),
    ("assignees", 1),
    ("claims", 1),
    ("classifications", 1),
    ("citations", 0),
)


def as_document(patent: PatentLike) -> Mapping[str, Any]:
    if isinstance(patent, BaseModel):
        return patent.model_dump()
    return patent


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def coerce_date(value: Any) -> Optional[datetime]:
    """Return a comparable datetime for date-like values, ``None`` otherwise."""

    if isinstance(value, datetime):
        return naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return naive_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


class PatentValidator:
    """Validate patents against the unified schema and score completeness."""

    def __init__(
        self,
        date_order_severity: Severity = Severity.WARNING,
        claim_dependency_severity: Severity = Severity.WARNING,
    ) -> None:
        self.date_order_severity = Severity(date_order_severity)
        self.claim_dependency_severity = Severity(claim_dependency_severity)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PatentValidator":
        return cls(
            date_order_severity=Severity(settings.validation_date_order_severity),
            claim_dependency_severity=Severity(settings.validation_claim_dependency_severity),
        )

    def validate(self, patent: PatentLike) -> ValidationResult:
        document = as_document(patent)
        issues: List[ValidationIssue] = []
        self._check_required(document, issues)
        self._check_types(document, issues)
        self._check_business_rules(document, issues)
        return ValidationResult(errors=issues)

    def completeness_score(self, patent: PatentLike) -> int:
        document = as_document(patent)
        total = 0
        populated = 0

        for name in COMPLETENESS_TEXT_FIELDS:
            total += 1
            if document.get(name):
                populated += 1

        dates = document.get("dates")
        for name in DATE_FIELDS:
            total += 1
            if isinstance(dates, Mapping) and dates.get(name):
                populated += 1

        for name, minimum in COMPLETENESS_ARRAY_MINIMUMS:
            total += 1
            value = document.get(name)
            if isinstance(value, list) and len(value) >= minimum:
                populated += 1

        return round(populated / total * 100)

    # -- checks ------------------------------------------------------------

    def _check_required(self, document: Mapping[str, Any], issues: List[ValidationIssue]) -> None:
        if not document.get("patent_id"):
            issues.append(ValidationIssue("patent_id", "Patent ID is required", Severity.ERROR))
        if not document.get("source"):
            issues.append(ValidationIssue("source", "Source identifier is required", Severity.ERROR))
        if not document.get("title"):
            issues.append(ValidationIssue("title", "Patent title is required", Severity.WARNING))

        metadata = document.get("metadata")
        if not metadata:
            issues.append(ValidationIssue("metadata", "Metadata is required", Severity.ERROR))
            return
        if not isinstance(metadata, Mapping):
            issues.append(ValidationIssue("metadata", "Metadata must be an object", Severity.ERROR))
            return
        if not metadata.get("created_at"):
            issues.append(
                ValidationIssue("metadata.created_at", "Created date is required in metadata", Severity.ERROR)
            )
        if not metadata.get("updated_at"):
            issues.append(
                ValidationIssue("metadata.updated_at", "Updated date is required in metadata", Severity.ERROR)
            )
        if metadata.get("version") is None:
            issues.append(
                ValidationIssue("metadata.version", "Version number is required in metadata", Severity.ERROR)
            )

    def _check_types(self, document: Mapping[str, Any], issues: List[ValidationIssue]) -> None:
        patent_id = document.get("patent_id")
        if patent_id and not isinstance(patent_id, str):
            issues.append(ValidationIssue("patent_id", "Patent ID must be a string", Severity.ERROR))

        dates = document.get("dates")
        if isinstance(dates, Mapping):
            for name in DATE_FIELDS:
                value = dates.get(name)
                if value and coerce_date(value) is None:
                    issues.append(
                        ValidationIssue(
                            f"dates.{name}", f"{name.capitalize()} date must be a valid date", Severity.ERROR
                        )
                    )
        elif dates is not None:
            issues.append(ValidationIssue("dates", "Dates must be an object", Severity.ERROR))

        for name in ARRAY_FIELDS:
            value = document.get(name)
            if value is not None and not isinstance(value, list):
                issues.append(ValidationIssue(name, f"{name.capitalize()} must be an array", Severity.ERROR))

        claims = document.get("claims")
        if isinstance(claims, list):
            for index, claim in enumerate(claims):
                prefix = f"claims[{index}]"
                if not isinstance(claim, Mapping):
                    issues.append(ValidationIssue(prefix, "Claim must be an object", Severity.ERROR))
                    continue
                if not is_number(claim.get("number")):
                    issues.append(ValidationIssue(f"{prefix}.number", "Claim number must be a number", Severity.ERROR))
                if not isinstance(claim.get("text"), str):
                    issues.append(ValidationIssue(f"{prefix}.text", "Claim text must be a string", Severity.ERROR))
                dependent_on = claim.get("dependent_on")
                if dependent_on is not None and not is_number(dependent_on):
                    issues.append(
                        ValidationIssue(
                            f"{prefix}.dependent_on", "Dependent claim reference must be a number", Severity.ERROR
                        )
                    )

    def _check_business_rules(self, document: Mapping[str, Any], issues: List[ValidationIssue]) -> None:
        dates = document.get("dates")
        if isinstance(dates, Mapping):
            filing = coerce_date(dates.get("filing"))
            publication = coerce_date(dates.get("publication"))
            grant = coerce_date(dates.get("grant"))
            if filing and publication and filing > publication:
                issues.append(
                    ValidationIssue("dates", "Filing date cannot be after publication date", self.date_order_severity)
                )
            if filing and grant and filing > grant:
                issues.append(
                    ValidationIssue("dates", "Filing date cannot be after grant date", self.date_order_severity)
                )

        claims = document.get("claims")
        if isinstance(claims, list):
            for index, claim in enumerate(claims):
                if not isinstance(claim, Mapping):
                    continue
                dependent_on = claim.get("dependent_on")
                number = claim.get("number")
                if not is_number(dependent_on) or not is_number(number):
                    continue
                if dependent_on <= 0 or dependent_on >= number:
                    issues.append(
                        ValidationIssue(
                            f"claims[{index}].dependent_on",
                            f"Invalid dependent claim reference: {dependent_on}",
                            self.claim_dependency_severity,
                        )
                    )

        source = document.get("source")
        id_key = SOURCE_ID_KEYS.get(source) if isinstance(source, str) else None
        if id_key:
            external_ids = document.get("external_ids")
            if not isinstance(external_ids, Mapping) or not external_ids.get(id_key):
                issues.append(
                    ValidationIssue(
                        f"external_ids.{id_key}",
                        f"{id_key} is required for patents from the {source} source",
                        Severity.WARNING,
                    )
                )

        metadata = document.get("metadata")
        if isinstance(metadata, Mapping) and metadata and not metadata.get("source_version"):
            issues.append(
                ValidationIssue(
                    "metadata.source_version", "Source version information is missing in metadata", Severity.WARNING
                )
            )


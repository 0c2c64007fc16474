"""PatentsView source client and transformer into the unified patent model."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import httpx
from pydantic import ValidationError as ModelValidationError

from app.core.config import Settings, get_settings
from app.core.errors import InvalidInputError, NotFoundError, SourceApiError
from app.schemas.patent import (
    Assignee,
    ChangeHistoryEntry,
    Citation,
    Claim,
    Classification,
    ClassificationSystem,
    Inventor,
    Location,
    Patent,
    PatentDates,
    PatentMetadata,
)

LOGGER = logging.getLogger(__name__)

SOURCE_NAME = "patentsview"


# ---------------------------------------------------------------------------
# Source API client
# ---------------------------------------------------------------------------


PATENTSVIEW_FIELDS = [
    "patent_id",
    "patent_kind",
    "patent_title",
    "patent_abstract",
    "patent_description",
    "patent_date",
    "application_date",
    "patent_earliest_application_date",
    "inventors",
    "assignees",
    "claims",
    "cited_patents",
    "cpc_subsections",
    "uspc_mainclasses",
    "ipcr_subsections",
]

DEFAULT_FIELDS = ["patent_id", "patent_title", "patent_abstract"]

INVENTOR_FIELDS = ["inventor_id", "inventor_name", "inventor_city", "inventor_state", "inventor_country"]

ASSIGNEE_FIELDS = [
    "assignee_id",
    "assignee_name",
    "assignee_type",
    "assignee_city",
    "assignee_state",
    "assignee_country",
]

CPC_FIELDS = ["cpc_subsection_id", "cpc_subsection_title"]

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass
class SourceResponse:
    """One page of raw records plus the total the query matches."""

    records: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0


class PatentSource(Protocol):
    """Interface for upstream bibliographic APIs."""

    name: str

    def fetch(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        ...


class PatentsViewClient:
    """Client for the PatentsView patent search API."""

    name = SOURCE_NAME

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings or get_settings()
        self._base_url = self.settings.patentsview_api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=self.settings.http_timeout_seconds)

    def fetch(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        return self._search("/patent/", "patents", query, fields or DEFAULT_FIELDS, options)

    def get_patent_by_id(self, patent_id: str, fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        response = self.fetch({"_eq": {"patent_id": patent_id}}, fields or PATENTSVIEW_FIELDS)
        if not response.records:
            raise NotFoundError(patent_id, where=SOURCE_NAME)
        return response.records[0]

    def get_patents_by_date_range(
        self,
        start_date: str,
        end_date: str,
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        query = {
            "_and": [
                {"_gte": {"patent_date": start_date}},
                {"_lte": {"patent_date": end_date}},
            ]
        }
        return self.fetch(query, fields, options)

    def get_inventors(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        return self._search("/inventor/", "inventors", query, fields or INVENTOR_FIELDS, options)

    def get_assignees(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        return self._search("/assignee/", "assignees", query, fields or ASSIGNEE_FIELDS, options)

    def get_cpc_classifications(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> SourceResponse:
        return self._search("/cpc_subsection/", "cpc_subsections", query, fields or CPC_FIELDS, options)

    def _search(
        self,
        path: str,
        records_key: str,
        query: Dict[str, Any],
        fields: Sequence[str],
        options: Optional[Dict[str, Any]],
    ) -> SourceResponse:
        """POST a {q, f, o} search to one endpoint and unwrap its record list."""

        body = {
            "q": query,
            "f": list(fields),
            "o": {key: value for key, value in (options or {}).items() if value is not None},
        }
        data = self._post(path, body)
        records = data.get(records_key) or []
        total = data.get("total_hits", data.get(f"total_{records_key[:-1]}_count"))
        return SourceResponse(
            records=list(records),
            total_count=int(total) if total is not None else len(records),
        )

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.settings.patentsview_api_key:
            headers["X-Api-Key"] = self.settings.patentsview_api_key
        url = f"{self._base_url}{path}"

        # One transparent retry on transient failures.
        for attempt in (1, 2):
            try:
                response = self._client.post(url, json=body, headers=headers)
            except httpx.TransportError as exc:
                if attempt == 1:
                    LOGGER.warning("PatentsView transport error, retrying: %s", exc)
                    continue
                raise SourceApiError(f"PatentsView request failed: {exc}") from exc
            if response.status_code in TRANSIENT_STATUS_CODES and attempt == 1:
                LOGGER.warning("PatentsView returned %s, retrying", response.status_code)
                continue
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise SourceApiError(
                    f"PatentsView error {response.status_code}: {_error_message(response)}"
                ) from exc
            try:
                payload = response.json()
            except ValueError as exc:
                raise SourceApiError(f"PatentsView returned a non-JSON body: {exc}") from exc
            if not isinstance(payload, dict):
                raise SourceApiError(f"PatentsView returned {type(payload).__name__}, expected an object")
            return payload
        raise SourceApiError("PatentsView request failed")  # pragma: no cover - loop always returns


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(payload.get("error") or payload.get("message") or payload)
    return str(payload)


# ---------------------------------------------------------------------------
# Raw records and field extraction rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawPatentRecord:
    """A source-native record tagged with the source it came from."""

    source: str
    payload: Mapping[str, Any]


ASSIGNEE_TYPES = {
    "2": "U.S. Company or Corporation",
    "3": "Foreign Company or Corporation",
    "4": "U.S. Individual",
    "5": "Foreign Individual",
    "6": "U.S. Federal Government",
    "7": "Foreign Government",
    "8": "U.S. County Government",
    "9": "U.S. State Government",
}

TRAILING_NUMBER = re.compile(r"(\d+)$")


def safe_date(raw: Any) -> Optional[date]:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def as_text(value: Any, default: Optional[str] = "") -> Optional[str]:
    """Source scalars arrive as numbers as often as strings."""

    if value is None or value == "":
        return default
    return str(value)


def text_rule(key: str) -> Callable[[Mapping[str, Any]], str]:
    return lambda payload: as_text(payload.get(key))


def map_assignee_type(code: Any) -> str:
    return ASSIGNEE_TYPES.get(str(code) if code is not None else "", "Unknown")


def parse_dependency(reference: Any) -> Optional[int]:
    if reference is None or reference == "":
        return None
    match = TRAILING_NUMBER.search(str(reference).strip())
    return int(match.group(1)) if match else None


def extract_claims(payload: Mapping[str, Any]) -> List[Claim]:
    claims = []
    for index, entry in enumerate(as_list(payload.get("claims")), start=1):
        entry = entry if isinstance(entry, Mapping) else {}
        claims.append(
            Claim(
                number=index,
                text=as_text(entry.get("claim_text")),
                dependent_on=parse_dependency(entry.get("dependent_claim_id")),
            )
        )
    return claims


def extract_location(entry: Mapping[str, Any], prefix: str) -> Location:
    return Location(
        country=as_text(entry.get(f"{prefix}_country")),
        state=as_text(entry.get(f"{prefix}_state"), None),
        city=as_text(entry.get(f"{prefix}_city"), None),
    )


def person_name(entry: Mapping[str, Any], prefix: str) -> str:
    name = as_text(entry.get(f"{prefix}_name"))
    if name:
        return name
    parts = [as_text(entry.get(f"{prefix}_name_first")), as_text(entry.get(f"{prefix}_name_last"))]
    return " ".join(part for part in parts if part) or as_text(entry.get(f"{prefix}_organization"))


def extract_inventors(payload: Mapping[str, Any]) -> List[Inventor]:
    return [
        Inventor(
            name=person_name(entry, "inventor"),
            location=extract_location(entry, "inventor"),
            normalized_id=as_text(entry.get("inventor_id"), None),
        )
        for entry in as_list(payload.get("inventors"))
        if isinstance(entry, Mapping)
    ]


def extract_assignees(payload: Mapping[str, Any]) -> List[Assignee]:
    return [
        Assignee(
            name=person_name(entry, "assignee"),
            type=map_assignee_type(entry.get("assignee_type")),
            location=extract_location(entry, "assignee"),
            normalized_id=as_text(entry.get("assignee_id"), None),
        )
        for entry in as_list(payload.get("assignees"))
        if isinstance(entry, Mapping)
    ]


# (source collection, system, code key, title key)
CLASSIFICATION_SOURCES = (
    ("cpc_subsections", ClassificationSystem.CPC, "cpc_subsection_id", "cpc_subsection_title"),
    ("uspc_mainclasses", ClassificationSystem.USPC, "uspc_mainclass_id", "uspc_mainclass_title"),
    ("ipcr_subsections", ClassificationSystem.IPC, "ipcr_subsection_id", "ipcr_subsection_title"),
)


def extract_classifications(payload: Mapping[str, Any]) -> List[Classification]:
    classifications = []
    for collection, system, code_key, title_key in CLASSIFICATION_SOURCES:
        for entry in as_list(payload.get(collection)):
            if not isinstance(entry, Mapping):
                continue
            code = as_text(entry.get(code_key))
            hierarchy = None
            if system is ClassificationSystem.CPC:
                hierarchy = [code[:1], code] if code else []
            classifications.append(
                Classification(
                    system=system,
                    code=code,
                    description=as_text(entry.get(title_key)),
                    hierarchy=hierarchy,
                )
            )
    return classifications


def extract_citations(payload: Mapping[str, Any]) -> List[Citation]:
    return [
        Citation(
            patent_id=as_text(entry.get("cited_patent_id")),
            citation_type=as_text(entry.get("citation_category"), "cited"),
        )
        for entry in as_list(payload.get("cited_patents"))
        if isinstance(entry, Mapping)
    ]


def extract_dates(payload: Mapping[str, Any]) -> PatentDates:
    # PatentsView only exposes the grant date, which doubles as publication.
    return PatentDates(
        filing=safe_date(payload.get("application_date")),
        publication=safe_date(payload.get("patent_date")),
        grant=safe_date(payload.get("patent_date")),
        priority=safe_date(payload.get("patent_earliest_application_date")),
    )


def extract_external_ids(payload: Mapping[str, Any]) -> Dict[str, str]:
    patent_id = payload.get("patent_id")
    return {"patentsview_id": str(patent_id)} if patent_id else {}


def extract_patent_id(payload: Mapping[str, Any]) -> Optional[str]:
    patent_id = payload.get("patent_id")
    return str(patent_id) if patent_id not in (None, "") else None


PATENTSVIEW_FIELD_RULES: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "patent_id": extract_patent_id,
    "external_ids": extract_external_ids,
    "kind_code": text_rule("patent_kind"),
    "title": text_rule("patent_title"),
    "abstract": text_rule("patent_abstract"),
    "description": text_rule("patent_description"),
    "claims": extract_claims,
    "dates": extract_dates,
    "inventors": extract_inventors,
    "assignees": extract_assignees,
    "classifications": extract_classifications,
    "citations": extract_citations,
}


# ---------------------------------------------------------------------------
# Transformer
# ---------------------------------------------------------------------------


RawInput = Union[RawPatentRecord, Mapping[str, Any], None]


class PatentsViewTransformer:
    """Map PatentsView records onto the unified patent model."""

    source = SOURCE_NAME

    def __init__(
        self,
        field_rules: Optional[Dict[str, Callable[[Mapping[str, Any]], Any]]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.field_rules = field_rules or PATENTSVIEW_FIELD_RULES
        self._clock = clock

    def transform(self, raw: RawInput) -> Patent:
        payload = self._payload(raw)
        values = {name: rule(payload) for name, rule in self.field_rules.items()}
        try:
            return Patent(source=self.source, metadata=self.create_metadata(payload), **values)
        except ModelValidationError as exc:
            raise InvalidInputError(
                f"Invalid patent data for {values.get('patent_id')}: {exc.error_count()} field error(s)"
            ) from exc

    def transform_many(self, raw_records: Any) -> List[Patent]:
        if not isinstance(raw_records, list):
            return []
        patents = []
        for position, raw in enumerate(raw_records):
            try:
                patents.append(self.transform(raw))
            except InvalidInputError as exc:
                LOGGER.warning("Skipping source record %s: %s", position, exc)
        return patents

    def create_metadata(self, payload: Mapping[str, Any]) -> PatentMetadata:
        now = self._clock()
        return PatentMetadata(
            created_at=now,
            updated_at=now,
            version=1,
            source_version={self.source: str(payload.get("patentsview_update_date") or "unknown")},
            change_history=[
                ChangeHistoryEntry(version=1, timestamp=now, source=self.source, fields_changed=["all"])
            ],
        )

    def _payload(self, raw: RawInput) -> Mapping[str, Any]:
        if raw is None:
            raise InvalidInputError("Invalid patent data: record is null")
        if isinstance(raw, RawPatentRecord):
            if raw.source != self.source:
                raise InvalidInputError(
                    f"Cannot transform a {raw.source!r} record with the {self.source} transformer"
                )
            raw = raw.payload
        if not isinstance(raw, Mapping):
            raise InvalidInputError(f"Invalid patent data: expected a mapping, got {type(raw).__name__}")
        return raw

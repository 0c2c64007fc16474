"""Meilisearch REST client for the patent search index."""

from __future__ import annotations

import logging
from datetime import UTC
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.core.config import Settings, get_settings
from app.core.errors import IndexingError, NotFoundError
from app.services.persistence import to_document
from app.services.validation import PatentLike, coerce_date

LOGGER = logging.getLogger(__name__)

PRIMARY_KEY = "patent_id"

SEARCHABLE_ATTRIBUTES = [
    "title",
    "abstract",
    "description",
    "claims.text",
    "inventors.name",
    "assignees.name",
    "classifications.code",
    "classifications.description",
]

FILTERABLE_ATTRIBUTES = [
    "patent_id",
    "kind_code",
    "dates.filing",
    "dates.publication",
    "dates.grant",
    "inventors.name",
    "inventors.location.country",
    "inventors.location.state",
    "assignees.name",
    "assignees.type",
    "assignees.location.country",
    "classifications.system",
    "classifications.code",
]

SORTABLE_ATTRIBUTES = ["dates.filing", "dates.publication", "dates.grant"]

RANKING_RULES = ["words", "typo", "proximity", "attribute", "sort", "exactness"]

SYNONYMS = {
    "ai": ["artificial intelligence", "machine learning", "neural network"],
    "blockchain": ["distributed ledger", "crypto"],
    "iot": ["internet of things", "connected devices"],
    "vr": ["virtual reality"],
    "ar": ["augmented reality"],
}


def epoch_millis(value: Any) -> Optional[int]:
    """Milliseconds since the epoch for a date-like value, ``None`` if it is not one."""

    instant = coerce_date(value)
    if instant is None:
        return None
    return int(instant.replace(tzinfo=UTC).timestamp() * 1000)


def to_search_document(patent: PatentLike) -> Dict[str, Any]:
    document = to_document(patent)
    dates = document.get("dates")
    if isinstance(dates, dict):
        document["dates"] = {name: epoch_millis(value) for name, value in dates.items()}
    return document


class MeilisearchClient:
    """Thin synchronous wrapper around the Meilisearch HTTP API."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings or get_settings()
        self.index_name = self.settings.meilisearch_index
        self._base_url = self.settings.meilisearch_host.rstrip("/")
        self._client = client or httpx.Client(timeout=self.settings.http_timeout_seconds)

    @property
    def _index_path(self) -> str:
        return f"/indexes/{self.index_name}"

    def initialize_index(self) -> Dict[str, Any]:
        status = self.create_index()
        self.configure_index()
        return {"status": status, "index": self.index_name}

    def create_index(self) -> str:
        response = self._request(
            "POST", "/indexes", json={"uid": self.index_name, "primaryKey": PRIMARY_KEY}, check=False
        )
        if _error_code(response) == "index_already_exists":
            return "index_already_exists"
        self._raise_for_status(response)
        return "index_created"

    def configure_index(self) -> Dict[str, Any]:
        return self._request(
            "PATCH",
            f"{self._index_path}/settings",
            json={
                "searchableAttributes": SEARCHABLE_ATTRIBUTES,
                "filterableAttributes": FILTERABLE_ATTRIBUTES,
                "sortableAttributes": SORTABLE_ATTRIBUTES,
                "rankingRules": RANKING_RULES,
                "synonyms": SYNONYMS,
            },
        ).json()

    def add_documents(self, patents: Sequence[PatentLike]) -> Dict[str, Any]:
        documents = [to_search_document(patent) for patent in patents]
        if not documents:
            return {}
        return self._request(
            "POST",
            f"{self._index_path}/documents",
            json=documents,
            params={"primaryKey": PRIMARY_KEY},
        ).json()

    def get_document(self, patent_id: str) -> Dict[str, Any]:
        response = self._request("GET", f"{self._index_path}/documents/{patent_id}", check=False)
        if response.status_code == 404:
            raise NotFoundError(patent_id, where="search index")
        self._raise_for_status(response)
        return response.json()

    def delete_document(self, patent_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"{self._index_path}/documents/{patent_id}").json()

    def search(
        self,
        query: str,
        filter_expression: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
        sort: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"q": query, "limit": limit, "offset": offset}
        if filter_expression:
            body["filter"] = filter_expression
        if sort:
            body["sort"] = list(sort)
        return self._request("POST", f"{self._index_path}/search", json=body).json()

    def get_stats(self) -> Dict[str, Any]:
        return self._request("GET", f"{self._index_path}/stats").json()

    def _request(self, method: str, path: str, check: bool = True, **kwargs: Any) -> httpx.Response:
        headers = {}
        if self.settings.meilisearch_api_key:
            headers["Authorization"] = f"Bearer {self.settings.meilisearch_api_key}"
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.error("Meilisearch %s %s failed: %s", method, path, exc)
            raise IndexingError(f"Meilisearch request failed: {exc}") from exc
        if check:
            self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise IndexingError(
                f"Meilisearch error {response.status_code}: {_error_message(response)}"
            ) from exc


def _error_code(response: httpx.Response) -> Optional[str]:
    if response.is_success:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload.get("code") if isinstance(payload, dict) else None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict):
        return str(payload.get("message") or payload)
    return str(payload)

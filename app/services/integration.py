"""Fetch, transform, validate and load patents from an upstream source."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from app.core.errors import InvalidInputError
from app.schemas.patent import Patent
from app.services.ingestion import PATENTSVIEW_FIELDS, PatentsViewClient, PatentsViewTransformer
from app.services.persistence import BatchResult, PatentUpsertEngine

LOGGER = logging.getLogger(__name__)


class DataIntegrationService:
    """Run the PatentsView ingestion flow end to end."""

    def __init__(
        self,
        client: PatentsViewClient,
        transformer: PatentsViewTransformer,
        engine: PatentUpsertEngine,
    ) -> None:
        self.client = client
        self.transformer = transformer
        self.engine = engine

    def integrate(
        self,
        query: Dict[str, Any],
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        response = self.client.fetch(query, fields or PATENTSVIEW_FIELDS, options)
        LOGGER.info("Fetched %s patents from PatentsView", len(response.records))
        return self._load(self.transformer.transform_many(response.records))

    def integrate_patent_by_id(self, patent_id: str, fields: Optional[Sequence[str]] = None) -> BatchResult:
        """Fetch one patent by id; raises ``NotFoundError`` when PatentsView has no match."""

        record = self.client.get_patent_by_id(patent_id, fields)
        try:
            patent = self.transformer.transform(record)
        except InvalidInputError as exc:
            batch = BatchResult()
            batch.failure_count = batch.total_processed = 1
            batch.errors.append({"patent_id": patent_id, "error": str(exc)})
            return batch
        return self._load([patent])

    def integrate_by_date_range(
        self,
        start_date: str,
        end_date: str,
        fields: Optional[Sequence[str]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> BatchResult:
        response = self.client.get_patents_by_date_range(
            start_date, end_date, fields or PATENTSVIEW_FIELDS, options
        )
        LOGGER.info(
            "Fetched %s patents granted between %s and %s", len(response.records), start_date, end_date
        )
        return self._load(self.transformer.transform_many(response.records))

    def _load(self, patents: List[Patent]) -> BatchResult:
        LOGGER.info("Transformed %s patents to the unified model", len(patents))
        for patent in patents:
            LOGGER.debug(
                "Patent %s completeness score: %s%%",
                patent.patent_id,
                self.engine.validator.completeness_score(patent),
            )
        return self.engine.upsert_batch(patents)

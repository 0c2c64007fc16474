"""Schema exports."""

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
from app.schemas.search import (
	IndexingRequest,
	IndexingStatusRead,
	IntegrationErrorRead,
	IntegrationRequest,
	IntegrationResultRead,
	SearchFilters,
	SearchOptions,
	SearchResponse,
)

__all__ = [
	"Assignee",
	"ChangeHistoryEntry",
	"Citation",
	"Claim",
	"Classification",
	"ClassificationSystem",
	"Inventor",
	"Location",
	"Patent",
	"PatentDates",
	"PatentMetadata",
	"IndexingRequest",
	"IndexingStatusRead",
	"IntegrationErrorRead",
	"IntegrationRequest",
	"IntegrationResultRead",
	"SearchFilters",
	"SearchOptions",
	"SearchResponse",
]

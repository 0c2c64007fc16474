"""Service exports."""

from app.services.indexing import IndexingOrchestrator, IndexingOutcome, IndexingRun, IndexingStatus
from app.services.integration import DataIntegrationService
from app.services.llm import QueryEnhancer
from app.services.persistence import BatchResult, PatentUpsertEngine, UpsertResult
from app.services.search import SearchQuery, SearchQueryBuilder, SemanticSearchService
from app.services.search_engine import MeilisearchClient
from app.services.validation import PatentValidator, Severity, ValidationIssue, ValidationResult

__all__ = [
	"BatchResult",
	"DataIntegrationService",
	"IndexingOrchestrator",
	"IndexingOutcome",
	"IndexingRun",
	"IndexingStatus",
	"MeilisearchClient",
	"PatentUpsertEngine",
	"PatentValidator",
	"QueryEnhancer",
	"SearchQuery",
	"SearchQueryBuilder",
	"SemanticSearchService",
	"Severity",
	"UpsertResult",
	"ValidationIssue",
	"ValidationResult",
]

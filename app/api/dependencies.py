"""Shared API dependencies for FastAPI routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.core.config import get_settings
from app.db.document_store import SqlDocumentStore
from app.db.session import SessionLocal
from app.services.indexing import IndexingOrchestrator
from app.services.ingestion import PatentsViewClient, PatentsViewTransformer
from app.services.integration import DataIntegrationService
from app.services.llm import QueryEnhancer
from app.services.persistence import PatentUpsertEngine
from app.services.search import SemanticSearchService
from app.services.search_engine import MeilisearchClient


@lru_cache()
def get_document_store() -> SqlDocumentStore:
    return SqlDocumentStore(SessionLocal)


@lru_cache()
def get_patentsview_client() -> PatentsViewClient:
    return PatentsViewClient(get_settings())


@lru_cache()
def get_transformer() -> PatentsViewTransformer:
    return PatentsViewTransformer()


@lru_cache()
def get_search_engine() -> MeilisearchClient:
    return MeilisearchClient(get_settings())


@lru_cache()
def get_query_enhancer() -> QueryEnhancer:
    return QueryEnhancer(get_settings())


@lru_cache()
def get_indexing_orchestrator() -> IndexingOrchestrator:
    """Process-wide orchestrator; it owns the single active indexing run."""

    return IndexingOrchestrator.from_settings(
        get_patentsview_client(), get_transformer(), get_search_engine(), get_settings()
    )


def get_upsert_engine(
    store: Annotated[SqlDocumentStore, Depends(get_document_store)],
) -> PatentUpsertEngine:
    return PatentUpsertEngine.from_settings(store, get_settings())


def get_integration_service(
    client: Annotated[PatentsViewClient, Depends(get_patentsview_client)],
    transformer: Annotated[PatentsViewTransformer, Depends(get_transformer)],
    engine: Annotated[PatentUpsertEngine, Depends(get_upsert_engine)],
) -> DataIntegrationService:
    return DataIntegrationService(client, transformer, engine)


def get_search_service(
    search_engine: Annotated[MeilisearchClient, Depends(get_search_engine)],
    enhancer: Annotated[QueryEnhancer, Depends(get_query_enhancer)],
) -> SemanticSearchService:
    return SemanticSearchService.from_settings(search_engine, enhancer, get_settings())


UpsertEngine = Annotated[PatentUpsertEngine, Depends(get_upsert_engine)]
IntegrationService = Annotated[DataIntegrationService, Depends(get_integration_service)]
SearchService = Annotated[SemanticSearchService, Depends(get_search_service)]
Orchestrator = Annotated[IndexingOrchestrator, Depends(get_indexing_orchestrator)]

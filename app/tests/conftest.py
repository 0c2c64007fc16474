from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.document_store import SqlDocumentStore  # noqa: E402
from app.db.session import engine_options  # noqa: E402
from app.services.ingestion import PatentsViewTransformer  # noqa: E402
from app.services.persistence import PatentUpsertEngine  # noqa: E402

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


class TickingClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def raw_patent():
    return {
        "patent_id": "10000001",
        "patent_kind": "B2",
        "patent_title": "Cyclic peptide display library",
        "patent_abstract": "Methods for selecting cyclic peptides by mRNA display.",
        "patent_description": "A detailed description of the display workflow.",
        "patent_date": "2021-06-15",
        "application_date": "2019-02-01",
        "patent_earliest_application_date": "2018-02-01",
        "patentsview_update_date": "2024-01-01",
        "inventors": [
            {
                "inventor_id": "inv-1",
                "inventor_name_first": "Ada",
                "inventor_name_last": "Lovelace",
                "inventor_country": "US",
                "inventor_state": "MA",
                "inventor_city": "Boston",
            }
        ],
        "assignees": [
            {
                "assignee_id": "asg-1",
                "assignee_organization": "Display Bio Inc.",
                "assignee_type": "2",
                "assignee_country": "US",
                "assignee_state": "MA",
                "assignee_city": "Cambridge",
            }
        ],
        "claims": [
            {"claim_text": "A method of selecting peptides."},
            {"claim_text": "The method of claim 1, wherein the peptide is cyclic.", "dependent_claim_id": "claim-1"},
        ],
        "cited_patents": [{"cited_patent_id": "9000000", "citation_category": "cited by examiner"}],
        "cpc_subsections": [{"cpc_subsection_id": "C07K", "cpc_subsection_title": "Peptides"}],
        "uspc_mainclasses": [{"uspc_mainclass_id": "435", "uspc_mainclass_title": "Chemistry: molecular biology"}],
        "ipcr_subsections": [{"ipcr_subsection_id": "C12N", "ipcr_subsection_title": "Microorganisms or enzymes"}],
    }


@pytest.fixture
def transformer():
    return PatentsViewTransformer(clock=lambda: FIXED_NOW)


@pytest.fixture
def session_factory():
    url = "sqlite://"
    engine = create_engine(url, **engine_options(url))
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlDocumentStore(session_factory)


@pytest.fixture
def upsert_engine(store):
    return PatentUpsertEngine(store, clock=TickingClock())

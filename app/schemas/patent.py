"""Unified patent model shared by every source transformer."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ClassificationSystem(str, Enum):
    CPC = "CPC"
    USPC = "USPC"
    IPC = "IPC"


class Claim(BaseModel):
    number: int = Field(..., description="1-based claim number, unique within the patent.")
    text: str = ""
    dependent_on: Optional[int] = Field(
        None, description="Number of the (strictly smaller) claim this claim depends on."
    )


class PatentDates(BaseModel):
    filing: Optional[date] = None
    publication: Optional[date] = None
    grant: Optional[date] = None
    priority: Optional[date] = None


class Location(BaseModel):
    country: str = ""
    state: Optional[str] = None
    city: Optional[str] = None


class Inventor(BaseModel):
    name: str = ""
    location: Optional[Location] = None
    normalized_id: Optional[str] = Field(None, description="Source disambiguation id.")


class Assignee(BaseModel):
    name: str = ""
    type: Optional[str] = Field(None, description="Assignee category, e.g. U.S. Individual.")
    location: Optional[Location] = None
    normalized_id: Optional[str] = None


class Classification(BaseModel):
    system: ClassificationSystem
    code: str = ""
    description: Optional[str] = None
    hierarchy: Optional[List[str]] = None


class Citation(BaseModel):
    patent_id: str = ""
    citation_type: Optional[str] = None


class ChangeHistoryEntry(BaseModel):
    version: int
    timestamp: datetime
    source: str
    fields_changed: List[str]


class PatentMetadata(BaseModel):
    created_at: datetime
    updated_at: datetime
    version: int = 1
    source_version: Optional[Dict[str, str]] = Field(
        None, description="Upstream dataset version keyed by source name."
    )
    change_history: List[ChangeHistoryEntry] = Field(default_factory=list)


class Patent(BaseModel):
    """Source-agnostic patent record keyed by ``patent_id``."""

    patent_id: Optional[str] = Field(None, description="Globally unique patent identifier.")
    external_ids: Dict[str, str] = Field(
        default_factory=dict, description="Source-native ids keyed as '<source>_id'."
    )
    source: str = Field(..., description="Originating system tag (patentsview, epo, wipo).")
    kind_code: str = ""
    title: str = ""
    abstract: str = ""
    description: str = ""
    claims: List[Claim] = Field(default_factory=list)
    dates: Optional[PatentDates] = None
    inventors: List[Inventor] = Field(default_factory=list)
    assignees: List[Assignee] = Field(default_factory=list)
    classifications: List[Classification] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)
    metadata: PatentMetadata

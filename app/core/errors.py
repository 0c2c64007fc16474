"""Exception taxonomy shared by the integration pipeline."""

from __future__ import annotations

from typing import List, Optional


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class InvalidInputError(PipelineError):
    """Raw input handed to a transformer is missing or malformed."""


class ValidationError(PipelineError):
    """A patent carries error-severity validation findings."""

    def __init__(self, patent_id: Optional[str], messages: List[str]) -> None:
        self.patent_id = patent_id
        self.messages = list(messages)
        super().__init__(f"Validation failed: {', '.join(self.messages)}")


class PersistenceError(PipelineError):
    """The document store rejected a read, write or commit."""


class NotFoundError(PipelineError):
    """A patent expected to exist could not be found."""

    def __init__(self, patent_id: str, where: str = "store") -> None:
        self.patent_id = patent_id
        super().__init__(f"Patent {patent_id} not found in {where}")


class IndexingError(PipelineError):
    """The search engine rejected a read or write."""


class SourceApiError(PipelineError):
    """The upstream bibliographic API failed after its retry."""

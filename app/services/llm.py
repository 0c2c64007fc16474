"""LLM-backed rewriting of free-text patent search queries."""

from __future__ import annotations

import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from app.core.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)


ENHANCEMENT_PROMPT = (
    "You rewrite patent search queries for a keyword search engine. "
    "Expand abbreviations, add close technical synonyms and drop filler words. "
    "Reply with the rewritten query only, on a single line."
)


class QueryEnhancer:
    """Wrapper around the downstream LLM provider used for query rewriting."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        self.settings = settings or get_settings()
        self._client: Optional[OpenAI] = client
        if self._client is None and self.settings.openai_api_key:
            self._client = OpenAI(api_key=self.settings.openai_api_key)

    @property
    def is_configured(self) -> bool:
        """Return True if enhancement is enabled and an OpenAI client is available."""

        return self.settings.query_enhancement_enabled and self._client is not None

    def enhance(self, query: str) -> str:
        """Return the rewritten query, or the original text if enhancement is unavailable."""

        if not self.is_configured or not query.strip():
            return query
        try:
            enhanced = self._complete(query)
        except (OpenAIError, RuntimeError) as exc:
            LOGGER.warning("Query enhancement failed, using original query: %s", exc)
            return query
        return enhanced.strip() or query

    def _complete(self, query: str) -> str:
        if hasattr(self._client, "responses"):
            response = self._client.responses.create(  # type: ignore[union-attr]
                model=self.settings.openai_model,
                temperature=0.0,
                instructions=ENHANCEMENT_PROMPT,
                input=query,
            )
            return getattr(response, "output_text", "") or ""
        if hasattr(getattr(self._client, "chat", None), "completions"):
            completion = self._client.chat.completions.create(  # type: ignore[union-attr]
                model=self.settings.openai_model,
                temperature=0.0,
                messages=[
                    {"role": "system", "content": ENHANCEMENT_PROMPT},
                    {"role": "user", "content": query},
                ],
            )
            return completion.choices[0].message.content or ""
        raise RuntimeError(
            "OpenAI client does not expose Responses or Chat Completions APIs; upgrade the SDK."
        )

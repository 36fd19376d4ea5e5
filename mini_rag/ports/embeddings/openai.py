"""OpenAI embedding client.

This adapter is optional and requires `openai` package installed.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ...core.errors import EmbeddingUnavailable

logger = logging.getLogger(__name__)


class OpenAIEmbeddingClient:
    """Embeds text with the OpenAI embeddings endpoint."""

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        try:
            import openai  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "openai is required for OpenAIEmbeddingClient. "
                "Install with `pip install openai`."
            ) from exc

        self._error_type = openai.OpenAIError
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.dimensions = dimensions

    def embed(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several texts in one request, keeping input order."""
        if not texts:
            return []

        options: dict[str, Any] = {"model": self.model, "input": list(texts)}
        if self.dimensions is not None:
            options["dimensions"] = self.dimensions

        try:
            response = self._client.embeddings.create(**options)
        except self._error_type as exc:
            logger.debug("embedding request failed", exc_info=True)
            raise EmbeddingUnavailable(f"OpenAI embeddings failed: {exc}") from exc

        rows = sorted(response.data, key=lambda item: item.index)
        return [[float(value) for value in row.embedding] for row in rows]

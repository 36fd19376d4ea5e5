"""Free-text retrieval against a vector collection."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..cancellation import CancelToken
from ..contracts import EmbeddingClient
from ..vectors.vector_collection import VectorCollection
from ..vectors.vector_types import RetrievalRequest, SearchHit
from .indexer import embed_text


class Retriever:
    """Embeds a query and searches the collection with it.

    Holds configuration only, so one instance can serve many threads.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        collection: VectorCollection,
        *,
        limit: int = 4,
        score_threshold: Optional[float] = None,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self.embedder = embedder
        self.collection = collection
        self.limit = limit
        self.score_threshold = score_threshold

    def retrieve(
        self,
        query: str,
        *,
        limit: Optional[int] = None,
        score_threshold: Optional[float] = None,
        filters: Optional[Mapping[str, Any]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> list[SearchHit]:
        if cancel is not None:
            cancel.raise_if_cancelled("retrieval")
        vector = embed_text(self.embedder, query)
        if cancel is not None:
            cancel.raise_if_cancelled("retrieval")

        request = RetrievalRequest(
            query_vector=vector,
            limit=limit if limit is not None else self.limit,
            score_threshold=(
                score_threshold if score_threshold is not None else self.score_threshold
            ),
            filters=filters,
        )
        return self.collection.search(request)


def retrieve(
    query: str,
    embedder: EmbeddingClient,
    collection: VectorCollection,
    limit: int,
    score_threshold: Optional[float] = None,
) -> list[SearchHit]:
    """Functional shortcut for `Retriever(...).retrieve(query)`."""

    return Retriever(embedder, collection, limit=limit).retrieve(
        query, score_threshold=score_threshold
    )

"""Shared vector entities used by vector ports, collections and the RAG flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from .vector_metrics import VectorMetric, VectorMetricInput, normalize_vector_metric


@dataclass(frozen=True)
class VectorRecord:
    """Represents one vector row as a store adapter sees it."""

    id: int
    vector: Sequence[float]
    payload: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class VectorSearchResult:
    """Represents one scored hit returned by a store adapter."""

    id: int
    score: float
    payload: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class CollectionInfo:
    """Shape of a collection as reported by the store."""

    name: str
    dimension: int
    metric: VectorMetric


@dataclass(frozen=True)
class CollectionSchema:
    """Immutable description of one collection.

    Changing any of these values for an existing collection requires dropping
    and recreating it.
    """

    name: str
    dimension: int
    metric: VectorMetricInput = VectorMetric.COSINE
    primary_key_field: str = "id"
    vector_field: str = "vector"
    text_field: str = "text"
    max_text_length: int = 512
    dynamic_fields: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("collection name must not be empty")
        if self.dimension <= 0:
            raise ValueError("dimension must be > 0")
        if self.max_text_length <= 0:
            raise ValueError("max_text_length must be > 0")
        names = [self.primary_key_field, self.vector_field, self.text_field]
        if not all(names):
            raise ValueError("field names must not be empty")
        if len(set(names)) != len(names):
            raise ValueError(f"field names must be distinct: {names}")
        object.__setattr__(self, "metric", normalize_vector_metric(self.metric))


@dataclass(frozen=True)
class Document:
    """Caller-owned unit of knowledge handed to the indexer."""

    id: int
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Record:
    """Persisted unit of a collection: id, embedding, text and dynamic fields."""

    id: int
    vector: Sequence[float]
    text: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchHit:
    """One ranked retrieval result with its provenance."""

    id: int
    score: float
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetrievalRequest:
    """Similarity search parameters for `VectorCollection.search`."""

    query_vector: Sequence[float]
    limit: int
    score_threshold: Optional[float] = None
    filters: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("limit must be > 0")

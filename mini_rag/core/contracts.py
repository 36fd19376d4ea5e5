"""Core port contracts used by adapters, collections and the RAG flow."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol, Sequence

from .vectors.vector_metrics import VectorMetric, VectorMetricInput
from .vectors.vector_policies import VectorIdPolicy
from .vectors.vector_types import CollectionInfo, VectorRecord, VectorSearchResult


class CollectionExistsError(ValueError):
    """Raised by `create_collection` when the name is taken and overwrite is off."""


class VectorStorePort(Protocol):
    """Vector database behavior required by `VectorCollection`.

    Scores returned by `query` are higher-is-better: cosine similarity, inner
    product, or negative Euclidean distance for L2.
    """

    supports_filters: bool
    id_policy: VectorIdPolicy

    def create_collection(
        self,
        name: str,
        dimension: int,
        metric: VectorMetricInput = VectorMetric.COSINE,
        *,
        overwrite: bool = False,
    ) -> None: ...

    def describe_collection(self, name: str) -> Optional[CollectionInfo]: ...

    def has_collection(self, name: str) -> bool: ...

    def drop_collection(self, name: str) -> None: ...

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None: ...

    def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> List[VectorSearchResult]: ...

    def fetch(
        self, collection: str, ids: Optional[Sequence[int]] = None
    ) -> List[VectorRecord]: ...

    def delete(self, collection: str, ids: Sequence[int]) -> int: ...

    def count(self, collection: str) -> int: ...


class EmbeddingClient(Protocol):
    """Turns text into a fixed-length vector."""

    def embed(self, text: str) -> List[float]: ...


class Generator(Protocol):
    """Produces text for a fully rendered prompt."""

    def generate(self, prompt: str) -> str: ...

"""In-memory vector store adapter for testing and local development."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ...core.contracts import CollectionExistsError
from ...core.errors import CollectionNotFound, DimensionMismatch
from ...core.vectors.vector_metrics import (
    VectorMetric,
    VectorMetricInput,
    normalize_vector_metric,
)
from ...core.vectors.vector_policies import VectorIdPolicy
from ...core.vectors.vector_types import CollectionInfo, VectorRecord, VectorSearchResult

SUPPORTED_METRICS = {
    VectorMetric.COSINE,
    VectorMetric.IP,
    VectorMetric.L2,
}


@dataclass
class _CollectionState:
    dimension: int
    metric: VectorMetric
    records: dict[int, VectorRecord] = field(default_factory=dict)


class InMemoryVectorStore:
    """Simple in-memory implementation of vector database operations.

    All mutations and reads take one store-wide lock, so every call is atomic
    with respect to the others.
    """

    supports_filters = True
    id_policy = VectorIdPolicy.INT64

    def __init__(self) -> None:
        self._collections: dict[str, _CollectionState] = {}
        self._lock = threading.RLock()

    def create_collection(
        self,
        name: str,
        dimension: int,
        metric: VectorMetricInput = VectorMetric.COSINE,
        *,
        overwrite: bool = False,
    ) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        normalized_metric = normalize_vector_metric(metric, supported=SUPPORTED_METRICS)
        with self._lock:
            if name in self._collections and not overwrite:
                raise CollectionExistsError(f"Collection already exists: {name}")
            self._collections[name] = _CollectionState(
                dimension=dimension,
                metric=normalized_metric,
            )

    def describe_collection(self, name: str) -> Optional[CollectionInfo]:
        with self._lock:
            state = self._collections.get(name)
            if state is None:
                return None
            return CollectionInfo(name=name, dimension=state.dimension, metric=state.metric)

    def has_collection(self, name: str) -> bool:
        with self._lock:
            return name in self._collections

    def drop_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        with self._lock:
            state = self._get_collection(collection)
            staged = {
                record.id: VectorRecord(
                    id=record.id,
                    vector=self._normalize_vector(record.vector, state.dimension),
                    payload=dict(record.payload) if record.payload is not None else None,
                )
                for record in records
            }
            state.records.update(staged)

    def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[VectorSearchResult]:
        if top_k <= 0:
            return []

        with self._lock:
            state = self._get_collection(collection)
            snapshot = list(state.records.values())
        query_vector = self._normalize_vector(vector, state.dimension)

        scored: list[VectorSearchResult] = []
        for record in snapshot:
            if not self._match_filters(record.payload, filters):
                continue
            score = self._similarity(state.metric, query_vector, record.vector)
            scored.append(
                VectorSearchResult(id=record.id, score=score, payload=record.payload)
            )

        scored.sort(key=lambda item: (-item.score, item.id))
        return scored[:top_k]

    def fetch(
        self, collection: str, ids: Optional[Sequence[int]] = None
    ) -> list[VectorRecord]:
        with self._lock:
            state = self._get_collection(collection)
            if ids is None:
                return list(state.records.values())
            return [state.records[item_id] for item_id in ids if item_id in state.records]

    def delete(self, collection: str, ids: Sequence[int]) -> int:
        with self._lock:
            state = self._get_collection(collection)
            deleted = 0
            for item_id in ids:
                if state.records.pop(item_id, None) is not None:
                    deleted += 1
            return deleted

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._get_collection(collection).records)

    def _get_collection(self, name: str) -> _CollectionState:
        if name not in self._collections:
            raise CollectionNotFound(f"Collection does not exist: {name}")
        return self._collections[name]

    @staticmethod
    def _normalize_vector(vector: Sequence[float], dimension: int) -> tuple[float, ...]:
        values = tuple(float(v) for v in vector)
        if len(values) != dimension:
            raise DimensionMismatch(dimension, len(values))
        return values

    @staticmethod
    def _match_filters(
        payload: Mapping[str, Any] | None,
        filters: Optional[Mapping[str, Any]],
    ) -> bool:
        if not filters:
            return True
        if payload is None:
            return False
        return all(payload.get(key) == value for key, value in filters.items())

    @staticmethod
    def _similarity(
        metric: VectorMetric,
        left: Sequence[float],
        right: Sequence[float],
    ) -> float:
        if metric == VectorMetric.IP:
            return sum(a * b for a, b in zip(left, right))
        if metric == VectorMetric.L2:
            return -math.sqrt(sum((a - b) ** 2 for a, b in zip(left, right)))

        # cosine (default)
        dot = sum(a * b for a, b in zip(left, right))
        norm_left = math.sqrt(sum(a * a for a in left))
        norm_right = math.sqrt(sum(b * b for b in right))
        if norm_left == 0.0 or norm_right == 0.0:
            return 0.0
        return dot / (norm_left * norm_right)

"""Faiss adapter implementing vector store operations.

This adapter is optional and requires `faiss-cpu` and `numpy` packages installed.
Collections live in process memory. Faiss reserves id -1 for empty result
slots, so primary keys map to internal ids allocated from 0 upward.
"""

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
    index: Any
    ext_to_int: dict[int, int] = field(default_factory=dict)
    int_to_ext: dict[int, int] = field(default_factory=dict)
    records: dict[int, VectorRecord] = field(default_factory=dict)
    next_internal_id: int = 0


class FaissVectorStore:
    """Vector store adapter for Facebook AI Similarity Search (Faiss)."""

    supports_filters = False
    id_policy = VectorIdPolicy.INT64

    def __init__(self) -> None:
        try:
            import faiss  # type: ignore[import-not-found]
            import numpy as np  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "faiss-cpu and numpy are required for FaissVectorStore. "
                "Install with `pip install faiss-cpu numpy`."
            ) from exc

        self._faiss = faiss
        self._np = np
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

        if normalized_metric in {VectorMetric.COSINE, VectorMetric.IP}:
            base_index = self._faiss.IndexFlatIP(dimension)
        else:
            base_index = self._faiss.IndexFlatL2(dimension)

        with self._lock:
            if name in self._collections and not overwrite:
                raise CollectionExistsError(f"Collection already exists: {name}")
            self._collections[name] = _CollectionState(
                dimension=dimension,
                metric=normalized_metric,
                index=self._faiss.IndexIDMap2(base_index),
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
        if not records:
            return

        with self._lock:
            state = self._get_collection(collection)

            # last occurrence of an id wins, as with sequential upserts
            latest: dict[int, VectorRecord] = {}
            for record in records:
                latest[record.id] = VectorRecord(
                    id=record.id,
                    vector=self._normalize_vector(record.vector, state.dimension),
                    payload=dict(record.payload) if record.payload is not None else None,
                )

            vector_array = self._np.array(
                [record.vector for record in latest.values()],
                dtype=self._np.float32,
            )
            if state.metric == VectorMetric.COSINE:
                self._faiss.normalize_L2(vector_array)
            existing = [
                state.ext_to_int[item_id] for item_id in latest if item_id in state.ext_to_int
            ]
            internal_ids: list[int] = []
            for item_id in latest:
                internal_id = state.ext_to_int.get(item_id)
                if internal_id is None:
                    internal_id = state.next_internal_id
                    state.next_internal_id += 1
                internal_ids.append(internal_id)

            if existing:
                state.index.remove_ids(self._np.array(existing, dtype=self._np.int64))
            state.index.add_with_ids(
                vector_array, self._np.array(internal_ids, dtype=self._np.int64)
            )
            for item_id, internal_id in zip(latest, internal_ids):
                state.ext_to_int[item_id] = internal_id
                state.int_to_ext[internal_id] = item_id
            state.records.update(latest)

    def query(
        self,
        collection: str,
        vector: Sequence[float],
        *,
        top_k: int = 10,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[VectorSearchResult]:
        if filters:
            raise NotImplementedError(
                "FaissVectorStore does not support payload filters in query()."
            )
        if top_k <= 0:
            return []

        with self._lock:
            state = self._get_collection(collection)
            if not state.records:
                return []

            query_vector = self._np.array(
                [self._normalize_vector(vector, state.dimension)],
                dtype=self._np.float32,
            )
            if state.metric == VectorMetric.COSINE:
                self._faiss.normalize_L2(query_vector)

            distances, ids = state.index.search(query_vector, min(top_k, len(state.records)))

            results: list[VectorSearchResult] = []
            for distance, internal_id in zip(distances[0], ids[0]):
                item_id = state.int_to_ext.get(int(internal_id))
                if item_id is None:
                    continue
                record = state.records[item_id]
                results.append(
                    VectorSearchResult(
                        id=record.id,
                        score=self._distance_to_score(state.metric, float(distance)),
                        payload=record.payload,
                    )
                )
            return results

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
            internal_ids: list[int] = []
            for item_id in dict.fromkeys(ids):
                internal_id = state.ext_to_int.pop(item_id, None)
                if internal_id is None:
                    continue
                state.int_to_ext.pop(internal_id, None)
                state.records.pop(item_id, None)
                internal_ids.append(internal_id)
            if internal_ids:
                state.index.remove_ids(self._np.array(internal_ids, dtype=self._np.int64))
            return len(internal_ids)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._get_collection(collection).records)

    def _get_collection(self, name: str) -> _CollectionState:
        if name not in self._collections:
            raise CollectionNotFound(f"Collection does not exist: {name}")
        return self._collections[name]

    @staticmethod
    def _normalize_vector(vector: Sequence[float], dimension: int) -> list[float]:
        values = [float(value) for value in vector]
        if len(values) != dimension:
            raise DimensionMismatch(dimension, len(values))
        return values

    @staticmethod
    def _distance_to_score(metric: VectorMetric, distance: float) -> float:
        # IndexFlatL2 reports squared distances
        if metric == VectorMetric.L2:
            return -math.sqrt(max(distance, 0.0))
        return distance

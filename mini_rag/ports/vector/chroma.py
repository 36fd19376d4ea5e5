"""Chroma adapter implementing vector store operations.

This adapter is optional and requires `chromadb` package installed.
Chroma keys rows by string and only stores scalar metadata, so pair it with
`JsonVectorPayloadCodec` when documents carry nested metadata.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar

from ...core.contracts import CollectionExistsError
from ...core.errors import CollectionNotFound, StoreUnavailable
from ...core.vectors.vector_metrics import (
    VectorMetric,
    VectorMetricInput,
    normalize_vector_metric,
)
from ...core.vectors.vector_policies import VectorIdPolicy
from ...core.vectors.vector_types import CollectionInfo, VectorRecord, VectorSearchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SPACES = {
    VectorMetric.COSINE: "cosine",
    VectorMetric.IP: "ip",
    VectorMetric.L2: "l2",
}


class ChromaVectorStore:
    """Vector store adapter for ChromaDB."""

    supports_filters = True
    id_policy = VectorIdPolicy.INT64

    def __init__(
        self,
        *,
        path: str = "./.chroma",
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        try:
            import chromadb  # type: ignore[import-not-found]
            import httpx  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "chromadb is required for ChromaVectorStore. "
                "Install with `pip install chromadb`."
            ) from exc

        self._transport_errors: tuple[type[BaseException], ...] = (
            httpx.TransportError,
            ConnectionError,
            TimeoutError,
        )
        self._collections: dict[str, Any] = {}
        self._lock = threading.Lock()

        if host:
            self._client = self._call(chromadb.HttpClient, host=host, port=port or 8000)
        elif path == ":memory:":
            self._client = chromadb.EphemeralClient()
        else:
            self._client = chromadb.PersistentClient(path=path)

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
        normalized_metric = normalize_vector_metric(metric)

        exists = self.has_collection(name)
        if exists and not overwrite:
            raise CollectionExistsError(f"Collection already exists: {name}")
        if exists:
            self.drop_collection(name)

        try:
            collection = self._call(
                self._client.create_collection,
                name=name,
                metadata={
                    "hnsw:space": _SPACES[normalized_metric],
                    "dimension": dimension,
                },
            )
        except StoreUnavailable:
            raise
        except Exception as exc:
            # lost a create race to another client
            if self.has_collection(name):
                raise CollectionExistsError(f"Collection already exists: {name}") from exc
            raise
        with self._lock:
            self._collections[name] = collection

    def describe_collection(self, name: str) -> Optional[CollectionInfo]:
        if not self.has_collection(name):
            return None
        metadata = getattr(self._get_collection(name), "metadata", None) or {}
        dimension = metadata.get("dimension")
        if not isinstance(dimension, int) or dimension <= 0:
            raise ValueError(f"Chroma collection {name!r} does not record its dimension")
        return CollectionInfo(
            name=name,
            dimension=dimension,
            metric=self._space_to_metric(metadata.get("hnsw:space", "l2")),
        )

    def has_collection(self, name: str) -> bool:
        for item in self._call(self._client.list_collections):
            if isinstance(item, str) and item == name:
                return True
            if getattr(item, "name", None) == name:
                return True
        return False

    def drop_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)
        if self.has_collection(name):
            self._call(self._client.delete_collection, name=name)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        col = self._get_collection(collection)
        if not records:
            return

        latest = {record.id: record for record in records}
        with_metadata = [record for record in latest.values() if record.payload]
        without_metadata = [record for record in latest.values() if not record.payload]

        if with_metadata:
            self._call(
                col.upsert,
                ids=[str(record.id) for record in with_metadata],
                embeddings=[
                    [float(value) for value in record.vector]
                    for record in with_metadata
                ],
                metadatas=[dict(record.payload or {}) for record in with_metadata],
            )
        if without_metadata:
            self._call(
                col.upsert,
                ids=[str(record.id) for record in without_metadata],
                embeddings=[
                    [float(value) for value in record.vector]
                    for record in without_metadata
                ],
            )

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
        col = self._get_collection(collection)
        total = self._call(col.count)
        if total == 0:
            return []

        result = self._call(
            col.query,
            query_embeddings=[[float(value) for value in vector]],
            n_results=min(top_k, total),
            where=self._build_where(filters),
            include=["metadatas", "distances"],
        )

        ids = self._first_batch(result.get("ids"))
        distances = self._first_batch(result.get("distances"))
        metadatas = self._first_batch(result.get("metadatas"))

        metric = self._space_to_metric((col.metadata or {}).get("hnsw:space", "l2"))
        return [
            VectorSearchResult(
                id=int(item_id),
                score=self._distance_to_score(metric, float(distances[idx])),
                payload=metadatas[idx] if idx < len(metadatas) else None,
            )
            for idx, item_id in enumerate(ids)
        ]

    def fetch(
        self, collection: str, ids: Optional[Sequence[int]] = None
    ) -> list[VectorRecord]:
        col = self._get_collection(collection)
        if ids is not None and not ids:
            return []
        rows = self._call(
            col.get,
            ids=[str(item_id) for item_id in ids] if ids is not None else None,
            include=["embeddings", "metadatas"],
        )

        row_ids = self._as_list(rows.get("ids"))
        vectors = self._as_list(rows.get("embeddings"))
        metadatas = self._as_list(rows.get("metadatas"))

        by_id: dict[int, VectorRecord] = {}
        for idx, item_id in enumerate(row_ids):
            vector = vectors[idx] if idx < len(vectors) else []
            by_id[int(item_id)] = VectorRecord(
                id=int(item_id),
                vector=[float(value) for value in vector],
                payload=metadatas[idx] if idx < len(metadatas) else None,
            )

        if ids is None:
            return list(by_id.values())
        return [by_id[item_id] for item_id in ids if item_id in by_id]

    def delete(self, collection: str, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        col = self._get_collection(collection)
        rows = self._call(col.get, ids=[str(item_id) for item_id in dict.fromkeys(ids)])
        existing_ids = self._as_list(rows.get("ids"))
        if not existing_ids:
            return 0

        self._call(col.delete, ids=existing_ids)
        return len(existing_ids)

    def count(self, collection: str) -> int:
        return int(self._call(self._get_collection(collection).count))

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except self._transport_errors as exc:
            logger.debug("chroma call %s failed", getattr(fn, "__name__", fn), exc_info=True)
            raise StoreUnavailable(f"Chroma is unavailable: {exc}") from exc

    def _get_collection(self, name: str) -> Any:
        with self._lock:
            if name in self._collections:
                return self._collections[name]

        if not self.has_collection(name):
            raise CollectionNotFound(f"Collection does not exist: {name}")

        collection = self._call(self._client.get_collection, name=name)
        with self._lock:
            self._collections[name] = collection
        return collection

    @staticmethod
    def _build_where(filters: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
        if not filters:
            return None
        if len(filters) == 1:
            return dict(filters)
        return {"$and": [{key: value} for key, value in filters.items()]}

    @staticmethod
    def _space_to_metric(space: Any) -> VectorMetric:
        for metric, name in _SPACES.items():
            if name == str(space):
                return metric
        raise ValueError(f"Unsupported Chroma space: {space}")

    @staticmethod
    def _distance_to_score(metric: VectorMetric, distance: float) -> float:
        # cosine and ip spaces report 1 - similarity, l2 the squared distance
        if metric == VectorMetric.L2:
            return -math.sqrt(max(distance, 0.0))
        return 1.0 - distance

    @staticmethod
    def _as_list(values: Any) -> list[Any]:
        if values is None:
            return []
        if hasattr(values, "tolist"):
            values = values.tolist()
        return list(values)

    @classmethod
    def _first_batch(cls, values: Any) -> list[Any]:
        outer = cls._as_list(values)
        if not outer:
            return []

        first = outer[0]
        if hasattr(first, "tolist"):
            first = first.tolist()
        if isinstance(first, (list, tuple)):
            return list(first)
        return outer

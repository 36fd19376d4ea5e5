"""Qdrant adapter implementing vector store operations.

This adapter is optional and requires `qdrant-client` package installed.
Qdrant only accepts unsigned integer point ids, so collections backed by it
reject negative primary keys.
"""

from __future__ import annotations

import logging
import math
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


class QdrantVectorStore:
    """Vector store adapter for Qdrant."""

    supports_filters = True
    id_policy = VectorIdPolicy.UINT64

    def __init__(
        self,
        *,
        location: str = ":memory:",
        url: str | None = None,
        api_key: str | None = None,
        prefer_grpc: bool = False,
        timeout: float | None = None,
    ) -> None:
        try:
            from qdrant_client import QdrantClient  # type: ignore[import-not-found]
            from qdrant_client.http import models  # type: ignore[import-not-found]
            from qdrant_client.http.exceptions import (  # type: ignore[import-not-found]
                ResponseHandlingException,
                UnexpectedResponse,
            )
        except ImportError as exc:  # pragma: no cover - env dependent
            raise ImportError(
                "qdrant-client is required for QdrantVectorStore. "
                "Install with `pip install qdrant-client`."
            ) from exc

        self._models = models
        self._transport_errors: tuple[type[BaseException], ...] = (
            ResponseHandlingException,
            ConnectionError,
            TimeoutError,
        )
        self._unexpected_response = UnexpectedResponse
        self._metrics: dict[str, VectorMetric] = {}

        if url:
            self._client = QdrantClient(
                url=url,
                api_key=api_key,
                prefer_grpc=prefer_grpc,
                timeout=math.ceil(timeout) if timeout is not None else None,
            )
        elif location == ":memory:":
            self._client = QdrantClient(":memory:")
        else:
            self._client = QdrantClient(path=location)

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
            self._call(self._client.delete_collection, collection_name=name)

        try:
            self._call(
                self._client.create_collection,
                collection_name=name,
                vectors_config=self._models.VectorParams(
                    size=dimension,
                    distance=self._metric_to_distance(normalized_metric),
                ),
            )
        except self._unexpected_response as exc:
            # another client created it between the check and the create
            if getattr(exc, "status_code", None) == 409:
                raise CollectionExistsError(f"Collection already exists: {name}") from exc
            raise
        self._metrics[name] = normalized_metric

    def describe_collection(self, name: str) -> Optional[CollectionInfo]:
        if not self.has_collection(name):
            return None
        info = self._call(self._client.get_collection, collection_name=name)
        params = info.config.params.vectors
        if isinstance(params, dict):
            params = next(iter(params.values()))
        metric = self._distance_to_metric(params.distance)
        self._metrics[name] = metric
        return CollectionInfo(name=name, dimension=int(params.size), metric=metric)

    def has_collection(self, name: str) -> bool:
        return bool(self._call(self._client.collection_exists, collection_name=name))

    def drop_collection(self, name: str) -> None:
        self._metrics.pop(name, None)
        if self.has_collection(name):
            self._call(self._client.delete_collection, collection_name=name)

    def upsert(self, collection: str, records: Sequence[VectorRecord]) -> None:
        self._ensure_collection(collection)
        points = [
            self._models.PointStruct(
                id=record.id,
                vector=[float(value) for value in record.vector],
                payload=dict(record.payload or {}),
            )
            for record in records
        ]
        if points:
            self._call(
                self._client.upsert,
                collection_name=collection,
                points=points,
                wait=True,
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
        metric = self._metrics.get(collection) or self._require_info(collection).metric

        response = self._call(
            self._client.query_points,
            collection_name=collection,
            query=[float(value) for value in vector],
            query_filter=self._build_filter(filters),
            limit=top_k,
            with_payload=True,
        )
        rows = getattr(response, "points", response)

        return [
            VectorSearchResult(
                id=int(row.id),
                score=self._raw_score_to_score(metric, float(row.score)),
                payload=row.payload,
            )
            for row in rows
        ]

    def fetch(
        self, collection: str, ids: Optional[Sequence[int]] = None
    ) -> list[VectorRecord]:
        self._ensure_collection(collection)
        if ids is None:
            return [self._point_to_record(point) for point in self._scroll_all_points(collection)]
        if not ids:
            return []

        rows = self._call(
            self._client.retrieve,
            collection_name=collection,
            ids=list(ids),
            with_vectors=True,
            with_payload=True,
        )
        by_id = {int(row.id): row for row in rows}
        return [
            self._point_to_record(by_id[item_id])
            for item_id in ids
            if item_id in by_id
        ]

    def delete(self, collection: str, ids: Sequence[int]) -> int:
        self._ensure_collection(collection)
        if not ids:
            return 0

        existing = self._call(
            self._client.retrieve,
            collection_name=collection,
            ids=list(dict.fromkeys(ids)),
            with_vectors=False,
            with_payload=False,
        )
        existing_ids = [int(row.id) for row in existing]
        if not existing_ids:
            return 0

        self._call(
            self._client.delete,
            collection_name=collection,
            points_selector=self._models.PointIdsList(points=existing_ids),
            wait=True,
        )
        return len(existing_ids)

    def count(self, collection: str) -> int:
        self._ensure_collection(collection)
        result = self._call(self._client.count, collection_name=collection, exact=True)
        return int(result.count)

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except self._transport_errors as exc:
            logger.debug("qdrant call %s failed", getattr(fn, "__name__", fn), exc_info=True)
            raise StoreUnavailable(f"Qdrant is unavailable: {exc}") from exc
        except self._unexpected_response as exc:
            status = getattr(exc, "status_code", None)
            if status is not None and status >= 500:
                raise StoreUnavailable(f"Qdrant answered with status {status}") from exc
            raise

    def _scroll_all_points(self, collection: str) -> list[Any]:
        points: list[Any] = []
        offset: Any = None

        while True:
            batch, next_offset = self._call(
                self._client.scroll,
                collection_name=collection,
                offset=offset,
                with_vectors=True,
                with_payload=True,
                limit=256,
            )
            points.extend(batch)
            if next_offset is None:
                break
            offset = next_offset

        return points

    @staticmethod
    def _point_to_record(point: Any) -> VectorRecord:
        vector = point.vector
        if isinstance(vector, dict):
            vector = next(iter(vector.values()), None)
        return VectorRecord(
            id=int(point.id),
            vector=list(vector or []),
            payload=point.payload,
        )

    def _build_filter(self, filters: Optional[Mapping[str, Any]]) -> Any:
        if not filters:
            return None

        conditions = [
            self._models.FieldCondition(
                key=str(key),
                match=self._models.MatchValue(value=value),
            )
            for key, value in filters.items()
        ]
        return self._models.Filter(must=conditions)

    def _metric_to_distance(self, metric: VectorMetric) -> Any:
        mapping = {
            VectorMetric.COSINE: self._models.Distance.COSINE,
            VectorMetric.IP: self._models.Distance.DOT,
            VectorMetric.L2: self._models.Distance.EUCLID,
        }
        return mapping[metric]

    def _distance_to_metric(self, distance: Any) -> VectorMetric:
        mapping = {
            self._models.Distance.COSINE: VectorMetric.COSINE,
            self._models.Distance.DOT: VectorMetric.IP,
            self._models.Distance.EUCLID: VectorMetric.L2,
        }
        if distance not in mapping:
            raise ValueError(f"Unsupported Qdrant distance: {distance}")
        return mapping[distance]

    @staticmethod
    def _raw_score_to_score(metric: VectorMetric, raw: float) -> float:
        # Qdrant reports the Euclidean distance itself for EUCLID collections
        if metric == VectorMetric.L2:
            return -math.fabs(raw)
        return raw

    def _require_info(self, name: str) -> CollectionInfo:
        info = self.describe_collection(name)
        if info is None:
            raise CollectionNotFound(f"Collection does not exist: {name}")
        return info

    def _ensure_collection(self, name: str) -> None:
        if not self.has_collection(name):
            raise CollectionNotFound(f"Collection does not exist: {name}")

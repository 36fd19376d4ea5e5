"""Schema-bound collection operations backed by a vector store port."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional, Sequence

from ..contracts import CollectionExistsError, VectorStorePort
from ..errors import DimensionMismatch, InvalidRecord, SchemaConflict
from .vector_codecs import IdentityVectorPayloadCodec, VectorPayloadCodec
from .vector_policies import VectorIdPolicy
from .vector_types import (
    CollectionInfo,
    CollectionSchema,
    Record,
    RetrievalRequest,
    SearchHit,
    VectorRecord,
    VectorSearchResult,
)

logger = logging.getLogger(__name__)

# Serializes collection bootstrap across every VectorCollection in the process.
_ENSURE_LOCK = threading.Lock()

# Extra candidates requested from the store so that equal scores straddling
# the limit still resolve by ascending id.
TIE_WINDOW = 8


class VectorCollection:
    """One named collection: schema, lifecycle, upsert, delete and search.

    Search results use a single total order for every metric: the store score
    is higher-is-better (cosine similarity, inner product, or negative L2
    distance), hits are sorted by descending score, then ascending id.
    """

    def __init__(
        self,
        store: VectorStorePort,
        schema: CollectionSchema,
        *,
        payload_codec: VectorPayloadCodec | None = None,
    ) -> None:
        self.store = store
        self.schema = schema
        self.id_policy = getattr(store, "id_policy", VectorIdPolicy.INT64)
        self.supports_filters = bool(getattr(store, "supports_filters", True))
        self.payload_codec = payload_codec or IdentityVectorPayloadCodec()
        self._ready = False

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def ready(self) -> bool:
        return self._ready

    def ensure(self) -> None:
        """Create the collection if absent and verify its shape otherwise."""

        with _ENSURE_LOCK:
            info = self.store.describe_collection(self.name)
            if info is None:
                try:
                    self.store.create_collection(
                        self.name,
                        dimension=self.schema.dimension,
                        metric=self.schema.metric,
                    )
                    logger.info(
                        "created collection %s (dimension=%d, metric=%s)",
                        self.name,
                        self.schema.dimension,
                        self.schema.metric.value,
                    )
                except CollectionExistsError:
                    # another process won the race
                    info = self.store.describe_collection(self.name)
                    if info is None:
                        raise
            if info is not None:
                self._check_compatible(info)
            self._ready = True

    def exists(self) -> bool:
        return self.store.has_collection(self.name)

    def drop(self) -> None:
        """Remove the collection and everything in it."""

        with _ENSURE_LOCK:
            self.store.drop_collection(self.name)
            self._ready = False
        logger.info("dropped collection %s", self.name)

    def upsert(self, records: Sequence[Record]) -> None:
        """Insert or replace records by primary key in one bulk call.

        Every record is validated before anything is sent to the store.
        """

        if not records:
            return
        rows = [self._to_vector_record(record) for record in records]
        self.store.upsert(self.name, rows)
        logger.debug("upserted %d records into %s", len(rows), self.name)

    def delete(self, ids: Sequence[int]) -> int:
        """Delete records by id; unknown ids are ignored."""

        if not ids:
            return 0
        normalized_ids = [self._normalize_id(item_id) for item_id in ids]
        deleted = self.store.delete(self.name, normalized_ids)
        logger.debug("deleted %d records from %s", deleted, self.name)
        return deleted

    def search(self, request: RetrievalRequest) -> list[SearchHit]:
        """Return up to `request.limit` hits, best first."""

        if request.filters and not self.supports_filters:
            raise NotImplementedError(
                f"{type(self.store).__name__} does not support metadata filters in search()."
            )
        self._validate_vector(request.query_vector)

        filters = (
            self.payload_codec.serialize_filters(request.filters)
            if request.filters
            else None
        )
        raw_results = self.store.query(
            self.name,
            request.query_vector,
            top_k=request.limit + TIE_WINDOW,
            filters=filters,
        )

        hits = [self._to_hit(item) for item in raw_results]
        if request.score_threshold is not None:
            hits = [hit for hit in hits if hit.score >= request.score_threshold]
        hits.sort(key=lambda hit: (-hit.score, hit.id))
        logger.debug(
            "search on %s returned %d of %d candidates",
            self.name,
            min(len(hits), request.limit),
            len(raw_results),
        )
        return hits[: request.limit]

    def fetch(self, ids: Optional[Sequence[int]] = None) -> list[Record]:
        """Fetch records by ids, or every record when ids is None."""

        normalized_ids = (
            [self._normalize_id(item_id) for item_id in ids] if ids is not None else None
        )
        return [self._to_record(row) for row in self.store.fetch(self.name, normalized_ids)]

    def count(self) -> int:
        return self.store.count(self.name)

    def validate(self, record: Record) -> None:
        """Raise `InvalidRecord` when the record does not fit the schema.

        Also runs the payload codec, so metadata it cannot store is rejected here.
        """

        self._to_vector_record(record)

    def _check_record(self, record: Record) -> None:
        self._normalize_id(record.id)
        self._validate_vector(record.vector, record_id=record.id)
        if not isinstance(record.text, str):
            raise InvalidRecord(f"text of record {record.id} must be a string")
        if len(record.text) > self.schema.max_text_length:
            raise InvalidRecord(
                f"text of record {record.id} has {len(record.text)} characters, "
                f"limit is {self.schema.max_text_length}"
            )
        if record.fields and not self.schema.dynamic_fields:
            raise InvalidRecord(
                f"collection {self.name} does not accept dynamic fields: "
                f"{sorted(record.fields)}"
            )
        if self.schema.text_field in (record.fields or {}):
            raise InvalidRecord(
                f"field {self.schema.text_field!r} is reserved for the record text"
            )

    def _check_compatible(self, info: CollectionInfo) -> None:
        if info.dimension != self.schema.dimension or info.metric != self.schema.metric:
            raise SchemaConflict(
                f"Collection {self.name} exists with dimension={info.dimension}, "
                f"metric={info.metric.value}; requested "
                f"dimension={self.schema.dimension}, metric={self.schema.metric.value}"
            )

    def _to_vector_record(self, record: Record) -> VectorRecord:
        self._check_record(record)
        try:
            encoded = self.payload_codec.serialize(record.fields)
        except (TypeError, ValueError) as exc:
            raise InvalidRecord(
                f"metadata of record {record.id} cannot be stored: {exc}"
            ) from exc
        payload: dict[str, Any] = dict(encoded or {})
        payload[self.schema.text_field] = record.text
        return VectorRecord(id=int(record.id), vector=record.vector, payload=payload)

    def _split_payload(self, payload: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
        fields = dict(payload or {})
        text = fields.pop(self.schema.text_field, "")
        decoded = self.payload_codec.deserialize(fields) or {}
        return str(text), dict(decoded)

    def _to_record(self, row: VectorRecord) -> Record:
        text, fields = self._split_payload(row.payload)
        return Record(id=int(row.id), vector=list(row.vector), text=text, fields=fields)

    def _to_hit(self, item: VectorSearchResult) -> SearchHit:
        text, metadata = self._split_payload(item.payload)
        return SearchHit(id=int(item.id), score=float(item.score), text=text, metadata=metadata)

    def _validate_vector(self, vector: Sequence[float], *, record_id: int | None = None) -> None:
        if len(vector) != self.schema.dimension:
            raise DimensionMismatch(self.schema.dimension, len(vector), record_id=record_id)

    def _normalize_id(self, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRecord(f"primary key must be an int, got {value!r}")
        if not self.id_policy.accepts(value):
            raise InvalidRecord(
                f"{type(self.store).__name__} does not accept primary key {value} "
                f"(id policy {self.id_policy.value})"
            )
        return value


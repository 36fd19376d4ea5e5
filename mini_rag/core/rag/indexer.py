"""Turns documents into collection records through an embedding client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from ..cancellation import CancelToken
from ..contracts import EmbeddingClient
from ..errors import EmbeddingUnavailable, InvalidRecord, OperationCancelled, RagError
from ..vectors.vector_collection import VectorCollection
from ..vectors.vector_types import Document, Record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedDocument:
    """A document left out of an indexing call, with the reason."""

    id: int
    error: InvalidRecord


@dataclass
class IndexReport:
    """Outcome of one `Indexer.index` call."""

    indexed: list[int] = field(default_factory=list)
    skipped: list[SkippedDocument] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped


class Indexer:
    """Embeds documents and upserts them into a collection by primary key.

    Args:
        embedder: Client turning document text into vectors.
        collection: Target collection; its schema fixes the vector dimension.
        batch_size: Records per upsert call. `None` sends one call per `index`.
        skip_invalid: Skip and report documents that do not fit the schema
            instead of failing the whole call.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        collection: VectorCollection,
        *,
        batch_size: Optional[int] = None,
        skip_invalid: bool = False,
    ) -> None:
        if batch_size is not None and batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.embedder = embedder
        self.collection = collection
        self.batch_size = batch_size
        self.skip_invalid = skip_invalid

    def index(
        self,
        docs: Sequence[Document],
        *,
        cancel: Optional[CancelToken] = None,
    ) -> IndexReport:
        """Index documents; re-indexing the same ids replaces them in place."""

        report = IndexReport()
        latest = {doc.id: doc for doc in docs}

        records: list[Record] = []
        for doc in latest.values():
            self._check_cancel(cancel, report)
            try:
                records.append(self._to_record(doc))
            except InvalidRecord as exc:
                if not self.skip_invalid:
                    exc.report = report
                    raise
                logger.warning("skipping document %s: %s", doc.id, exc)
                report.skipped.append(SkippedDocument(id=doc.id, error=exc))
            except RagError as exc:
                exc.report = report
                raise

        for batch in self._batches(records):
            self._check_cancel(cancel, report)
            try:
                self.collection.upsert(batch)
            except RagError as exc:
                exc.report = report
                logger.warning(
                    "indexing into %s failed after %d committed documents: %s",
                    self.collection.name,
                    len(report.indexed),
                    exc,
                )
                raise
            report.indexed.extend(record.id for record in batch)

        logger.info(
            "indexed %d documents into %s (%d skipped)",
            len(report.indexed),
            self.collection.name,
            len(report.skipped),
        )
        return report

    def _to_record(self, doc: Document) -> Record:
        record = Record(
            id=doc.id,
            vector=embed_text(self.embedder, doc.text),
            text=doc.text,
            fields=dict(doc.metadata or {}),
        )
        self.collection.validate(record)
        return record

    def _batches(self, records: list[Record]) -> Iterator[list[Record]]:
        if not records:
            return
        size = self.batch_size or len(records)
        for start in range(0, len(records), size):
            yield records[start : start + size]

    @staticmethod
    def _check_cancel(cancel: Optional[CancelToken], report: IndexReport) -> None:
        if cancel is None:
            return
        try:
            cancel.raise_if_cancelled("indexing")
        except OperationCancelled as exc:
            exc.report = report
            logger.warning(
                "indexing cancelled after %d committed documents", len(report.indexed)
            )
            raise


def embed_text(embedder: EmbeddingClient, text: str) -> list[float]:
    """Call the embedder, turning provider failures into `EmbeddingUnavailable`."""

    try:
        vector = embedder.embed(text)
    except RagError:
        raise
    except Exception as exc:
        raise EmbeddingUnavailable(f"embedding failed: {exc}") from exc
    return [float(value) for value in vector]


def index_documents(
    docs: Sequence[Document],
    embedder: EmbeddingClient,
    collection: VectorCollection,
    *,
    batch_size: Optional[int] = None,
    skip_invalid: bool = False,
    cancel: Optional[CancelToken] = None,
) -> IndexReport:
    """Functional shortcut for `Indexer(...).index(docs)`."""

    indexer = Indexer(embedder, collection, batch_size=batch_size, skip_invalid=skip_invalid)
    return indexer.index(docs, cancel=cancel)

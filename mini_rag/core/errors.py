"""Error taxonomy shared by collections, adapters and the RAG flow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .rag.indexer import IndexReport


class RagError(Exception):
    """Base class for every error raised by mini_rag.

    `stage` is filled in by `RagFlow` with the name of the step that failed
    (`"index"`, `"retrieve"`, `"prompt"` or `"generate"`).
    Errors raised while indexing carry the partial `IndexReport` in `report`.
    """

    stage: Optional[str] = None
    report: "Optional[IndexReport]" = None


class SchemaConflict(RagError):
    """A collection exists with a dimension or metric other than requested."""


class InvalidRecord(RagError, ValueError):
    """A record or document does not fit the collection schema."""


class DimensionMismatch(InvalidRecord):
    """Vector length disagrees with the collection dimension."""

    def __init__(self, expected: int, actual: int, *, record_id: int | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        where = f" for id {record_id}" if record_id is not None else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {actual}"
        )


class CollectionNotFound(RagError, KeyError):
    """The named collection does not exist in the store."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Collection does not exist"


class StoreUnavailable(RagError):
    """The vector store could not be reached or failed to answer."""


class EmbeddingUnavailable(RagError):
    """The embedding provider could not produce a vector."""


class GenerationFailed(RagError):
    """The generation collaborator failed."""


class OperationCancelled(RagError):
    """The caller cancelled the operation or its deadline passed.

    When raised by the indexer, `report` lists what was already committed.
    """

    def __init__(self, message: str, *, report: "IndexReport | None" = None) -> None:
        super().__init__(message)
        self.report = report

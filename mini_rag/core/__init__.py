"""Public core API for collections, indexing, retrieval and the RAG flow."""

from .cancellation import CancelToken
from .contracts import CollectionExistsError, EmbeddingClient, Generator, VectorStorePort
from .errors import (
    CollectionNotFound,
    DimensionMismatch,
    EmbeddingUnavailable,
    GenerationFailed,
    InvalidRecord,
    OperationCancelled,
    RagError,
    SchemaConflict,
    StoreUnavailable,
)
from .rag.flow import RagFlow
from .rag.indexer import IndexReport, Indexer, SkippedDocument, index_documents
from .rag.prompt import DEFAULT_TEMPLATE, PromptTemplate
from .rag.retriever import Retriever, retrieve
from .settings import RagSettings
from .vectors.vector_codecs import (
    IdentityVectorPayloadCodec,
    JsonVectorPayloadCodec,
    VectorPayloadCodec,
)
from .vectors.vector_collection import VectorCollection
from .vectors.vector_metrics import VectorMetric, VectorMetricInput, normalize_vector_metric
from .vectors.vector_policies import VectorIdPolicy
from .vectors.vector_types import (
    CollectionInfo,
    CollectionSchema,
    Document,
    Record,
    RetrievalRequest,
    SearchHit,
    VectorRecord,
    VectorSearchResult,
)

__all__ = [
    "CancelToken",
    "CollectionExistsError",
    "EmbeddingClient",
    "Generator",
    "VectorStorePort",
    "RagError",
    "SchemaConflict",
    "InvalidRecord",
    "DimensionMismatch",
    "CollectionNotFound",
    "StoreUnavailable",
    "EmbeddingUnavailable",
    "GenerationFailed",
    "OperationCancelled",
    "RagFlow",
    "Indexer",
    "IndexReport",
    "SkippedDocument",
    "index_documents",
    "Retriever",
    "retrieve",
    "PromptTemplate",
    "DEFAULT_TEMPLATE",
    "RagSettings",
    "VectorPayloadCodec",
    "IdentityVectorPayloadCodec",
    "JsonVectorPayloadCodec",
    "VectorCollection",
    "VectorMetric",
    "VectorMetricInput",
    "normalize_vector_metric",
    "VectorIdPolicy",
    "CollectionInfo",
    "CollectionSchema",
    "Document",
    "Record",
    "RetrievalRequest",
    "SearchHit",
    "VectorRecord",
    "VectorSearchResult",
]

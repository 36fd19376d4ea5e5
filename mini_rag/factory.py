"""Builds stores, clients, collections and flows from `RagSettings`."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

from .core.contracts import EmbeddingClient, Generator, VectorStorePort
from .core.rag.flow import RagFlow
from .core.rag.indexer import Indexer
from .core.rag.prompt import PromptTemplate
from .core.rag.retriever import Retriever
from .core.settings import RagSettings
from .core.vectors.vector_codecs import JsonVectorPayloadCodec
from .core.vectors.vector_collection import VectorCollection
from .core.vectors.vector_types import CollectionSchema
from .ports.embeddings import HashingEmbeddingClient, OpenAIEmbeddingClient
from .ports.generation import OpenAIChatGenerator
from .ports.vector import (
    ChromaVectorStore,
    FaissVectorStore,
    InMemoryVectorStore,
    QdrantVectorStore,
)

logger = logging.getLogger(__name__)


def create_vector_store(settings: RagSettings) -> VectorStorePort:
    """Create the store named by `settings.vector_store`.

    `vector_address` is a Qdrant URL or local path, or a Chroma
    `http://host:port` URL or local path.
    """

    address = settings.vector_address
    if settings.vector_store == "memory":
        return InMemoryVectorStore()
    if settings.vector_store == "faiss":
        return FaissVectorStore()
    if settings.vector_store == "qdrant":
        if address.startswith(("http://", "https://")):
            return QdrantVectorStore(url=address, timeout=settings.timeout)
        return QdrantVectorStore(location=address or ":memory:")

    if address.startswith(("http://", "https://")):
        parsed = urlparse(address)
        return ChromaVectorStore(host=parsed.hostname, port=parsed.port)
    return ChromaVectorStore(path=address or ":memory:")


def create_embedder(settings: RagSettings) -> EmbeddingClient:
    if settings.embedder == "hashing":
        return HashingEmbeddingClient(dimension=settings.vector_dim)
    return OpenAIEmbeddingClient(
        model=settings.embedding_model,
        # only the text-embedding-3 family accepts a target dimension
        dimensions=(
            settings.vector_dim
            if settings.embedding_model.startswith("text-embedding-3")
            else None
        ),
        timeout=settings.timeout,
    )


def create_collection(
    settings: RagSettings,
    store: Optional[VectorStorePort] = None,
) -> VectorCollection:
    """Build the configured collection and make sure it exists."""

    store = store or create_vector_store(settings)
    collection = VectorCollection(
        store,
        CollectionSchema(
            name=settings.collection,
            dimension=settings.vector_dim,
            metric=settings.metric,
        ),
        payload_codec=JsonVectorPayloadCodec() if settings.vector_store == "chroma" else None,
    )
    collection.ensure()
    return collection


def create_flow(
    settings: RagSettings,
    *,
    store: Optional[VectorStorePort] = None,
    embedder: Optional[EmbeddingClient] = None,
    generator: Optional[Generator] = None,
    template: PromptTemplate | str | None = None,
) -> RagFlow:
    """Wire a ready-to-use `RagFlow`; explicit collaborators override settings."""

    logging.getLogger("mini_rag").setLevel(settings.log_level)

    collection = create_collection(settings, store)
    embedder = embedder or create_embedder(settings)
    generator = generator or OpenAIChatGenerator(
        model=settings.chat_model,
        timeout=settings.timeout,
    )
    logger.info(
        "rag flow ready: store=%s collection=%s top_k=%d",
        settings.vector_store,
        settings.collection,
        settings.top_k,
    )
    return RagFlow(
        retriever=Retriever(
            embedder,
            collection,
            limit=settings.top_k,
            score_threshold=settings.score_threshold,
        ),
        indexer=Indexer(embedder, collection),
        generator=generator,
        template=template,
        limit=settings.top_k,
        score_threshold=settings.score_threshold,
    )

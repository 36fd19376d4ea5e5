"""mini_rag: vector collections, retrieval and retrieval-augmented generation."""

import logging

from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .factory import create_collection, create_embedder, create_flow, create_vector_store
from .ports import (
    ChromaVectorStore,
    FaissVectorStore,
    HashingEmbeddingClient,
    InMemoryVectorStore,
    OpenAIChatGenerator,
    OpenAIEmbeddingClient,
    QdrantVectorStore,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    *_core_all,
    "create_collection",
    "create_embedder",
    "create_flow",
    "create_vector_store",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "ChromaVectorStore",
    "FaissVectorStore",
    "HashingEmbeddingClient",
    "OpenAIEmbeddingClient",
    "OpenAIChatGenerator",
]

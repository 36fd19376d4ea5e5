"""Public port exports for concrete adapter implementations."""

from .embeddings import HashingEmbeddingClient, OpenAIEmbeddingClient
from .generation import OpenAIChatGenerator
from .vector import (
    ChromaVectorStore,
    FaissVectorStore,
    InMemoryVectorStore,
    QdrantVectorStore,
)

__all__ = [
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "ChromaVectorStore",
    "FaissVectorStore",
    "HashingEmbeddingClient",
    "OpenAIEmbeddingClient",
    "OpenAIChatGenerator",
]

"""Vector store adapter exports.

Optional backends import their client libraries lazily, on construction.
"""

from .chroma import ChromaVectorStore
from .faiss import FaissVectorStore
from .in_memory import InMemoryVectorStore
from .qdrant import QdrantVectorStore

__all__ = [
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "ChromaVectorStore",
    "FaissVectorStore",
]

"""Embedding client exports."""

from .hashing import HashingEmbeddingClient
from .openai import OpenAIEmbeddingClient

__all__ = ["HashingEmbeddingClient", "OpenAIEmbeddingClient"]

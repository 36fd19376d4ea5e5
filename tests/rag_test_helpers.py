from __future__ import annotations

import threading
import time
from typing import Sequence

from mini_rag import InMemoryVectorStore, StoreUnavailable


class KeywordEmbedder:
    """Counts vocabulary words; each word owns one vector component."""

    def __init__(self, vocabulary: Sequence[str]) -> None:
        self.vocabulary = [word.lower() for word in vocabulary]
        self.calls: list[str] = []
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int:
        return len(self.vocabulary)

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        words = text.lower().split()
        return [float(words.count(word)) for word in self.vocabulary]


class FixedEmbedder:
    """Returns a preset vector per text, or a default one."""

    def __init__(self, vectors: dict[str, list[float]], default: list[float]) -> None:
        self.vectors = vectors
        self.default = default

    def embed(self, text: str) -> list[float]:
        return list(self.vectors.get(text, self.default))


class BrokenEmbedder:
    def embed(self, text: str) -> list[float]:
        raise ConnectionError("embedding provider is down")


class RecordingGenerator:
    def __init__(self, reply: str = "answer") -> None:
        self.reply = reply
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class BrokenGenerator:
    def generate(self, prompt: str) -> str:
        raise RuntimeError("model overloaded")


class CountingStore(InMemoryVectorStore):
    """In-memory store that counts creations and can slow them down."""

    def __init__(self, create_delay: float = 0.0) -> None:
        super().__init__()
        self.create_calls = 0
        self.upsert_calls: list[list[int]] = []
        self.create_delay = create_delay

    def create_collection(self, name, dimension, metric="cosine", *, overwrite=False):  # noqa: ANN001
        self.create_calls += 1
        if self.create_delay:
            time.sleep(self.create_delay)
        super().create_collection(name, dimension, metric, overwrite=overwrite)

    def upsert(self, collection, records):  # noqa: ANN001
        self.upsert_calls.append([record.id for record in records])
        super().upsert(collection, records)


class UnreachableStore(InMemoryVectorStore):
    """Store whose reads and writes fail like a dropped connection."""

    def upsert(self, collection, records):  # noqa: ANN001
        raise StoreUnavailable("connection refused")

    def query(self, collection, vector, *, top_k=10, filters=None):  # noqa: ANN001
        raise StoreUnavailable("connection refused")

"""Offline RAG flow: in-memory store, hashing embedder and a canned generator."""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running this script directly from repository root.
PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "mini_rag").exists()),
    None,
)
if PROJECT_ROOT and str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mini_rag import (
    CollectionSchema,
    Document,
    HashingEmbeddingClient,
    Indexer,
    InMemoryVectorStore,
    RagFlow,
    Retriever,
    VectorCollection,
)

PHONES = [
    Document(1, "iPhone 17 $1000", {"brand": "apple"}),
    Document(2, "Samsung s25 $900", {"brand": "samsung"}),
    Document(3, "Pixel 9 $800", {"brand": "google"}),
    Document(4, "Xiaomi 15 $300", {"brand": "xiaomi"}),
]


class EchoGenerator:
    """Stands in for a language model: prints the prompt and returns a fixed reply."""

    def generate(self, prompt: str) -> str:
        print("--- prompt ---")
        print(prompt)
        print("--------------")
        return "Based on the context, the Xiaomi 15 is the cheapest option."


def main() -> None:
    embedder = HashingEmbeddingClient(dimension=128)
    collection = VectorCollection(
        InMemoryVectorStore(),
        CollectionSchema(name="phones", dimension=embedder.dimension),
    )
    collection.ensure()

    flow = RagFlow(
        retriever=Retriever(embedder, collection),
        indexer=Indexer(embedder, collection),
        generator=EchoGenerator(),
        limit=2,
    )

    # Queued documents are indexed on the next answer() call.
    flow.add_documents(PHONES)
    print("Answer:", flow.answer("I want a phone for $300"))
    print("Indexed records:", collection.count())

    # Retrieval on its own, with a metadata filter.
    hits = flow.retriever.retrieve("Pixel 9", filters={"brand": "google"})
    print("Filtered hits:", [(hit.id, hit.text, round(hit.score, 3)) for hit in hits])


if __name__ == "__main__":
    main()

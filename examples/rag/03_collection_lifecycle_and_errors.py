"""VectorCollection lifecycle, ranking rules and expected error cases."""

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
    CancelToken,
    CollectionSchema,
    Document,
    HashingEmbeddingClient,
    InMemoryVectorStore,
    Record,
    RetrievalRequest,
    VectorCollection,
    VectorIdPolicy,
    VectorMetric,
    index_documents,
)


def expect_error(label: str, fn) -> None:  # noqa: ANN001
    try:
        fn()
    except Exception as exc:  # noqa: BLE001
        print(f"[OK] {label}: {type(exc).__name__}: {exc}")
    else:
        print(f"[UNEXPECTED] {label}: no exception raised")


def lifecycle_demo() -> None:
    store = InMemoryVectorStore()
    collection = VectorCollection(store, CollectionSchema(name="phones", dimension=2))

    expect_error("upsert before ensure", lambda: collection.upsert([Record(1, [1, 0], "x")]))

    # ensure() is idempotent for the same schema.
    collection.ensure()
    collection.ensure()
    collection.upsert([Record(1, [1, 0], "iPhone")])
    print("After ensure:", collection.fetch())

    other_shape = VectorCollection(
        store,
        CollectionSchema(name="phones", dimension=2, metric=VectorMetric.L2),
    )
    expect_error("ensure with another metric", other_shape.ensure)

    collection.drop()
    other_shape.ensure()
    print("After drop and recreate:", other_shape.count(), "records")


def ranking_demo() -> None:
    collection = VectorCollection(InMemoryVectorStore(), CollectionSchema(name="ties", dimension=2))
    collection.ensure()
    collection.upsert(
        [
            Record(7, [1, 0], "seven"),
            Record(3, [1, 0], "three"),
            Record(5, [0, 1], "five"),
        ]
    )

    # Equal scores come back by ascending id; the threshold is inclusive.
    hits = collection.search(RetrievalRequest([1, 0], limit=3, score_threshold=0.0))
    print("Ranked:", [(hit.id, round(hit.score, 3)) for hit in hits])


def validation_demo() -> None:
    class UnsignedIdStore(InMemoryVectorStore):
        id_policy = VectorIdPolicy.UINT64

    collection = VectorCollection(
        UnsignedIdStore(),
        CollectionSchema(name="checks", dimension=2, max_text_length=16),
    )
    collection.ensure()
    expect_error("dimension mismatch on upsert", lambda: collection.upsert([Record(1, [1, 0, 0], "x")]))
    expect_error("text over the limit", lambda: collection.upsert([Record(1, [1, 0], "x" * 17)]))
    expect_error("negative id on uint64 store", lambda: collection.upsert([Record(-1, [1, 0], "x")]))
    expect_error(
        "dimension mismatch on search",
        lambda: collection.search(RetrievalRequest([1, 0, 0], limit=1)),
    )


def cancellation_demo() -> None:
    embedder = HashingEmbeddingClient(dimension=32)
    collection = VectorCollection(
        InMemoryVectorStore(),
        CollectionSchema(name="cancelled", dimension=32),
    )
    collection.ensure()

    token = CancelToken()
    token.cancel()
    expect_error(
        "indexing with a cancelled token",
        lambda: index_documents([Document(1, "Pixel 9 $800")], embedder, collection, cancel=token),
    )
    print("Records after cancelled indexing:", collection.count())


def main() -> None:
    lifecycle_demo()
    ranking_demo()
    validation_demo()
    cancellation_demo()


if __name__ == "__main__":
    main()

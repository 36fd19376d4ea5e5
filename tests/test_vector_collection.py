from __future__ import annotations

import threading
import unittest
from datetime import date

from mini_rag import (
    CollectionNotFound,
    CollectionSchema,
    DimensionMismatch,
    InMemoryVectorStore,
    InvalidRecord,
    JsonVectorPayloadCodec,
    Record,
    RetrievalRequest,
    SchemaConflict,
    StoreUnavailable,
    VectorCollection,
    VectorIdPolicy,
    VectorMetric,
)
from tests.rag_test_helpers import CountingStore, UnreachableStore


def _schema(**overrides) -> CollectionSchema:  # noqa: ANN003
    options = {"name": "products", "dimension": 2, "metric": VectorMetric.COSINE}
    options.update(overrides)
    return CollectionSchema(**options)


class CollectionSchemaTests(unittest.TestCase):
    def test_metric_is_normalized(self) -> None:
        self.assertIs(_schema(metric="dot").metric, VectorMetric.IP)

    def test_rejects_invalid_shapes(self) -> None:
        with self.assertRaises(ValueError):
            _schema(dimension=0)
        with self.assertRaises(ValueError):
            _schema(name="")
        with self.assertRaises(ValueError):
            _schema(max_text_length=0)
        with self.assertRaises(ValueError):
            _schema(text_field="id")
        with self.assertRaises(ValueError):
            _schema(metric="hamming")

    def test_retrieval_request_requires_positive_limit(self) -> None:
        with self.assertRaises(ValueError):
            RetrievalRequest(query_vector=[1.0, 0.0], limit=0)


class EnsureTests(unittest.TestCase):
    def test_ensure_is_idempotent(self) -> None:
        store = CountingStore()
        collection = VectorCollection(store, _schema())

        self.assertFalse(collection.ready)
        collection.ensure()
        collection.upsert([Record(1, [1, 0], "kept")])
        collection.ensure()

        self.assertTrue(collection.ready)
        self.assertTrue(collection.exists())
        self.assertEqual(store.create_calls, 1)
        self.assertEqual(collection.count(), 1)

    def test_ensure_rejects_dimension_or_metric_conflict(self) -> None:
        store = InMemoryVectorStore()
        VectorCollection(store, _schema()).ensure()

        with self.assertRaises(SchemaConflict):
            VectorCollection(store, _schema(dimension=3)).ensure()
        with self.assertRaises(SchemaConflict):
            VectorCollection(store, _schema(metric="l2")).ensure()

    def test_concurrent_ensure_creates_exactly_one_collection(self) -> None:
        store = CountingStore(create_delay=0.01)
        errors: list[BaseException] = []
        barrier = threading.Barrier(8)

        def worker() -> None:
            collection = VectorCollection(store, _schema())
            barrier.wait()
            try:
                collection.ensure()
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(store.create_calls, 1)

    def test_ensure_tolerates_collection_created_elsewhere(self) -> None:
        class RacingStore(InMemoryVectorStore):
            def describe_collection(self, name):  # noqa: ANN001
                info = super().describe_collection(name)
                if info is None and not getattr(self, "_raced", False):
                    self._raced = True
                    super().create_collection(name, dimension=2, metric="cosine")
                    return None
                return info

        store = RacingStore()
        collection = VectorCollection(store, _schema())
        collection.ensure()
        self.assertTrue(collection.ready)

    def test_drop_then_recreate_with_new_schema(self) -> None:
        store = InMemoryVectorStore()
        collection = VectorCollection(store, _schema())
        collection.ensure()
        collection.drop()
        self.assertFalse(collection.exists())
        self.assertFalse(collection.ready)

        VectorCollection(store, _schema(dimension=5)).ensure()
        self.assertEqual(store.describe_collection("products").dimension, 5)


class UpsertAndSearchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = CountingStore()
        self.collection = VectorCollection(self.store, _schema())
        self.collection.ensure()

    def test_upsert_is_idempotent_by_primary_key(self) -> None:
        records = [
            Record(1, [1, 0], "one", {"kind": "a"}),
            Record(2, [0, 1], "two", {"kind": "b"}),
        ]
        self.collection.upsert(records)
        self.collection.upsert(records)

        fetched = self.collection.fetch()
        self.assertEqual(sorted(record.id for record in fetched), [1, 2])
        self.assertEqual(self.collection.count(), 2)

        self.collection.upsert([Record(1, [1, 0], "one v2")])
        self.assertEqual(self.collection.fetch([1])[0].text, "one v2")
        self.assertEqual(self.collection.fetch([1])[0].fields, {})

    def test_upsert_sends_one_bulk_call_and_skips_empty_input(self) -> None:
        self.collection.upsert([])
        self.collection.upsert([Record(i, [1, i], f"doc {i}") for i in range(1, 4)])
        self.assertEqual(self.store.upsert_calls, [[1, 2, 3]])

    def test_invalid_record_aborts_whole_batch(self) -> None:
        with self.assertRaises(DimensionMismatch) as ctx:
            self.collection.upsert([Record(1, [1, 0], "ok"), Record(2, [1, 0, 0], "bad")])
        self.assertEqual(ctx.exception.record_id, 2)
        self.assertEqual(self.collection.count(), 0)

    def test_record_validation(self) -> None:
        strict = VectorCollection(
            InMemoryVectorStore(),
            _schema(max_text_length=5, dynamic_fields=False),
        )
        strict.ensure()

        with self.assertRaisesRegex(InvalidRecord, "limit is 5"):
            strict.upsert([Record(1, [1, 0], "too long")])
        with self.assertRaisesRegex(InvalidRecord, "dynamic fields"):
            strict.upsert([Record(1, [1, 0], "ok", {"kind": "a"})])
        with self.assertRaisesRegex(InvalidRecord, "primary key"):
            strict.upsert([Record("1", [1, 0], "ok")])  # type: ignore[arg-type]
        with self.assertRaisesRegex(InvalidRecord, "reserved"):
            self.collection.upsert([Record(1, [1, 0], "ok", {"text": "shadow"})])
        with self.assertRaisesRegex(InvalidRecord, "primary key"):
            self.collection.upsert([Record(2**63, [1, 0], "too big")])

    def test_unsigned_id_policy_rejects_negative_ids(self) -> None:
        class UnsignedStore(InMemoryVectorStore):
            id_policy = VectorIdPolicy.UINT64

        collection = VectorCollection(UnsignedStore(), _schema())
        collection.ensure()
        with self.assertRaisesRegex(InvalidRecord, "uint64"):
            collection.upsert([Record(-1, [1, 0], "negative")])
        with self.assertRaises(InvalidRecord):
            collection.delete([-1])

    def test_search_orders_by_score_then_id(self) -> None:
        self.collection.upsert(
            [
                Record(5, [1, 0], "five"),
                Record(3, [2, 0], "three"),
                Record(4, [1, 1], "four"),
                Record(1, [0, 1], "one"),
            ]
        )

        hits = self.collection.search(RetrievalRequest(query_vector=[1, 0], limit=4))
        self.assertEqual([hit.id for hit in hits], [3, 5, 4, 1])
        scores = [hit.score for hit in hits]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(hits[0].text, "three")

        repeated = self.collection.search(RetrievalRequest(query_vector=[1, 0], limit=4))
        self.assertEqual(repeated, hits)

    def test_tie_at_limit_boundary_prefers_lower_id(self) -> None:
        self.collection.upsert([Record(i, [1, 0], f"doc {i}") for i in (9, 7, 8, 2)])
        hits = self.collection.search(RetrievalRequest(query_vector=[1, 0], limit=2))
        self.assertEqual([hit.id for hit in hits], [2, 7])

    def test_search_limit_threshold_and_empty(self) -> None:
        self.assertEqual(
            self.collection.search(RetrievalRequest(query_vector=[1, 0], limit=3)), []
        )

        self.collection.upsert(
            [
                Record(1, [1, 0], "east"),
                Record(2, [1, 1], "north-east"),
                Record(3, [0, 1], "north"),
                Record(4, [-1, 0], "west"),
            ]
        )
        limited = self.collection.search(RetrievalRequest(query_vector=[1, 0], limit=2))
        thresholded = self.collection.search(
            RetrievalRequest(query_vector=[1, 0], limit=10, score_threshold=0.5)
        )
        nothing = self.collection.search(
            RetrievalRequest(query_vector=[1, 0], limit=10, score_threshold=1.5)
        )

        self.assertEqual(len(limited), 2)
        self.assertEqual([hit.id for hit in thresholded], [1, 2])
        self.assertTrue(all(hit.score >= 0.5 for hit in thresholded))
        self.assertEqual(nothing, [])

    def test_search_returns_metadata_and_applies_filters(self) -> None:
        self.collection.upsert(
            [
                Record(1, [1, 0], "phone", {"kind": "phone", "price": 300}),
                Record(2, [1, 0.1], "case", {"kind": "accessory", "price": 20}),
            ]
        )
        hits = self.collection.search(
            RetrievalRequest(query_vector=[1, 0], limit=5, filters={"kind": "accessory"})
        )
        self.assertEqual([(hit.id, hit.text) for hit in hits], [(2, "case")])
        self.assertEqual(hits[0].metadata, {"kind": "accessory", "price": 20})

    def test_search_validates_query_dimension(self) -> None:
        with self.assertRaises(DimensionMismatch):
            self.collection.search(RetrievalRequest(query_vector=[1, 0, 0], limit=1))

    def test_filters_rejected_when_store_cannot_filter(self) -> None:
        class NoFilterStore(InMemoryVectorStore):
            supports_filters = False

        collection = VectorCollection(NoFilterStore(), _schema())
        collection.ensure()
        with self.assertRaises(NotImplementedError):
            collection.search(
                RetrievalRequest(query_vector=[1, 0], limit=1, filters={"kind": "a"})
            )

    def test_delete_missing_ids_is_noop(self) -> None:
        self.collection.upsert([Record(1, [1, 0], "one"), Record(2, [0, 1], "two")])

        self.assertEqual(self.collection.delete([]), 0)
        self.assertEqual(self.collection.delete([2, 42]), 1)
        self.assertEqual(self.collection.delete([42]), 0)
        hits = self.collection.search(RetrievalRequest(query_vector=[0, 1], limit=5))
        self.assertNotIn(2, [hit.id for hit in hits])

    def test_missing_collection_raises_not_found(self) -> None:
        collection = VectorCollection(InMemoryVectorStore(), _schema(name="never_created"))
        with self.assertRaises(CollectionNotFound):
            collection.search(RetrievalRequest(query_vector=[1, 0], limit=1))

    def test_store_unavailable_propagates(self) -> None:
        collection = VectorCollection(UnreachableStore(), _schema())
        collection.ensure()
        with self.assertRaises(StoreUnavailable):
            collection.upsert([Record(1, [1, 0], "one")])
        with self.assertRaises(StoreUnavailable):
            collection.search(RetrievalRequest(query_vector=[1, 0], limit=1))

    def test_json_codec_round_trips_nested_metadata(self) -> None:
        store = InMemoryVectorStore()
        collection = VectorCollection(store, _schema(), payload_codec=JsonVectorPayloadCodec())
        collection.ensure()
        collection.upsert(
            [Record(1, [1, 0], "one", {"tags": ["a", "b"], "added": date(2024, 5, 1), "n": 3})]
        )

        raw_payload = store.fetch("products")[0].payload
        self.assertIsInstance(raw_payload["tags"], str)
        self.assertEqual(raw_payload["n"], 3)
        self.assertEqual(raw_payload["text"], "one")

        hit = collection.search(RetrievalRequest(query_vector=[1, 0], limit=1))[0]
        self.assertEqual(hit.metadata, {"tags": ["a", "b"], "added": date(2024, 5, 1), "n": 3})

    def test_metadata_the_codec_cannot_store_is_invalid(self) -> None:
        store = CountingStore()
        collection = VectorCollection(store, _schema(), payload_codec=JsonVectorPayloadCodec())
        collection.ensure()
        bad = Record(2, [0, 1], "two", {"tags": {"a"}})

        with self.assertRaisesRegex(InvalidRecord, "metadata of record 2"):
            collection.validate(bad)
        with self.assertRaises(InvalidRecord):
            collection.upsert([Record(1, [1, 0], "one"), bad])
        self.assertEqual(store.upsert_calls, [])


if __name__ == "__main__":
    unittest.main()

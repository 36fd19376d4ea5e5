from __future__ import annotations

import unittest

from mini_rag import (
    DEFAULT_TEMPLATE,
    CollectionSchema,
    Document,
    EmbeddingUnavailable,
    GenerationFailed,
    Indexer,
    InMemoryVectorStore,
    PromptTemplate,
    RagFlow,
    Retriever,
    StoreUnavailable,
    VectorCollection,
)
from tests.rag_test_helpers import (
    BrokenEmbedder,
    BrokenGenerator,
    KeywordEmbedder,
    RecordingGenerator,
    UnreachableStore,
)

SALESMAN_TEMPLATE = (
    "You're a salesman at a phone store. Help the client choose a mobile phone.\n"
    "Question: {{question}}\n"
    "Context: {{context}}"
)


def _flow(
    *,
    store=None,  # noqa: ANN001
    embedder=None,  # noqa: ANN001
    generator=None,  # noqa: ANN001
    template=None,  # noqa: ANN001
    limit: int = 2,
) -> RagFlow:
    embedder = embedder or KeywordEmbedder(["cheap", "phone", "camera"])
    collection = VectorCollection(
        store or InMemoryVectorStore(),
        CollectionSchema(name="phones", dimension=3),
    )
    collection.ensure()
    return RagFlow(
        retriever=Retriever(embedder, collection),
        indexer=Indexer(embedder, collection),
        generator=generator or RecordingGenerator("buy the cheap one"),
        template=template,
        limit=limit,
    )


class PromptTemplateTests(unittest.TestCase):
    def test_render_replaces_placeholders(self) -> None:
        template = PromptTemplate("Q: {{ question }} / C: {{context}}")
        self.assertEqual(template.variables, frozenset({"question", "context"}))
        self.assertEqual(template.render(question="a", context="b"), "Q: a / C: b")

    def test_missing_and_unknown_variables_raise(self) -> None:
        template = PromptTemplate("{{question}}")
        with self.assertRaisesRegex(ValueError, "missing"):
            template.render()
        with self.assertRaisesRegex(ValueError, "unknown"):
            template.render(question="q", context="c")

    def test_default_template_uses_question_and_context(self) -> None:
        self.assertEqual(
            PromptTemplate(DEFAULT_TEMPLATE).variables,
            frozenset({"question", "context"}),
        )


class RagFlowTests(unittest.TestCase):
    def test_answer_builds_prompt_from_ranked_hits(self) -> None:
        generator = RecordingGenerator("Take the Xiaomi")
        flow = _flow(generator=generator, template=SALESMAN_TEMPLATE)
        flow.add_documents(
            [
                Document(1, "camera phone"),
                Document(2, "cheap phone"),
                Document(3, "camera"),
            ]
        )

        answer = flow.answer("cheap phone")

        self.assertEqual(answer, "Take the Xiaomi")
        self.assertEqual(
            generator.prompts,
            [
                "You're a salesman at a phone store. Help the client choose a mobile phone.\n"
                "Question: cheap phone\n"
                "Context: cheap phone\ncamera phone\n"
            ],
        )

    def test_pending_documents_are_indexed_once(self) -> None:
        embedder = KeywordEmbedder(["cheap", "phone", "camera"])
        flow = _flow(embedder=embedder)
        flow.add_documents([Document(1, "cheap phone")])
        self.assertEqual(len(flow.pending), 1)

        flow.answer("phone")
        flow.answer("phone")

        self.assertEqual(flow.pending, [])
        self.assertEqual(embedder.calls, ["cheap phone", "phone", "phone"])

    def test_empty_collection_still_generates_with_empty_context(self) -> None:
        generator = RecordingGenerator()
        flow = _flow(generator=generator, template="{{question}}|{{context}}")
        flow.answer("anything")
        self.assertEqual(generator.prompts, ["anything|"])

    def test_generation_failure_is_wrapped_with_stage(self) -> None:
        flow = _flow(generator=BrokenGenerator())
        with self.assertRaises(GenerationFailed) as ctx:
            flow.answer("phone")
        self.assertEqual(ctx.exception.stage, "generate")
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_retrieve_failure_aborts_before_generation(self) -> None:
        generator = RecordingGenerator()
        flow = _flow(store=UnreachableStore(), generator=generator)
        with self.assertRaises(StoreUnavailable) as ctx:
            flow.answer("phone")
        self.assertEqual(ctx.exception.stage, "retrieve")
        self.assertEqual(generator.prompts, [])

    def test_index_failure_keeps_pending_documents(self) -> None:
        generator = RecordingGenerator()
        flow = _flow(embedder=BrokenEmbedder(), generator=generator)
        flow.add_documents([Document(1, "cheap phone")])

        with self.assertRaises(EmbeddingUnavailable) as ctx:
            flow.answer("phone")

        self.assertEqual(ctx.exception.stage, "index")
        self.assertEqual(len(flow.pending), 1)
        self.assertEqual(generator.prompts, [])

    def test_last_index_report_lists_skipped_documents(self) -> None:
        embedder = KeywordEmbedder(["cheap", "phone", "camera"])
        collection = VectorCollection(
            InMemoryVectorStore(),
            CollectionSchema(name="phones", dimension=3, max_text_length=20),
        )
        collection.ensure()
        flow = RagFlow(
            retriever=Retriever(embedder, collection),
            indexer=Indexer(embedder, collection, skip_invalid=True),
            generator=RecordingGenerator(),
        )
        self.assertIsNone(flow.last_index_report)

        flow.add_documents([Document(1, "cheap phone"), Document(2, "camera " * 10)])
        flow.answer("phone")

        report = flow.last_index_report
        self.assertEqual(report.indexed, [1])
        self.assertEqual([item.id for item in report.skipped], [2])
        self.assertEqual(flow.pending, [])

    def test_add_documents_requires_indexer(self) -> None:
        embedder = KeywordEmbedder(["phone"])
        collection = VectorCollection(
            InMemoryVectorStore(), CollectionSchema(name="docs", dimension=1)
        )
        flow = RagFlow(
            retriever=Retriever(embedder, collection),
            generator=RecordingGenerator(),
        )
        with self.assertRaises(ValueError):
            flow.add_documents([Document(1, "phone")])

    def test_template_with_unknown_placeholder_is_rejected(self) -> None:
        with self.assertRaisesRegex(ValueError, "unknown prompt variables"):
            _flow(template="{{question}} {{shop}}")


if __name__ == "__main__":
    unittest.main()

"""Retrieval-augmented answer flow: index, retrieve, prompt, generate."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence, TypeVar

from ..cancellation import CancelToken
from ..contracts import Generator
from ..errors import GenerationFailed, RagError
from ..vectors.vector_types import Document, SearchHit
from .indexer import IndexReport, Indexer
from .prompt import PromptTemplate
from .retriever import Retriever

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROMPT_VARIABLES = frozenset({"question", "context"})


class RagFlow:
    """Answers a question from retrieved context in one call.

    Collaborators are injected: the retriever (and optionally an indexer) share
    one collection, the generator is any object with `generate(prompt)`.
    The report of the latest successful indexing step is kept in
    `last_index_report`, including documents skipped as invalid.
    A failing step aborts the flow; the raised `RagError` has `stage` set to
    `"index"`, `"retrieve"`, `"prompt"` or `"generate"`.
    """

    def __init__(
        self,
        *,
        retriever: Retriever,
        generator: Generator,
        indexer: Optional[Indexer] = None,
        template: PromptTemplate | str | None = None,
        limit: int = 4,
        score_threshold: Optional[float] = None,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        if isinstance(template, str):
            template = PromptTemplate(template)
        self.retriever = retriever
        self.generator = generator
        self.indexer = indexer
        self.template = template or PromptTemplate()
        unknown = self.template.variables - PROMPT_VARIABLES
        if unknown:
            raise ValueError(f"unknown prompt variables: {sorted(unknown)}")
        self.limit = limit
        self.score_threshold = score_threshold
        self.last_index_report: Optional[IndexReport] = None
        self._pending: list[Document] = []
        self._pending_lock = threading.Lock()

    @property
    def pending(self) -> list[Document]:
        with self._pending_lock:
            return list(self._pending)

    def add_documents(self, docs: Sequence[Document]) -> None:
        """Queue documents to be indexed before the next answer."""

        if self.indexer is None:
            raise ValueError("RagFlow was created without an indexer")
        with self._pending_lock:
            self._pending.extend(docs)

    def answer(self, query: str, *, cancel: Optional[CancelToken] = None) -> str:
        self._run_stage("index", lambda: self._index_pending(cancel))
        hits = self._run_stage(
            "retrieve",
            lambda: self.retriever.retrieve(
                query,
                limit=self.limit,
                score_threshold=self.score_threshold,
                cancel=cancel,
            ),
        )
        prompt = self._run_stage("prompt", lambda: self.build_prompt(query, hits))
        return self._run_stage("generate", lambda: self._generate(prompt))

    def build_prompt(self, query: str, hits: Sequence[SearchHit]) -> str:
        context = "".join(f"{hit.text}\n" for hit in hits)
        values = {"question": query, "context": context}
        used = self.template.variables
        return self.template.render(**{key: value for key, value in values.items() if key in used})

    def _index_pending(self, cancel: Optional[CancelToken]) -> None:
        with self._pending_lock:
            if self.indexer is None or not self._pending:
                return
            self.last_index_report = self.indexer.index(list(self._pending), cancel=cancel)
            self._pending.clear()

    def _generate(self, prompt: str) -> str:
        try:
            return self.generator.generate(prompt)
        except RagError:
            raise
        except Exception as exc:
            raise GenerationFailed(f"generation failed: {exc}") from exc

    @staticmethod
    def _run_stage(stage: str, step: Callable[[], T]) -> T:
        try:
            return step()
        except RagError as exc:
            exc.stage = stage
            logger.warning("rag flow failed at %s: %s", stage, exc)
            raise

"""Command line entry point: `python -m mini_rag [--docs FILE] QUESTION`."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .core.errors import RagError
from .core.settings import RagSettings
from .core.vectors.vector_types import Document
from .factory import create_flow

logger = logging.getLogger("mini_rag.cli")


def load_documents(path: Path) -> list[Document]:
    """Read one JSON object per line: {"id": int, "text": str, "metadata": {...}}."""

    docs: list[Document] = []
    with path.open(encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
                docs.append(
                    Document(
                        id=int(row["id"]),
                        text=str(row["text"]),
                        metadata=dict(row.get("metadata") or {}),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"{path}:{line_no}: invalid document: {exc}") from exc
    return docs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mini_rag",
        description="Answer a question from documents stored in a vector collection.",
    )
    parser.add_argument("question", help="free-text question")
    parser.add_argument(
        "--docs",
        type=Path,
        help="JSON lines file with documents to index before answering",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        help="number of documents used as context (overrides MINI_RAG_TOP_K)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.top_k is not None and args.top_k <= 0:
        parser.error("--top-k must be > 0")
    settings = RagSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        flow = create_flow(settings)
        if args.top_k is not None:
            flow.limit = args.top_k
        if args.docs is not None:
            flow.add_documents(load_documents(args.docs))
        answer = flow.answer(args.question)
    except RagError as exc:
        logger.error("failed at stage %s: %s", exc.stage or "setup", exc)
        return 1

    print(answer)
    return 0


if __name__ == "__main__":
    sys.exit(main())

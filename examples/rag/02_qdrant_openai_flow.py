"""Phone store assistant backed by Qdrant and OpenAI.

Requires `pip install qdrant-client openai` and `OPENAI_API_KEY` in the
environment. Point `MINI_RAG_VECTOR_ADDRESS` at a Qdrant server, or leave it
empty to use Qdrant's local in-memory mode.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# Allow running this script directly from repository root.
PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "mini_rag").exists()),
    None,
)
if PROJECT_ROOT and str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mini_rag import Document, RagError, RagSettings, create_flow

SALESMAN_TEMPLATE = """\
You're a salesman at a phone store. Help the client choose a mobile phone.
Question: {{question}}
Context: {{context}}"""

PHONES = [
    Document(1, "iPhone 17 $1000"),
    Document(2, "Samsung s25 $900"),
    Document(3, "Pixel 9 $800"),
    Document(4, "Xiaomi 15 $300"),
]


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = RagSettings.from_env(
        {
            "MINI_RAG_VECTOR_STORE": "qdrant",
            "MINI_RAG_VECTOR_ADDRESS": os.getenv("MINI_RAG_VECTOR_ADDRESS", ""),
            "MINI_RAG_COLLECTION": "phones",
            "MINI_RAG_VECTOR_DIM": "1536",
            "MINI_RAG_TOP_K": "2",
            "MINI_RAG_LOG_LEVEL": "INFO",
        }
    )

    flow = create_flow(settings, template=SALESMAN_TEMPLATE)
    flow.add_documents(PHONES)
    try:
        print(flow.answer("I want a cheap phone"))
    except RagError as exc:
        print(f"Flow failed at stage {exc.stage}: {type(exc).__name__}: {exc}")


if __name__ == "__main__":
    main()

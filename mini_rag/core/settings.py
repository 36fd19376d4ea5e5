"""Environment-driven settings for building a RAG flow."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .vectors.vector_metrics import VectorMetric, normalize_vector_metric

ENV_PREFIX = "MINI_RAG_"

VECTOR_STORES = {"memory", "faiss", "qdrant", "chroma"}
EMBEDDERS = {"openai", "hashing"}


@dataclass(frozen=True)
class RagSettings:
    vector_store: str = "memory"
    vector_address: str = ""
    collection: str = "documents"
    vector_dim: int = 1536
    metric: VectorMetric = VectorMetric.COSINE
    embedder: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    chat_model: str = "gpt-4o"
    top_k: int = 4
    score_threshold: Optional[float] = None
    timeout: Optional[float] = None
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.vector_store not in VECTOR_STORES:
            raise ValueError(
                f"{ENV_PREFIX}VECTOR_STORE must be one of {sorted(VECTOR_STORES)}, "
                f"got {self.vector_store!r}"
            )
        if self.embedder not in EMBEDDERS:
            raise ValueError(
                f"{ENV_PREFIX}EMBEDDER must be one of {sorted(EMBEDDERS)}, "
                f"got {self.embedder!r}"
            )
        if self.vector_dim <= 0:
            raise ValueError(f"{ENV_PREFIX}VECTOR_DIM must be > 0")
        if self.top_k <= 0:
            raise ValueError(f"{ENV_PREFIX}TOP_K must be > 0")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"{ENV_PREFIX}LOG_LEVEL is not a logging level: {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RagSettings":
        env = os.environ if environ is None else environ

        def get(name: str, default: str = "") -> str:
            return env.get(ENV_PREFIX + name, default).strip()

        return cls(
            vector_store=get("VECTOR_STORE", "memory").lower(),
            vector_address=get("VECTOR_ADDRESS"),
            collection=get("COLLECTION", "documents"),
            vector_dim=_parse_int("VECTOR_DIM", get("VECTOR_DIM", "1536")),
            metric=_parse_metric(get("METRIC", "cosine")),
            embedder=get("EMBEDDER", "openai").lower(),
            embedding_model=get("EMBEDDING_MODEL", "text-embedding-3-small"),
            chat_model=get("CHAT_MODEL", "gpt-4o"),
            top_k=_parse_int("TOP_K", get("TOP_K", "4")),
            score_threshold=_parse_float("SCORE_THRESHOLD", get("SCORE_THRESHOLD")),
            timeout=_parse_float("TIMEOUT", get("TIMEOUT")),
            log_level=get("LOG_LEVEL", "WARNING").upper(),
        )


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _parse_metric(raw: str) -> VectorMetric:
    try:
        return normalize_vector_metric(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}METRIC: {exc}") from exc


def _parse_float(name: str, raw: str) -> Optional[float]:
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc

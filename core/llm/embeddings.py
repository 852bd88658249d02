"""sentence-transformers backends: bi-encoder embeddings + cross-encoder rerank.

Each backend owns its model through an InferenceWorker, so concurrent
requests are serialized FIFO on one thread.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Sequence

from .exceptions import ModelLoadError
from .provider import EmbeddingModel, RerankModel
from .worker import InferenceWorker

logger = logging.getLogger(__name__)


def _as_floats(values: Any) -> List[float]:
    if hasattr(values, "tolist"):
        values = values.tolist()
    return [float(v) for v in values]


class _EncoderBackend:
    def __init__(
        self,
        model: Any,
        name: str,
        queue_depth: int = 10,
        join_timeout_s: float = 10.0,
    ) -> None:
        self.name = name
        self._join_timeout_s = join_timeout_s
        self._worker: InferenceWorker[Any] = InferenceWorker(
            model, name=name, queue_depth=queue_depth
        )

    def close(self) -> bool:
        return self._worker.close(self._join_timeout_s)

    @staticmethod
    def _worker_opts(llm_cfg: Any) -> dict:
        if llm_cfg is None:
            return {}
        return {
            "queue_depth": llm_cfg.worker_queue_depth,
            "join_timeout_s": llm_cfg.worker_join_timeout_s,
        }


class BiEncoderModel(_EncoderBackend, EmbeddingModel):
    def __init__(self, model: Any, name: str, **kwargs: Any) -> None:
        super().__init__(model, name, **kwargs)
        self._dimensions = int(
            self._worker.run(lambda m: m.get_sentence_embedding_dimension())
        )

    @classmethod
    def load(cls, name: str, weights: Path, llm_cfg: Any = None) -> "BiEncoderModel":
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ModelLoadError("sentence-transformers not installed") from e
        logger.info("loading bi-encoder name=%s path=%s", name, weights)
        try:
            model = SentenceTransformer(str(weights))
        except Exception as e:  # noqa: BLE001
            raise ModelLoadError(f"cannot load bi-encoder {name}: {e}") from e
        return cls(model, name, **cls._worker_opts(llm_cfg))

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def encode(self, sentences: Sequence[str]) -> List[List[float]]:
        batch = list(sentences)
        if not batch:
            return []
        vectors = self._worker.run(
            lambda m: m.encode(batch, convert_to_numpy=True)
        )
        return [_as_floats(v) for v in vectors]


class CrossEncoderModel(_EncoderBackend, RerankModel):
    @classmethod
    def load(cls, name: str, weights: Path, llm_cfg: Any = None) -> "CrossEncoderModel":
        try:
            from sentence_transformers import CrossEncoder
        except ImportError as e:
            raise ModelLoadError("sentence-transformers not installed") from e
        logger.info("loading cross-encoder name=%s path=%s", name, weights)
        try:
            model = CrossEncoder(str(weights))
        except Exception as e:  # noqa: BLE001
            raise ModelLoadError(f"cannot load cross-encoder {name}: {e}") from e
        return cls(model, name, **cls._worker_opts(llm_cfg))

    def rerank(self, query: str, passages: Sequence[str]) -> List[float]:
        pairs = [(query, p) for p in passages]
        if not pairs:
            return []
        scores = self._worker.run(lambda m: m.predict(pairs))
        return _as_floats(scores)


__all__ = ["BiEncoderModel", "CrossEncoderModel"]

"""LLM / backend config schema.

Sampling defaults for local-weights backends, worker sizing, and the
remote OpenAI-compatible endpoint. No side effects / globals.
"""
from __future__ import annotations

from pydantic import BaseModel, field_validator


class LLMConfig(BaseModel):
    default_temperature: float = 0.3
    top_p: float = 0.95
    top_k: int = 40
    context_length: int = 2048
    n_threads: int | None = None
    n_gpu_layers: int = 0
    # Bounded request queue per inference worker (backpressure).
    worker_queue_depth: int = 10
    worker_join_timeout_s: float = 10.0
    openai_base_url: str | None = None
    openai_chat_model: str = "gpt-3.5-turbo"
    openai_completion_model: str = "gpt-3.5-turbo-instruct"

    @field_validator("default_temperature")
    @classmethod
    def _temp_range(cls, v: float) -> float:  # noqa: D401
        if not (0 < v <= 2):
            raise ValueError("temperature out of range 0..2")
        return v

    @field_validator("top_k", "context_length", "worker_queue_depth")
    @classmethod
    def _positive(cls, v: int) -> int:  # noqa: D401
        if v <= 0:
            raise ValueError("must be >0")
        return v

"""Artifact download config schema.

Retry defaults: first wait 5s, doubling, capped; only transport errors
and HTTP 5xx are retried.
"""
from __future__ import annotations

from pydantic import BaseModel, field_validator


class RetryConfig(BaseModel):
    initial_delay_s: float = 5.0
    factor: float = 2.0
    max_delay_s: float = 120.0
    max_attempts: int = 5

    @field_validator("initial_delay_s", "max_delay_s")
    @classmethod
    def _non_negative(cls, v: float) -> float:  # noqa: D401
        if v < 0:
            raise ValueError("delay must be >= 0")
        return v

    @field_validator("factor")
    @classmethod
    def _factor_range(cls, v: float) -> float:  # noqa: D401
        if v < 1:
            raise ValueError("factor must be >= 1")
        return v

    @field_validator("max_attempts")
    @classmethod
    def _attempts_range(cls, v: int) -> int:  # noqa: D401
        if v <= 0:
            raise ValueError("max_attempts must be >0")
        return v


class DownloadConfig(BaseModel):
    hub_endpoint: str = "https://huggingface.co"
    # Regex applied to hub repository file names when no pattern is given.
    default_pattern: str = r"\.(json|md|ot|txt)$"
    timeout_s: float = 60.0
    chunk_size: int = 1024 * 1024
    retry: RetryConfig = RetryConfig()

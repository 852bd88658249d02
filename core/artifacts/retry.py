"""Exponential backoff for artifact network calls.

Only ``NetworkFailure`` with ``retryable=True`` (transport error or HTTP
5xx) is retried. Anything else, 4xx included, propagates immediately.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from core.events import ArtifactDownloadRetried, emit

from .errors import NetworkFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    initial_delay_s: float = 5.0
    factor: float = 2.0
    max_delay_s: float = 120.0
    max_attempts: int = 5
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    @classmethod
    def from_config(cls, retry_cfg, sleep: Callable[[float], None] | None = None):
        return cls(
            initial_delay_s=retry_cfg.initial_delay_s,
            factor=retry_cfg.factor,
            max_delay_s=retry_cfg.max_delay_s,
            max_attempts=retry_cfg.max_attempts,
            sleep=sleep or time.sleep,
        )

    def delay_for(self, attempt: int) -> float:
        """Wait before retry number ``attempt`` (1-based)."""
        delay = self.initial_delay_s * (self.factor ** (attempt - 1))
        return min(delay, self.max_delay_s)

    def call(self, fn: Callable[[], T], url: str) -> T:
        attempt = 0
        while True:
            try:
                return fn()
            except NetworkFailure as e:
                attempt += 1
                if not e.retryable or attempt >= self.max_attempts:
                    if e.retryable:
                        logger.error(
                            "fetch failed after %d attempts url=%s", attempt, url
                        )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "fetch failed url=%s attempt=%d/%d status=%s, retrying in %.2fs",
                    url,
                    attempt,
                    self.max_attempts,
                    e.status,
                    delay,
                )
                emit(
                    ArtifactDownloadRetried(
                        url=url,
                        attempt=attempt,
                        delay_s=delay,
                        status=e.status,
                        message=str(e),
                    )
                )
                self.sleep(delay)


__all__ = ["RetryPolicy"]

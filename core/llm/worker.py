"""InferenceWorker: one thread owning one non-shareable model object.

Requests are callables ``work(model) -> result`` kept FIFO in a bounded
buffer; each carries its own ``concurrent.futures.Future`` reply slot.
``submit`` blocks while the buffer is full (backpressure). ``close`` flips
the worker to closed: work already accepted is still served, then the
thread exits; new submits (and submits still waiting for room) fail with
WorkerUnavailableError.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, Generic, Tuple, TypeVar

from core import metrics
from core.events import WorkerClosed, emit

from .exceptions import (
    ModelError,
    ModelGenerationError,
    WorkerUnavailableError,
)

logger = logging.getLogger(__name__)

M = TypeVar("M")
R = TypeVar("R")


class InferenceWorker(Generic[M]):
    def __init__(
        self,
        model: M | None = None,
        name: str = "worker",
        queue_depth: int = 10,
        factory: Callable[[], M] | None = None,
    ) -> None:
        """Start the worker thread.

        With ``factory`` the model is built on the worker thread itself and
        construction errors are re-raised here.
        """
        if queue_depth <= 0:
            raise ValueError("queue_depth must be >0")
        self.name = name
        self._model = model
        self._factory = factory
        self._depth = queue_depth
        self._ready: "Future[None]" = Future()
        self._pending: Deque[Tuple[Callable[[Any], Any], Future]] = deque()
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self._close_reported = False
        self._served = 0
        self._thread = threading.Thread(
            target=self._loop, name=f"inference-{name}", daemon=True
        )
        self._thread.start()
        self._ready.result()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def served(self) -> int:
        return self._served

    def submit(self, work: Callable[[M], R]) -> "Future[R]":
        fut: "Future[R]" = Future()
        with self._cond:
            while not self._closed and len(self._pending) >= self._depth:
                self._cond.wait()
            if self._closed:
                raise WorkerUnavailableError(f"worker {self.name} is closed")
            self._pending.append((work, fut))
            self._cond.notify_all()
        return fut

    def run(self, work: Callable[[M], R]) -> R:
        """Submit and wait for the result (re-raises the work's error)."""
        return self.submit(work).result()

    def close(self, timeout: float | None = 10.0) -> bool:
        """Stop after accepted work drains; True if the thread exited.

        May be called again after a timed-out close to wait some more.
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)
        joined = not self._thread.is_alive()
        if not joined:
            logger.warning(
                "worker %s did not stop within %ss", self.name, timeout
            )
        with self._cond:
            report = not self._close_reported
            self._close_reported = True
        if report:
            emit(WorkerClosed(worker=self.name, joined=joined, served=self._served))
        return joined

    # thread ---------------------------------------------------------------
    def _next(self) -> Tuple[Callable[[Any], Any], Future] | None:
        with self._cond:
            while not self._pending and not self._closed:
                self._cond.wait()
            if not self._pending:
                return None
            item = self._pending.popleft()
            self._cond.notify_all()
            return item

    def _loop(self) -> None:
        if self._factory is not None:
            try:
                self._model = self._factory()
            except Exception as e:  # noqa: BLE001
                with self._cond:
                    self._closed = True
                    self._cond.notify_all()
                self._ready.set_exception(e)
                return
        self._ready.set_result(None)
        while True:
            item = self._next()
            if item is None:
                break
            work, fut = item
            if not fut.set_running_or_notify_cancel():
                continue
            try:
                result = work(self._model)
            except ModelError as e:
                fut.set_exception(e)
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "worker %s request failed: %s", self.name, e, exc_info=True
                )
                err = ModelGenerationError(f"{self.name}: {e}")
                err.__cause__ = e
                fut.set_exception(err)
            else:
                fut.set_result(result)
            self._served += 1
            metrics.inc("worker_requests_total", {"worker": self.name})
        logger.debug("worker %s stopped served=%d", self.name, self._served)


__all__ = ["InferenceWorker"]

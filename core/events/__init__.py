"""Event dataclasses + any-subscriber bridge.

Per-event subscriptions go through `core.eventbus`. This module exposes
typed event records and `subscribe(handler)` where handler(name, payload)
receives every event (used by tests and the metrics collector).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from time import time
from typing import Any, Callable, Dict, List

from core import metrics as _metrics
from core.eventbus import emit as _emit_bus

EventHandler = Callable[[str, Dict[str, Any]], None]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BaseEvent:
    def to_event(self) -> Dict[str, Any]:  # noqa: D401
        data = asdict(self)
        data["ts"] = data.get("ts") or time()
        return data


@dataclass(slots=True)
class ModelLoaded(BaseEvent):
    model_id: int
    category: str
    capabilities: list[str]
    load_ms: int


@dataclass(slots=True)
class ModelLoadFailed(BaseEvent):
    model_id: int
    category: str
    error_type: str
    message: str | None = None


@dataclass(slots=True)
class ArtifactDownloaded(BaseEvent):
    """Artifact fully materialized (manifest written)."""
    location: str
    scheme: str  # huggingface|http
    files: int
    download_ms: int
    forced: bool = False


@dataclass(slots=True)
class ArtifactDownloadRetried(BaseEvent):
    """Retryable fetch failure; a backoff wait follows."""
    url: str
    attempt: int
    delay_s: float
    status: int | None = None
    message: str | None = None


@dataclass(slots=True)
class WorkerClosed(BaseEvent):
    worker: str
    joined: bool
    served: int


_ANY_SUBS: List[EventHandler] = []


def _metrics_collector(
    name: str, payload: Dict[str, Any]
) -> None:  # noqa: D401
    if name == "ModelLoaded":
        _metrics.inc(
            "model_loads_total",
            {"category": payload.get("category"), "status": "ok"},
        )
        _metrics.observe(
            "model_load_ms",
            payload.get("load_ms", 0),
            {"category": payload.get("category")},
        )
    elif name == "ModelLoadFailed":
        _metrics.inc(
            "model_loads_total",
            {"category": payload.get("category"), "status": "error"},
        )
    elif name == "ArtifactDownloaded":
        _metrics.inc(
            "artifact_downloads_total", {"scheme": payload.get("scheme")}
        )
        _metrics.observe(
            "artifact_download_ms",
            payload.get("download_ms", 0),
            {"scheme": payload.get("scheme")},
        )
    elif name == "ArtifactDownloadRetried":
        _metrics.inc(
            "artifact_download_retries_total",
            {"status": payload.get("status") or "transport"},
        )
    elif name == "WorkerClosed":
        _metrics.inc(
            "worker_closed_total", {"joined": payload.get("joined")}
        )


_ANY_SUBS.append(_metrics_collector)


def emit(ev: BaseEvent) -> None:
    name = ev.__class__.__name__
    payload = ev.to_event()
    _emit_bus(name, payload)
    for h in list(_ANY_SUBS):  # copy for isolation
        try:
            h(name, dict(payload))
        except Exception:  # noqa: BLE001
            logger.exception("event subscriber failed for %s", name)
            _metrics.inc("handler_exceptions_total", {"event": name})


def on(handler: EventHandler) -> None:
    _ANY_SUBS.append(handler)


def subscribe(handler: EventHandler) -> Callable[[], None]:
    on(handler)

    def _unsub() -> None:  # noqa: D401
        try:
            _ANY_SUBS.remove(handler)
        except ValueError:
            pass
    return _unsub


def reset_listeners_for_tests() -> None:  # pragma: no cover
    _ANY_SUBS.clear()
    _ANY_SUBS.append(_metrics_collector)


__all__ = [
    "emit",
    "on",
    "subscribe",
    "ModelLoaded",
    "ModelLoadFailed",
    "ArtifactDownloaded",
    "ArtifactDownloadRetried",
    "WorkerClosed",
    "reset_listeners_for_tests",
]

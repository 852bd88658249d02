from core import metrics
from core.eventbus import emit, subscribe
from core.events import ArtifactDownloaded, WorkerClosed
from core.events import emit as emit_event
from core.events import subscribe as subscribe_any


def test_eventbus_basic_dispatch():
    got = []
    unsub_a = subscribe("TestEvent", lambda p: got.append(p["value"]))
    unsub_b = subscribe("TestEvent", lambda p: got.append(p["value"] * 2))
    try:
        emit("TestEvent", {"value": 3})
    finally:
        unsub_a()
        unsub_b()
    assert sorted(got) == [3, 6]
    snap = metrics.snapshot()["counters"]
    assert any("events_emitted_total" in k for k in snap)


def test_eventbus_handler_exception_isolated():
    got = []

    def _boom(_payload):
        raise RuntimeError("listener bug")

    unsub_a = subscribe("Isolated", _boom)
    unsub_b = subscribe("Isolated", lambda p: got.append(p))
    try:
        emit("Isolated", {"x": 1})
    finally:
        unsub_a()
        unsub_b()
    assert len(got) == 1 and "ts" in got[0]
    assert metrics.counter_value("handler_exceptions_total", {"event": "Isolated"}) == 1


def test_typed_events_feed_metrics_and_subscribers():
    seen = []
    unsub = subscribe_any(lambda name, payload: seen.append((name, payload)))
    try:
        emit_event(
            ArtifactDownloaded(
                location="huggingface:org/repo",
                scheme="huggingface",
                files=3,
                download_ms=12,
            )
        )
        emit_event(WorkerClosed(worker="w", joined=True, served=4))
    finally:
        unsub()
    names = [n for n, _ in seen]
    assert names == ["ArtifactDownloaded", "WorkerClosed"]
    assert seen[0][1]["files"] == 3
    assert metrics.counter_value(
        "artifact_downloads_total", {"scheme": "huggingface"}
    ) == 1
    assert metrics.counter_value("worker_closed_total", {"joined": True}) == 1

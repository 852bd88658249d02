from fastapi.testclient import TestClient

from core import metrics
from core.artifacts import ArtifactCache
from core.config import load_config
from core.registry import DefinitionSource, ModelRegistry
from maiven.api.app import create_app, status_for


class _ClosingRegistry(ModelRegistry):
    closed = 0

    def close(self) -> None:
        type(self).closed += 1
        super().close()


def _app(tmp_path, registry=None):
    cfg = load_config(tmp_path)
    registry = registry or ModelRegistry(
        ArtifactCache(tmp_path / "cache"), DefinitionSource()
    )
    return create_app(registry=registry, cfg=cfg)


def test_api_health_ok(tmp_path):
    client = TestClient(_app(tmp_path))
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_api_models_empty(tmp_path):
    client = TestClient(_app(tmp_path))
    r = client.get("/models")
    assert r.status_code == 200
    assert r.json() == {"models": []}


def test_request_metrics_recorded(tmp_path):
    client = TestClient(_app(tmp_path))
    client.get("/health")
    client.get("/models/5")
    counters = metrics.snapshot()["counters"]
    assert counters.get("api_request_total{method=GET,route=/health}") == 1
    assert (
        counters.get("api_request_errors_total{method=GET,route=/models/5,status=404}")
        == 1
    )


def test_registry_closed_on_shutdown(tmp_path):
    registry = _ClosingRegistry(ArtifactCache(tmp_path / "cache"), DefinitionSource())
    with TestClient(_app(tmp_path, registry)) as client:
        assert client.get("/health").status_code == 200
        assert client.app.state.config.api.port == 9824
    assert _ClosingRegistry.closed == 1


def test_status_mapping():
    assert status_for("invalid-params") == 400
    assert status_for("model-not-found") == 404
    assert status_for("model-not-loaded") == 409
    assert status_for("network-error") == 502
    assert status_for("worker-unavailable") == 503
    assert status_for("load-failed") == 500
    assert status_for("artifact-io") == 500

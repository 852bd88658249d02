import httpx
import pytest

from core import metrics
from core.artifacts import NetworkFailure, RemoteFetcher, RetryPolicy
from core.events import subscribe


def _fetcher(statuses, sleeps, max_attempts=5):
    """Serve ``statuses`` in order for every request, then 200."""
    seq = list(statuses)
    calls = []

    def handler(request):
        calls.append(str(request.url))
        status = seq.pop(0) if seq else 200
        if status == "connect":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(status, content=b"payload")

    fetcher = RemoteFetcher(
        hub_endpoint="https://hub.test",
        retry=RetryPolicy(max_attempts=max_attempts, sleep=sleeps.append),
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    return fetcher, calls


def test_5xx_retried_with_exponential_waits(tmp_path):
    sleeps = []
    retried = []
    unsub = subscribe(
        lambda name, p: retried.append(p) if name == "ArtifactDownloadRetried" else None
    )
    fetcher, calls = _fetcher([503, 503, 200], sleeps)
    try:
        written = fetcher.download("https://hub.test/f.bin", tmp_path / "f.bin")
    finally:
        unsub()
    assert written == len(b"payload")
    assert (tmp_path / "f.bin").read_bytes() == b"payload"
    assert sleeps == [5.0, 10.0]
    assert len(calls) == 3
    assert [r["attempt"] for r in retried] == [1, 2]
    assert metrics.counter_value(
        "artifact_download_retries_total", {"status": 503}
    ) == 2


def test_4xx_terminal_no_retry(tmp_path):
    sleeps = []
    fetcher, calls = _fetcher([404], sleeps)
    with pytest.raises(NetworkFailure) as ei:
        fetcher.download("https://hub.test/missing.bin", tmp_path / "m.bin")
    assert ei.value.status == 404
    assert ei.value.retryable is False
    assert sleeps == []
    assert len(calls) == 1


def test_transport_error_is_retryable(tmp_path):
    sleeps = []
    fetcher, calls = _fetcher(["connect", 200], sleeps)
    fetcher.download("https://hub.test/f.bin", tmp_path / "f.bin")
    assert sleeps == [5.0]
    assert len(calls) == 2


def test_gives_up_after_max_attempts(tmp_path):
    sleeps = []
    fetcher, calls = _fetcher([500] * 10, sleeps, max_attempts=3)
    with pytest.raises(NetworkFailure) as ei:
        fetcher.download("https://hub.test/f.bin", tmp_path / "f.bin")
    assert ei.value.retryable is True
    assert len(calls) == 3
    assert sleeps == [5.0, 10.0]


def test_metadata_request_also_retried():
    sleeps = []
    seq = [502]

    def handler(request):
        if seq:
            return httpx.Response(seq.pop())
        return httpx.Response(
            200, json={"modelId": "org/repo", "siblings": [{"rfilename": "a.json"}]}
        )

    fetcher = RemoteFetcher(
        hub_endpoint="https://hub.test",
        retry=RetryPolicy(sleep=sleeps.append),
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    info = fetcher.model_info("org/repo")
    assert info.model_id == "org/repo"
    assert info.filenames() == ["a.json"]
    assert sleeps == [5.0]


def test_delay_capped():
    policy = RetryPolicy(initial_delay_s=5, factor=2, max_delay_s=12)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [5, 10, 12, 12]


def test_policy_from_config():
    from core.config.schemas.download import RetryConfig

    sleeps = []
    policy = RetryPolicy.from_config(
        RetryConfig(initial_delay_s=1, factor=3, max_attempts=2), sleep=sleeps.append
    )
    assert policy.delay_for(2) == 3
    assert policy.max_attempts == 2
    policy.sleep(0.5)
    assert sleeps == [0.5]

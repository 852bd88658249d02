import textwrap

import httpx

from core.config import load_config
from scripts.fetch_artifacts import fetch


def _setup(tmp_path):
    cfg_dir = tmp_path / "configs"
    reg_dir = tmp_path / "registry"
    cfg_dir.mkdir()
    reg_dir.mkdir()
    (cfg_dir / "base.yaml").write_text(
        textwrap.dedent(
            f"""
            storage:
              cache_dir: {tmp_path / 'cache'}
              registry_dir: {reg_dir}
            download:
              hub_endpoint: https://hub.test
            """
        ),
        encoding="utf-8",
    )
    (reg_dir / "1.yaml").write_text(
        "id: 1\nname: weights\ncategory: cross-encoder\n"
        "params: {code: embedding-weights, location: 'https://hub.test/w.bin'}\n",
        encoding="utf-8",
    )
    (reg_dir / "2.yaml").write_text(
        "id: 2\nname: remote\ncategory: chat\nparams: {code: openai-chat}\n",
        encoding="utf-8",
    )
    (reg_dir / "3.yaml").write_text(
        "id: 3\nname: gone\ncategory: bi-encoder\n"
        "params: {code: embedding-weights, location: 'https://hub.test/gone.bin'}\n",
        encoding="utf-8",
    )
    return load_config(cfg_dir)


def test_fetch_all_reports_each_definition(tmp_path, capsys):
    cfg = _setup(tmp_path)
    hits = []

    def handler(request):
        hits.append(request.url.path)
        if request.url.path == "/w.bin":
            return httpx.Response(200, content=b"abc")
        return httpx.Response(404)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    failures = fetch([], cfg=cfg, client=client)
    out = capsys.readouterr().out
    assert failures == 1
    assert "[ready] id=1 name=weights files=1" in out
    assert "[skip] id=2" in out
    assert "[failed] id=3" in out
    # cached second pass touches only the missing artifact
    hits.clear()
    fetch([1], cfg=cfg, client=client)
    assert hits == []
    fetch([1], force=True, cfg=cfg, client=client)
    assert hits == ["/w.bin"]


def test_fetch_unknown_id(tmp_path, capsys):
    cfg = _setup(tmp_path)
    assert fetch([42], cfg=cfg) == 1
    assert "[unknown] id=42" in capsys.readouterr().out

import textwrap

import pytest

from core import metrics
from core.config import ConfigError, as_dict, get_config, load_config


def _write_config(tmp_path, text, name="base.yaml"):
    (tmp_path / name).write_text(textwrap.dedent(text), encoding="utf-8")
    return tmp_path


def test_defaults_without_files(tmp_path, monkeypatch):
    monkeypatch.setenv("MAIVEN_CONFIG_DIR", str(tmp_path))
    cfg = get_config()
    assert cfg.schema_version == 1
    assert cfg.storage.cache_dir == ".cache/models"
    assert cfg.download.hub_endpoint == "https://huggingface.co"
    assert cfg.download.retry.initial_delay_s == 5.0
    assert cfg.llm.default_temperature == 0.3
    assert cfg.logging.format == "text"


def test_valid_load_and_overrides_file(tmp_path, monkeypatch):
    _write_config(
        tmp_path,
        """
        storage:
          cache_dir: /srv/cache
        llm:
          top_k: 20
        """,
    )
    _write_config(
        tmp_path,
        """
        llm:
          top_k: 5
        """,
        name="overrides.local.yaml",
    )
    monkeypatch.setenv("MAIVEN_CONFIG_DIR", str(tmp_path))
    cfg = get_config()
    assert cfg.storage.cache_dir == "/srv/cache"
    assert cfg.llm.top_k == 5
    # untouched keys keep defaults
    assert cfg.llm.top_p == 0.95


def test_unknown_top_level_key_rejected(tmp_path):
    _write_config(tmp_path, "rag: {}\n")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_invalid_section_value_counts_metric(tmp_path):
    _write_config(
        tmp_path,
        """
        llm:
          default_temperature: 3.0
        """,
    )
    with pytest.raises(ConfigError):
        load_config(tmp_path)
    assert (
        metrics.counter_value(
            "config_validation_errors_total",
            {"path": "llm", "code": "config-invalid"},
        )
        == 1
    )


def test_retry_cross_field_bounds(tmp_path):
    _write_config(
        tmp_path,
        """
        download:
          retry:
            initial_delay_s: 10
            max_delay_s: 1
        """,
    )
    with pytest.raises(ConfigError) as ei:
        load_config(tmp_path)
    assert "download.retry.max_delay_s" in str(ei.value)


def test_invalid_yaml(tmp_path):
    _write_config(tmp_path, "llm: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_env_override_metric_and_logging(tmp_path, monkeypatch, caplog):
    monkeypatch.setenv("MAIVEN_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("MAIVEN__DOWNLOAD__RETRY__MAX_ATTEMPTS", "2")
    monkeypatch.setenv("MAIVEN__LOGGING__FORMAT", "json")
    caplog.set_level("INFO", logger="core.config.loader")
    cfg = as_dict()
    assert cfg["download"]["retry"]["max_attempts"] == 2
    assert cfg["logging"]["format"] == "json"
    assert (
        metrics.counter_value(
            "env_override_total", {"path": "download.retry.max_attempts"}
        )
        == 1
    )
    assert "path=download.retry.max_attempts" in caplog.text


def test_get_config_cached_until_cleared(tmp_path, monkeypatch):
    from core.config import clear_config_cache

    monkeypatch.setenv("MAIVEN_CONFIG_DIR", str(tmp_path))
    first = get_config()
    assert get_config() is first
    _write_config(tmp_path, "api:\n  port: 9000\n")
    assert get_config().api.port == first.api.port
    clear_config_cache()
    assert get_config().api.port == 9000

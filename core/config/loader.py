"""Configuration loading & validation.

Precedence (last wins): base.yaml → overrides.local.yaml → ENV (MAIVEN__*).

ENV keys map onto nested sections with double underscores, e.g.
``MAIVEN__STORAGE__CACHE_DIR=/srv/models`` or
``MAIVEN__DOWNLOAD__RETRY__MAX_ATTEMPTS=3``. Values are cast to
bool/int/float when they parse as such.

Unknown top-level keys are rejected; each section is validated by its
schema class.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from core import metrics
from core.errors import validate_error_type
from pydantic import BaseModel, ConfigDict

from .schemas.core import ApiConfig, StorageConfig
from .schemas.download import DownloadConfig
from .schemas.llm import LLMConfig
from .schemas.observability import LoggingConfig

logger = logging.getLogger(__name__)


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    storage: StorageConfig = StorageConfig()
    download: DownloadConfig = DownloadConfig()
    llm: LLMConfig = LLMConfig()
    logging: LoggingConfig = LoggingConfig()
    api: ApiConfig = ApiConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
CONFIG_DIR_ENV = "MAIVEN_CONFIG_DIR"
ENV_PREFIX = "MAIVEN__"

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "storage": StorageConfig,
    "download": DownloadConfig,
    "llm": LLMConfig,
    "logging": LoggingConfig,
    "api": ApiConfig,
}


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _cast_env_value(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        target[path_parts[-1]] = _cast_env_value(value)
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        logger.info("config override path=%s source=env", dotted_path)


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if "schema_version" not in data:
        logger.debug("config schema_version missing, assuming 1")
        data["schema_version"] = 1
    return data


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate each known section via its schema class."""
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": validate_error_type("config-invalid")},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


def _cross_validate(cfg: AggregatedConfig) -> None:
    """Cross-field bounds that single-field validators cannot express."""
    errors: list[tuple[str, str]] = []
    retry = cfg.download.retry
    if retry.max_delay_s < retry.initial_delay_s:
        errors.append(
            ("download.retry.max_delay_s", ">= initial_delay_s required")
        )
    if not cfg.download.hub_endpoint.startswith(("http://", "https://")):
        errors.append(("download.hub_endpoint", "http(s) URL required"))
    if errors:
        code = validate_error_type("config-out-of-range")
        for path, _ in errors:
            metrics.inc(
                "config_validation_errors_total", {"path": path, "code": code}
            )
        details = ", ".join(f"{p}:{code}:{m}" for p, m in errors)
        raise ConfigError(f"config validation failed: {details}")


def load_config(cfg_dir: str | pathlib.Path | None = None) -> AggregatedConfig:
    """Build a fresh config from ``cfg_dir`` (uncached)."""
    root = pathlib.Path(cfg_dir) if cfg_dir else _resolve_config_dir()
    base_cfg = _load_yaml_if_exists(root / "base.yaml")
    overrides_cfg = _load_yaml_if_exists(root / "overrides.local.yaml")
    merged = _merge_dict(base_cfg, overrides_cfg)
    _apply_env(merged)
    migrated = _migrate_legacy(merged)
    validated_sub = _validate_sub_schemas(migrated)
    try:
        agg = AggregatedConfig.model_validate({**migrated, **validated_sub})
    except Exception as e:  # noqa: BLE001
        raise ConfigError(str(e)) from e
    _cross_validate(agg)
    return agg


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        return load_config()


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()

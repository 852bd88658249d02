"""Definition source: YAML files or JSON rows -> ModelDefinition index."""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping

import yaml
from yaml import YAMLError

from core.llm import ModelLoadError

from .definitions import ModelDefinition

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_definition_cache: Dict[Path, Dict[int, ModelDefinition]] = {}


def _iter_definition_files(registry_dir: Path) -> Iterator[Path]:
    for path in sorted(registry_dir.glob("*.yaml")):
        if path.is_file():
            yield path


def _load_definition_file(path: Path) -> ModelDefinition:
    """Load a single definition file.

    YAML containing tab characters (common accidental edit on Windows) is
    re-parsed with tabs replaced by two spaces so one sloppy file does not
    take the whole registry down.
    """
    raw_text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw_text) or {}
    except YAMLError as e:
        if "\t" not in raw_text:
            raise ModelLoadError(f"Invalid definition {path.name}: {e}") from e
        logger.warning("re-parsing definition tabs->spaces: %s", path.name)
        try:
            data = yaml.safe_load(raw_text.replace("\t", "  ")) or {}
        except YAMLError as e2:
            raise ModelLoadError(
                f"Invalid definition {path.name}: {e2}"
            ) from e2
    try:
        return ModelDefinition.model_validate(data)
    except Exception as e:  # noqa: BLE001
        raise ModelLoadError(f"Invalid definition {path.name}: {e}") from e


def _index(definitions: Iterable[ModelDefinition]) -> Dict[int, ModelDefinition]:
    index: Dict[int, ModelDefinition] = {}
    for definition in definitions:
        if definition.id in index:
            raise ModelLoadError(
                f"Duplicate model id in registry: {definition.id}"
            )
        index[definition.id] = definition
    return index


def load_definitions(registry_dir: str | Path) -> Dict[int, ModelDefinition]:
    """Load every ``*.yaml`` definition keyed by id (thread-safe cache)."""
    root = Path(registry_dir).resolve()
    with _registry_lock:
        if root in _definition_cache:
            return _definition_cache[root]
        if not root.exists():
            logger.info("registry dir %s missing; no definitions", root)
            _definition_cache[root] = {}
            return _definition_cache[root]
        index = _index(_load_definition_file(p) for p in _iter_definition_files(root))
        _definition_cache[root] = index
        return index


def clear_definition_cache(registry_dir: str | Path | None = None) -> None:
    """Clear cached definition index.

    If registry_dir provided, clear only that entry; else clear all.
    """
    with _registry_lock:
        if registry_dir is None:
            _definition_cache.clear()
        else:
            _definition_cache.pop(Path(registry_dir).resolve(), None)


def definition_from_row(row: Mapping[str, Any] | str | bytes) -> ModelDefinition:
    """Parse a database-style row ``{id, name, category, params}``.

    ``row`` may be a mapping or a JSON document; ``params`` may itself be a
    JSON string.
    """
    try:
        if isinstance(row, (str, bytes)):
            return ModelDefinition.model_validate_json(row)
        return ModelDefinition.model_validate(dict(row))
    except (ValueError, json.JSONDecodeError) as e:
        raise ModelLoadError(f"Invalid definition row: {e}") from e


class DefinitionSource:
    """Read-only lookup over a fixed set of definitions."""

    def __init__(self, definitions: Iterable[ModelDefinition] = ()) -> None:
        self._index = _index(definitions)

    @classmethod
    def from_dir(cls, registry_dir: str | Path) -> "DefinitionSource":
        return cls(load_definitions(registry_dir).values())

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any] | str | bytes]) -> "DefinitionSource":
        return cls(definition_from_row(r) for r in rows)

    def get(self, model_id: int) -> ModelDefinition | None:
        return self._index.get(model_id)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    def all(self) -> List[ModelDefinition]:
        return [self._index[k] for k in sorted(self._index)]


__all__ = [
    "DefinitionSource",
    "load_definitions",
    "clear_definition_cache",
    "definition_from_row",
]

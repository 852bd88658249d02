"""Artifact manifest (``manifest.json``) codec.

Format::

    {"files": ["config.json", "tokenizer.json", ...]}

Paths are relative to the artifact directory. The manifest is written
last, after every listed file is on disk, and replaced atomically, so a
present + decodable manifest means the download completed.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ArtifactIOError, ManifestCodecError

MANIFEST_NAME = "manifest.json"


class ArtifactManifest(BaseModel):
    files: List[str]

    model_config = ConfigDict(extra="ignore")


def manifest_path(directory: Path) -> Path:
    return directory / MANIFEST_NAME


def read_manifest(directory: Path) -> ArtifactManifest:
    path = manifest_path(directory)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ArtifactIOError(f"cannot read manifest {path}: {e}") from e
    try:
        return ArtifactManifest.model_validate_json(raw)
    except ValidationError as e:
        raise ManifestCodecError(f"invalid manifest {path}: {e}") from e


def write_manifest(directory: Path, files: List[str]) -> Path:
    path = manifest_path(directory)
    tmp = path.with_suffix(".json.tmp")
    payload = json.dumps(ArtifactManifest(files=files).model_dump())
    try:
        tmp.write_text(payload, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise ArtifactIOError(f"cannot write manifest {path}: {e}") from e
    return path


def is_materialized(directory: Path) -> bool:
    """True iff the manifest decodes and every listed file exists."""
    if not manifest_path(directory).is_file():
        return False
    try:
        manifest = read_manifest(directory)
    except (ArtifactIOError, ManifestCodecError):
        return False
    return all((directory / name).is_file() for name in manifest.files)


__all__ = [
    "MANIFEST_NAME",
    "ArtifactManifest",
    "manifest_path",
    "read_manifest",
    "write_manifest",
    "is_materialized",
]

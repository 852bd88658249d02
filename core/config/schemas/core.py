"""Core/system schemas: storage paths and API binding."""
from __future__ import annotations

from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    # Writable root for downloaded model artifacts (process-wide).
    cache_dir: str = ".cache/models"
    # Directory holding model definition YAML files.
    registry_dir: str = "registry/models"


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(9824, ge=1, le=65535)

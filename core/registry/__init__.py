"""Model registry.

Responsibilities:
- Load model definitions from YAML files (or JSON rows)
- Materialize weights through the ArtifactCache and build backends
- Keep loaded models per capability; lookup, listing, request dispatch
"""

from .definitions import ModelCategory, ModelDefinition  # noqa: F401
from .loader import DefinitionSource, load_definitions  # noqa: F401
from .registry import ModelRegistry  # noqa: F401

__all__ = [
    "ModelCategory",
    "ModelDefinition",
    "DefinitionSource",
    "load_definitions",
    "ModelRegistry",
]

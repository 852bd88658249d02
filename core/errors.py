"""Central Error Taxonomy enforcement.

Every exception surfaced by the core maps to one stable ``error_type``
code. Presentation (HTTP status, message sanitizing) is decided at the API
boundary from the code alone.
"""
from __future__ import annotations

from core.artifacts.errors import (
    ArtifactError,
    ArtifactIOError,
    InvalidLocation,
    ManifestCodecError,
    NetworkFailure,
    UnknownLocationScheme,
)
from core.llm.exceptions import (
    InvalidParameterError,
    ModelGenerationError,
    ModelLoadError,
    ModelNotFoundError,
    ModelNotLoadedError,
    UnknownBackendError,
    WorkerUnavailableError,
)

_ALLOWED_ERROR_TYPES = {
    # artifact
    "artifact-io",
    "artifact-codec",
    "network-error",
    "unknown-location-scheme",
    "invalid-location",
    # model.load
    "unknown-backend",
    "load-failed",
    # request
    "invalid-params",
    "model-not-found",
    "model-not-loaded",
    # runtime
    "worker-unavailable",
    "provider-error",
    # infra
    "config-invalid",
    "config-out-of-range",
    "event-handler-error",
}

# Most specific first; isinstance order matters.
_EXCEPTION_CODES: tuple[tuple[type[Exception], str], ...] = (
    (ArtifactIOError, "artifact-io"),
    (ManifestCodecError, "artifact-codec"),
    (NetworkFailure, "network-error"),
    (UnknownLocationScheme, "unknown-location-scheme"),
    (InvalidLocation, "invalid-location"),
    (ArtifactError, "artifact-io"),
    (UnknownBackendError, "unknown-backend"),
    (InvalidParameterError, "invalid-params"),
    (ModelNotFoundError, "model-not-found"),
    (ModelNotLoadedError, "model-not-loaded"),
    (WorkerUnavailableError, "worker-unavailable"),
    (ModelGenerationError, "provider-error"),
)


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: BaseException) -> str:
    """Return the taxonomy code for ``e``.

    A ModelLoadError reports the code of its chained cause when that cause
    is itself classified (e.g. a download failure), else ``load-failed``.
    """
    if isinstance(e, ModelLoadError):
        cause = e.__cause__
        if isinstance(cause, (ArtifactError, UnknownBackendError)):
            return map_exception(cause)
        return "load-failed"
    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(e, exc_type):
            return code
    return "provider-error"


__all__ = ["validate_error_type", "map_exception"]

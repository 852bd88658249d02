"""Model related exception hierarchy."""
from __future__ import annotations


class ModelError(Exception):
    """Base model exception."""


class ModelNotFoundError(ModelError):
    """No definition exists for the requested model id."""

    def __init__(self, model_id: int) -> None:
        super().__init__(f"Unknown model id: {model_id}")
        self.model_id = model_id


class ModelNotLoadedError(ModelError):
    """Model exists but is not loaded for the requested capability."""

    def __init__(self, model_id: int, capability: str) -> None:
        super().__init__(
            f"Model {model_id} is not loaded for capability '{capability}'"
        )
        self.model_id = model_id
        self.capability = capability


class ModelLoadError(ModelError):
    """Raised when model cannot be loaded.

    Typical reasons: artifact download failure, missing weights file,
    runtime init failure. The underlying exception is chained as
    ``__cause__``.
    """


class UnknownBackendError(ModelError):
    """Category / params / architecture combination has no backend."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unsupported model type {name}")
        self.name = name


class WorkerUnavailableError(ModelError):
    """Inference worker has closed or is closing."""


class ModelGenerationError(ModelError):
    """Raised when the backend fails while serving a request."""


class InvalidParameterError(ModelError):
    """Request parameter failed validation before backend invocation."""

    def __init__(self, name: str, reason: str | None = None) -> None:
        msg = f"Invalid parameter '{name}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.name = name

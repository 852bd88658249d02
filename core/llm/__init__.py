"""Capability adapters and inference workers.

Heavy runtimes (llama_cpp, sentence_transformers, openai) are imported
lazily by the backends that need them.
"""

from .exceptions import (  # noqa: F401
    InvalidParameterError,
    ModelError,
    ModelGenerationError,
    ModelLoadError,
    ModelNotFoundError,
    ModelNotLoadedError,
    UnknownBackendError,
    WorkerUnavailableError,
)
from .provider import (  # noqa: F401
    Capability,
    ChatModel,
    CompletionModel,
    EmbeddingModel,
    ModelInfo,
    RerankModel,
    capabilities_of,
)
from .types import (  # noqa: F401
    ChatMessage,
    ChatRole,
    ChatSubmission,
    CompletionSubmission,
    check_temperature,
)
from .worker import InferenceWorker  # noqa: F401

__all__ = [
    "InvalidParameterError",
    "ModelError",
    "ModelGenerationError",
    "ModelLoadError",
    "ModelNotFoundError",
    "ModelNotLoadedError",
    "UnknownBackendError",
    "WorkerUnavailableError",
    "Capability",
    "ChatModel",
    "CompletionModel",
    "EmbeddingModel",
    "ModelInfo",
    "RerankModel",
    "capabilities_of",
    "ChatMessage",
    "ChatRole",
    "ChatSubmission",
    "CompletionSubmission",
    "check_temperature",
    "InferenceWorker",
]

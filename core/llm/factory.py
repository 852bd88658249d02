"""Backend factory: (category, params code) -> capability object.

Dispatch is a closed table; adding a backend means adding a branch here.
Artifacts must already be materialized (``paths``) for weight-backed
params; remote API params ignore ``paths``.
"""
from __future__ import annotations

import logging
from typing import Any

from .embeddings import BiEncoderModel, CrossEncoderModel
from .exceptions import ModelLoadError, UnknownBackendError
from .llama_cpp_provider import (
    LlamaChatModel,
    LlamaCompletionModel,
    check_architecture,
    find_weights_file,
)
from .openai_provider import OpenAIChatModel, OpenAICompletionModel

logger = logging.getLogger(__name__)

CHAT_CATEGORIES = ("chat", "instruct")


def _require_paths(definition: Any, paths: Any) -> Any:
    if paths is None:
        raise ModelLoadError(
            f"model {definition.id} has no materialized weights"
        )
    return paths


def _cfg_value(llm_cfg: Any, name: str, default: Any = None) -> Any:
    if llm_cfg is None:
        return default
    return getattr(llm_cfg, name, default)


def build_backend(definition: Any, paths: Any = None, llm_cfg: Any = None) -> Any:
    category = str(getattr(definition.category, "value", definition.category))
    params = definition.params
    code = params.code
    logger.debug(
        "building backend id=%s category=%s code=%s", definition.id, category, code
    )
    if category in CHAT_CATEGORIES and code == "openai-chat":
        return OpenAIChatModel(
            model=params.model or _cfg_value(llm_cfg, "openai_chat_model", "gpt-3.5-turbo"),
            base_url=params.base_url or _cfg_value(llm_cfg, "openai_base_url"),
            name=definition.name,
        )
    if category == "complete" and code == "openai-completions":
        return OpenAICompletionModel(
            model=params.model
            or _cfg_value(llm_cfg, "openai_completion_model", "gpt-3.5-turbo-instruct"),
            base_url=params.base_url or _cfg_value(llm_cfg, "openai_base_url"),
            name=definition.name,
        )
    if code == "local-weights" and category in CHAT_CATEGORIES + ("complete",):
        check_architecture(params.architecture)
        paths = _require_paths(definition, paths)
        cls = LlamaChatModel if category in CHAT_CATEGORIES else LlamaCompletionModel
        return cls.load(
            definition.name,
            params.architecture,
            find_weights_file(paths.files, paths.weights),
            tokenizer_dir=paths.tokenizer,
            llm_cfg=llm_cfg,
        )
    if code == "embedding-weights" and category == "bi-encoder":
        paths = _require_paths(definition, paths)
        return BiEncoderModel.load(definition.name, paths.weights, llm_cfg)
    if code == "embedding-weights" and category == "cross-encoder":
        paths = _require_paths(definition, paths)
        return CrossEncoderModel.load(definition.name, paths.weights, llm_cfg)
    raise UnknownBackendError(f"{category}/{code}")


__all__ = ["build_backend", "CHAT_CATEGORIES"]

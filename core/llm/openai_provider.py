"""Remote OpenAI-compatible chat / completions backends.

No local weights; the ``openai`` client is created lazily (and can be
injected by tests). The API key comes from ``OPENAI_API_KEY`` as usual for
the client library.
"""
from __future__ import annotations

import logging
from typing import Any

from .exceptions import ModelGenerationError, ModelLoadError
from .provider import ChatModel, CompletionModel
from .types import (
    ChatMessage,
    ChatRole,
    ChatSubmission,
    CompletionSubmission,
    validate_chat,
    validate_completion,
)


def _make_client(base_url: str | None) -> Any:
    try:
        import openai
    except ImportError as e:
        raise ModelLoadError("openai client is not installed") from e
    try:
        return openai.OpenAI(base_url=base_url) if base_url else openai.OpenAI()
    except openai.OpenAIError as e:
        raise ModelLoadError(f"cannot create OpenAI client: {e}") from e


class _OpenAIBackend:
    def __init__(
        self,
        model: str,
        base_url: str | None = None,
        client: Any = None,
        name: str | None = None,
    ) -> None:
        self.model = model
        self.name = name or model
        self._client = client if client is not None else _make_client(base_url)
        self.logger = logging.getLogger(__name__)

    def _call(self, fn, **kwargs):
        try:
            return fn(model=self.model, **kwargs)
        except Exception as e:  # noqa: BLE001
            self.logger.error("OpenAI request failed for %s: %s", self.name, e)
            raise ModelGenerationError(f"remote API error: {e}") from e


class OpenAIChatModel(_OpenAIBackend, ChatModel):
    def chat(self, submission: ChatSubmission) -> ChatMessage:
        validate_chat(submission)
        kwargs: dict[str, Any] = {
            "messages": [m.as_dict() for m in submission.messages]
        }
        if submission.temperature is not None:
            kwargs["temperature"] = submission.temperature
        resp = self._call(self._client.chat.completions.create, **kwargs)
        content = resp.choices[0].message.content or ""
        return ChatMessage(role=ChatRole.ASSISTANT, content=content)


class OpenAICompletionModel(_OpenAIBackend, CompletionModel):
    def complete(self, submission: CompletionSubmission) -> str:
        validate_completion(submission)
        kwargs: dict[str, Any] = {"prompt": submission.prompt}
        if submission.temperature is not None:
            kwargs["temperature"] = submission.temperature
        resp = self._call(self._client.completions.create, **kwargs)
        return resp.choices[0].text or ""


__all__ = ["OpenAIChatModel", "OpenAICompletionModel"]

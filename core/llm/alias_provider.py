from __future__ import annotations

from .provider import ChatModel, CompletionModel
from .types import (
    ChatMessage,
    ChatRole,
    ChatSubmission,
    CompletionSubmission,
    validate_completion,
)


class ChatCompletionAdapter(CompletionModel):
    """Serve completions from a chat backend.

    The prompt is sent as a single user message and the assistant reply
    content is the completion. Shares the underlying chat object; nothing
    is reloaded.
    """

    def __init__(self, base: ChatModel) -> None:
        self._base = base

    @property
    def base(self) -> ChatModel:
        return self._base

    def complete(self, submission: CompletionSubmission) -> str:  # noqa: D401
        validate_completion(submission)
        reply = self._base.chat(
            ChatSubmission(
                messages=[ChatMessage(ChatRole.USER, submission.prompt)],
                temperature=submission.temperature,
            )
        )
        return reply.content

    def close(self) -> bool:  # noqa: D401
        # Do not close base; the chat collection still references it.
        return True

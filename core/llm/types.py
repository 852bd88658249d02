"""LLM shared request / response types."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .exceptions import InvalidParameterError

TEMPERATURE_MIN_EXCLUSIVE = 0.0
TEMPERATURE_MAX = 2.0


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(slots=True)
class ChatMessage:
    role: ChatRole
    content: str
    name: Optional[str] = None

    def as_dict(self) -> dict:
        out = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            out["name"] = self.name
        return out


@dataclass(slots=True)
class ChatSubmission:
    messages: List[ChatMessage] = field(default_factory=list)
    temperature: Optional[float] = None


@dataclass(slots=True)
class CompletionSubmission:
    prompt: str
    temperature: Optional[float] = None


def check_temperature(value: float | None) -> float | None:
    """Reject temperatures outside (0, 2]; None means backend default."""
    if value is None:
        return None
    if not (TEMPERATURE_MIN_EXCLUSIVE < value <= TEMPERATURE_MAX):
        raise InvalidParameterError(
            "temperature", f"{value} not in (0, {TEMPERATURE_MAX:g}]"
        )
    return value


def validate_chat(submission: ChatSubmission) -> None:
    if not submission.messages:
        raise InvalidParameterError("messages", "at least one message required")
    check_temperature(submission.temperature)


def validate_completion(submission: CompletionSubmission) -> None:
    if not submission.prompt:
        raise InvalidParameterError("prompt", "must not be empty")
    check_temperature(submission.temperature)


__all__ = [
    "ChatRole",
    "ChatMessage",
    "ChatSubmission",
    "CompletionSubmission",
    "check_temperature",
    "validate_chat",
    "validate_completion",
]

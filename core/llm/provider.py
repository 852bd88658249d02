"""Capability contracts implemented by every backend.

A backend object may satisfy several contracts at once; the registry
files it under each capability it provides. Backends must not allocate
heavy resources on import; the factory constructs them with paths that
are already materialized.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

from .types import ChatMessage, ChatSubmission, CompletionSubmission


class Capability(str, Enum):
    CHAT = "chat"
    COMPLETION = "completion"
    EMBEDDING = "embedding"
    RERANK = "rerank"


@dataclass(frozen=True)
class ModelInfo:
    id: int
    name: str
    category: str
    capabilities: tuple[str, ...]
    loaded: tuple[str, ...] = ()


class ChatModel(ABC):
    @abstractmethod
    def chat(self, submission: ChatSubmission) -> ChatMessage:
        """Return the assistant reply for the conversation."""


class CompletionModel(ABC):
    @abstractmethod
    def complete(self, submission: CompletionSubmission) -> str:
        """Return generated continuation text for the prompt."""


class EmbeddingModel(ABC):
    @abstractmethod
    def encode(self, sentences: Sequence[str]) -> List[List[float]]:
        """One vector per input sentence, input order."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Vector length."""


class RerankModel(ABC):
    @abstractmethod
    def rerank(self, query: str, passages: Sequence[str]) -> List[float]:
        """One relevance score per passage, input order."""


def capabilities_of(backend: object) -> tuple[Capability, ...]:
    caps: list[Capability] = []
    if isinstance(backend, ChatModel):
        caps.append(Capability.CHAT)
    if isinstance(backend, CompletionModel):
        caps.append(Capability.COMPLETION)
    if isinstance(backend, EmbeddingModel):
        caps.append(Capability.EMBEDDING)
    if isinstance(backend, RerankModel):
        caps.append(Capability.RERANK)
    return tuple(caps)


__all__ = [
    "Capability",
    "ModelInfo",
    "ChatModel",
    "CompletionModel",
    "EmbeddingModel",
    "RerankModel",
    "capabilities_of",
]

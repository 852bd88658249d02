"""Model definition schema.

A definition names a model, its category and its backend params. Params
are a tagged union on ``code``; database rows may carry them as a JSON
string. Definitions are frozen once parsed.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.llm.provider import Capability


class ModelCategory(str, Enum):
    CHAT = "chat"
    INSTRUCT = "instruct"
    COMPLETE = "complete"
    CROSS_ENCODER = "cross-encoder"
    BI_ENCODER = "bi-encoder"


CATEGORY_CAPABILITIES: dict[ModelCategory, tuple[Capability, ...]] = {
    ModelCategory.CHAT: (Capability.CHAT, Capability.COMPLETION),
    ModelCategory.INSTRUCT: (Capability.CHAT, Capability.COMPLETION),
    ModelCategory.COMPLETE: (Capability.COMPLETION,),
    ModelCategory.BI_ENCODER: (Capability.EMBEDDING,),
    ModelCategory.CROSS_ENCODER: (Capability.RERANK,),
}

_FROZEN = ConfigDict(frozen=True, extra="forbid")


class OpenAIChatParams(BaseModel):
    code: Literal["openai-chat"]
    model: Optional[str] = None
    base_url: Optional[str] = None

    model_config = _FROZEN


class OpenAICompletionsParams(BaseModel):
    code: Literal["openai-completions"]
    model: Optional[str] = None
    base_url: Optional[str] = None

    model_config = _FROZEN


class LocalWeightsParams(BaseModel):
    code: Literal["local-weights"]
    architecture: str
    location: str
    tokenizer_location: Optional[str] = None
    pattern: Optional[str] = None

    model_config = _FROZEN


class EmbeddingWeightsParams(BaseModel):
    code: Literal["embedding-weights"]
    location: str
    pattern: Optional[str] = None

    model_config = _FROZEN


ModelParams = Annotated[
    Union[
        OpenAIChatParams,
        OpenAICompletionsParams,
        LocalWeightsParams,
        EmbeddingWeightsParams,
    ],
    Field(discriminator="code"),
]


class ModelDefinition(BaseModel):
    id: int
    name: str
    category: ModelCategory
    params: ModelParams

    model_config = _FROZEN

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, v: str) -> str:  # noqa: D401
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v

    @field_validator("params", mode="before")
    @classmethod
    def _decode_params(cls, v):  # noqa: D401
        if isinstance(v, (str, bytes)):
            try:
                return json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"params is not valid JSON: {e}") from e
        return v

    def capabilities(self) -> tuple[Capability, ...]:
        return CATEGORY_CAPABILITIES[self.category]

    @property
    def has_weights(self) -> bool:
        return getattr(self.params, "location", None) is not None


__all__ = [
    "ModelCategory",
    "CATEGORY_CAPABILITIES",
    "OpenAIChatParams",
    "OpenAICompletionsParams",
    "LocalWeightsParams",
    "EmbeddingWeightsParams",
    "ModelParams",
    "ModelDefinition",
]

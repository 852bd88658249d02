"""/models routes: listing, explicit load, and per-capability requests."""
from __future__ import annotations

from dataclasses import asdict
from typing import List, Literal, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from core.llm import ChatMessage, ChatRole, ChatSubmission, CompletionSubmission
from core.registry import ModelRegistry

router = APIRouter()


class ChatMessageIn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str
    name: Optional[str] = None


class ChatRequest(BaseModel):
    messages: List[ChatMessageIn]
    temperature: Optional[float] = None


class CompleteRequest(BaseModel):
    prompt: str
    temperature: Optional[float] = None


class EncodeRequest(BaseModel):
    sentences: List[str]


class RerankRequest(BaseModel):
    query: str
    passages: List[str]


def _registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


@router.get("/models")
def list_models(request: Request):  # noqa: D401
    return {"models": [asdict(m) for m in _registry(request).list_models()]}


@router.get("/models/{model_id}")
def model_info(model_id: int, request: Request):  # noqa: D401
    return asdict(_registry(request).info(model_id))


@router.post("/models/{model_id}/load")
def load_model(model_id: int, request: Request):  # noqa: D401
    registry = _registry(request)
    registry.load_id(model_id)
    return asdict(registry.info(model_id))


@router.post("/models/{model_id}/chat")
def chat(model_id: int, body: ChatRequest, request: Request):  # noqa: D401
    submission = ChatSubmission(
        messages=[
            ChatMessage(ChatRole(m.role), m.content, name=m.name)
            for m in body.messages
        ],
        temperature=body.temperature,
    )
    reply = _registry(request).chat(model_id, submission)
    return {"message": reply.as_dict()}


@router.post("/models/{model_id}/complete")
def complete(model_id: int, body: CompleteRequest, request: Request):  # noqa: D401
    text = _registry(request).complete(
        model_id,
        CompletionSubmission(prompt=body.prompt, temperature=body.temperature),
    )
    return {"text": text}


@router.post("/models/{model_id}/encode")
def encode(model_id: int, body: EncodeRequest, request: Request):  # noqa: D401
    return {"embeddings": _registry(request).encode(model_id, body.sentences)}


@router.post("/models/{model_id}/rerank")
def rerank(model_id: int, body: RerankRequest, request: Request):  # noqa: D401
    return {"scores": _registry(request).rerank(model_id, body.query, body.passages)}

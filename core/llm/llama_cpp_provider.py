"""llama.cpp backends (local GGUF weights).

Summary:
* ``llama_cpp`` is imported lazily inside ``load`` so importing this module
  never requires the native library.
* The ``Llama`` object is owned by an InferenceWorker thread; every
  tokenize / eval / sample call runs there.
* Chat prompts: each message is tokenized on its own (thread pool, order
  kept), wrapped with ``<|im_start|>`` / ``<|im_end|>`` when the vocabulary
  has them, followed by a newline token, and the whole sequence is
  optionally prefixed by BOS.
* Generation samples until the next-token step returns None (EOS, end
  marker or full context window). Turn markers are never emitted.
* GPU offload failure falls back to CPU (``llama_gpu_fallback_total``).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from core import metrics

from .exceptions import ModelLoadError, UnknownBackendError
from .provider import ChatModel, CompletionModel
from .types import (
    ChatMessage,
    ChatRole,
    ChatSubmission,
    CompletionSubmission,
    validate_chat,
    validate_completion,
)
from .worker import InferenceWorker

logger = logging.getLogger(__name__)

# GGUF ``general.architecture`` values we accept.
KNOWN_ARCHITECTURES = frozenset(
    {
        "bloom",
        "gpt2",
        "gptj",
        "gpt-neox",
        "llama",
        "mpt",
        "falcon",
        "mistral",
        "qwen2",
        "phi3",
        "gemma",
        "starcoder",
    }
)

IM_START = "<|im_start|>"
IM_END = "<|im_end|>"
_TOKENIZE_POOL_MAX = 4


@dataclass(slots=True)
class SamplingDefaults:
    temperature: float = 0.3
    top_p: float = 0.95
    top_k: int = 40


def check_architecture(architecture: str) -> str:
    arch = architecture.strip().lower()
    if arch not in KNOWN_ARCHITECTURES:
        raise UnknownBackendError(architecture)
    return arch


def find_weights_file(files: Sequence[Path], weights: Path) -> Path:
    for f in files:
        if f.suffix == ".gguf":
            return f
    if weights.is_file():
        return weights
    raise ModelLoadError(f"no .gguf weights file under {weights}")


def _single_token(llama: Any, text: str) -> Optional[int]:
    toks = llama.tokenize(text.encode("utf-8"), add_bos=False, special=True)
    if len(toks) == 1:
        return toks[0]
    return None


class _LlamaSession:
    """Token-level generation against one llama object (worker thread only)."""

    def __init__(self, llama: Any, sampling: SamplingDefaults) -> None:
        self.llama = llama
        self.sampling = sampling
        self.start_token = _single_token(llama, IM_START)
        self.end_token = _single_token(llama, IM_END)
        self.newline = llama.tokenize(b"\n", add_bos=False)
        self.bos = llama.token_bos()
        self.eos = llama.token_eos()

    def chat_tokens(self, messages: Sequence[ChatMessage]) -> List[int]:
        def _tok(message: ChatMessage) -> List[int]:
            return self.llama.tokenize(
                message.content.encode("utf-8"), add_bos=False
            )

        workers = max(1, min(len(messages), _TOKENIZE_POOL_MAX))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            per_message = list(pool.map(_tok, messages))
        tokens: List[int] = []
        if self.bos is not None and self.bos >= 0:
            tokens.append(self.bos)
        for toks in per_message:
            if self.start_token is not None:
                tokens.append(self.start_token)
            tokens.extend(toks)
            if self.end_token is not None:
                tokens.append(self.end_token)
            tokens.extend(self.newline)
        return tokens

    def prompt_tokens(self, prompt: str) -> List[int]:
        return self.llama.tokenize(prompt.encode("utf-8"), add_bos=True)

    def _next_token(self, temperature: float) -> Optional[int]:
        if self.llama.n_tokens >= self.llama.n_ctx():
            return None
        tok = self.llama.sample(
            top_k=self.sampling.top_k,
            top_p=self.sampling.top_p,
            temp=temperature,
        )
        if tok == self.eos or tok == self.end_token:
            return None
        self.llama.eval([tok])
        return tok

    def generate(self, tokens: List[int], temperature: float | None) -> str:
        temp = temperature if temperature is not None else self.sampling.temperature
        self.llama.reset()
        self.llama.eval(tokens)
        out: List[int] = []
        while True:
            tok = self._next_token(temp)
            if tok is None:
                break
            if tok == self.start_token:
                continue
            out.append(tok)
        logger.debug("generated input_tokens=%d output_tokens=%d", len(tokens), len(out))
        return self.llama.detokenize(out).decode("utf-8", errors="replace")


class _LlamaBackend:
    def __init__(
        self,
        llama: Any,
        name: str,
        sampling: SamplingDefaults | None = None,
        queue_depth: int = 10,
        join_timeout_s: float = 10.0,
    ) -> None:
        self.name = name
        self._join_timeout_s = join_timeout_s
        session_defaults = sampling or SamplingDefaults()
        self._worker: InferenceWorker[_LlamaSession] = InferenceWorker(
            name=name,
            queue_depth=queue_depth,
            factory=lambda: _LlamaSession(llama, session_defaults),
        )

    @classmethod
    def load(
        cls,
        name: str,
        architecture: str,
        weights_file: Path,
        tokenizer_dir: Path | None = None,
        llm_cfg: Any = None,
    ):
        check_architecture(architecture)
        try:
            from llama_cpp import Llama  # type: ignore
        except ImportError as e:
            raise ModelLoadError("llama-cpp-python is not installed") from e
        kwargs: Dict[str, Any] = {
            "model_path": str(weights_file),
            "verbose": False,
        }
        sampling = SamplingDefaults()
        queue_depth, join_timeout = 10, 10.0
        if llm_cfg is not None:
            kwargs["n_ctx"] = llm_cfg.context_length
            if llm_cfg.n_threads is not None:
                kwargs["n_threads"] = llm_cfg.n_threads
            kwargs["n_gpu_layers"] = llm_cfg.n_gpu_layers
            sampling = SamplingDefaults(
                temperature=llm_cfg.default_temperature,
                top_p=llm_cfg.top_p,
                top_k=llm_cfg.top_k,
            )
            queue_depth = llm_cfg.worker_queue_depth
            join_timeout = llm_cfg.worker_join_timeout_s
        if tokenizer_dir is not None:
            from llama_cpp.llama_tokenizer import LlamaHFTokenizer  # type: ignore

            kwargs["tokenizer"] = LlamaHFTokenizer.from_pretrained(
                str(tokenizer_dir)
            )
        logger.info("loading llama model name=%s path=%s", name, weights_file)
        try:
            llama = Llama(**kwargs)
        except Exception as gpu_exc:  # noqa: BLE001
            if kwargs.get("n_gpu_layers") in (None, 0):
                raise ModelLoadError(f"llama init failed: {gpu_exc}") from gpu_exc
            fallback = dict(kwargs, n_gpu_layers=0)
            try:
                llama = Llama(**fallback)
            except Exception as e:  # noqa: BLE001
                raise ModelLoadError(f"llama init failed: {e}") from gpu_exc
            metrics.inc("llama_gpu_fallback_total", {"model": name})
            logger.warning("GPU offload failed for %s, using CPU", name)
        return cls(
            llama,
            name=name,
            sampling=sampling,
            queue_depth=queue_depth,
            join_timeout_s=join_timeout,
        )

    def close(self) -> bool:
        return self._worker.close(self._join_timeout_s)


class LlamaChatModel(_LlamaBackend, ChatModel):
    def chat(self, submission: ChatSubmission) -> ChatMessage:  # noqa: D401
        validate_chat(submission)

        def _work(session: _LlamaSession) -> str:
            tokens = session.chat_tokens(submission.messages)
            return session.generate(tokens, submission.temperature)

        return ChatMessage(role=ChatRole.ASSISTANT, content=self._worker.run(_work))


class LlamaCompletionModel(_LlamaBackend, CompletionModel):
    def complete(self, submission: CompletionSubmission) -> str:  # noqa: D401
        validate_completion(submission)

        def _work(session: _LlamaSession) -> str:
            tokens = session.prompt_tokens(submission.prompt)
            return session.generate(tokens, submission.temperature)

        return self._worker.run(_work)


__all__ = [
    "KNOWN_ARCHITECTURES",
    "SamplingDefaults",
    "LlamaChatModel",
    "LlamaCompletionModel",
    "check_architecture",
    "find_weights_file",
]

"""ModelRegistry: load-on-demand, per-capability collections of models.

Lifecycle per (id, capability): Unloaded -> Loading -> Loaded, or
Loading -> Failed which callers observe as Unloaded (a later load may
retry). Entries are never removed.

Concurrency:
 - one reader/writer lock per capability collection
 - loads are single-flighted per model id: concurrent callers share one
   download + construction and observe the same outcome
 - registration happens only after construction succeeded, so a failure
   leaves nothing behind
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from core.artifacts import ArtifactCache
from core.errors import map_exception, validate_error_type
from core.events import ModelLoaded, ModelLoadFailed, emit
from core.llm import (
    Capability,
    ChatMessage,
    ChatModel,
    ChatSubmission,
    CompletionModel,
    CompletionSubmission,
    EmbeddingModel,
    ModelInfo,
    ModelLoadError,
    ModelNotFoundError,
    ModelNotLoadedError,
    RerankModel,
)
from core.llm.alias_provider import ChatCompletionAdapter
from core.llm.factory import build_backend
from core.llm.types import validate_chat, validate_completion
from core.singleflight import SingleFlight

from .definitions import ModelDefinition
from .loader import DefinitionSource

logger = logging.getLogger(__name__)

BackendFactory = Callable[[ModelDefinition, Any, Any], Any]

_CAPABILITY_TYPES = {
    Capability.CHAT: ChatModel,
    Capability.COMPLETION: CompletionModel,
    Capability.EMBEDDING: EmbeddingModel,
    Capability.RERANK: RerankModel,
}


class _RWLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class _Collection:
    """Insertion-ordered id -> handle map for one capability."""

    def __init__(self) -> None:
        self._lock = _RWLock()
        self._items: Dict[int, Any] = {}

    def get(self, model_id: int) -> Any | None:
        with self._lock.read():
            return self._items.get(model_id)

    def __contains__(self, model_id: int) -> bool:
        with self._lock.read():
            return model_id in self._items

    def add(self, model_id: int, handle: Any) -> None:
        with self._lock.write():
            self._items.setdefault(model_id, handle)

    def ids(self) -> List[int]:
        with self._lock.read():
            return list(self._items)

    def handles(self) -> List[Any]:
        with self._lock.read():
            return list(self._items.values())


class ModelRegistry:
    def __init__(
        self,
        cache: ArtifactCache,
        source: DefinitionSource | None = None,
        backend_factory: BackendFactory = build_backend,
        llm_cfg: Any = None,
    ) -> None:
        self._cache = cache
        self._source = source or DefinitionSource()
        self._factory = backend_factory
        self._llm_cfg = llm_cfg
        self._collections: Dict[Capability, _Collection] = {
            cap: _Collection() for cap in Capability
        }
        self._definitions: Dict[int, ModelDefinition] = {}
        self._defs_lock = threading.Lock()
        self._flight: SingleFlight[None] = SingleFlight()

    @classmethod
    def from_config(cls, cfg, client=None, sleep=None) -> "ModelRegistry":
        """Registry wired from AggregatedConfig (cache dir, registry dir, llm)."""
        return cls(
            ArtifactCache.from_config(cfg, client=client, sleep=sleep),
            DefinitionSource.from_dir(cfg.storage.registry_dir),
            llm_cfg=cfg.llm,
        )

    @property
    def cache(self) -> ArtifactCache:
        return self._cache

    @property
    def source(self) -> DefinitionSource:
        return self._source

    # --- state queries ---------------------------------------------------------
    def is_loaded(self, model_id: int, capability: Capability | str | None = None) -> bool:
        if capability is None:
            return any(model_id in c for c in self._collections.values())
        return model_id in self._collections[Capability(capability)]

    def _fully_loaded(self, definition: ModelDefinition) -> bool:
        return all(self.is_loaded(definition.id, c) for c in definition.capabilities())

    def lookup(self, model_id: int, capability: Capability | str) -> Any:
        cap = Capability(capability)
        handle = self._collections[cap].get(model_id)
        if handle is not None:
            return handle
        if not self.is_loaded(model_id) and self._definition(model_id) is None:
            raise ModelNotFoundError(model_id)
        raise ModelNotLoadedError(model_id, cap.value)

    def _definition(self, model_id: int) -> ModelDefinition | None:
        with self._defs_lock:
            known = self._definitions.get(model_id)
        return known or self._source.get(model_id)

    # --- loading ---------------------------------------------------------------
    def load(self, definition: ModelDefinition) -> None:
        """Make ``definition`` available under every capability it provides."""
        if self._fully_loaded(definition):
            return
        self._flight.do(definition.id, lambda: self._load_once(definition))

    def load_id(self, model_id: int) -> ModelDefinition:
        definition = self._definition(model_id)
        if definition is None:
            raise ModelNotFoundError(model_id)
        self.load(definition)
        return definition

    def _load_once(self, definition: ModelDefinition) -> None:
        if self._fully_loaded(definition):
            return
        category = definition.category.value
        t0 = time.time()
        logger.info(
            "loading model id=%s name=%s category=%s",
            definition.id,
            definition.name,
            category,
        )
        try:
            paths = self._cache.acquire(definition.params)
            backend = self._factory(definition, paths, self._llm_cfg)
            handles = self._handles_for(definition, backend)
        except Exception as e:  # noqa: BLE001
            err = e
            if not isinstance(e, ModelLoadError):
                err = ModelLoadError(
                    f"failed to load model {definition.id} ({definition.name}): {e}"
                )
                err.__cause__ = e
            code = validate_error_type(map_exception(err))
            logger.error(
                "model load failed id=%s error_type=%s: %s",
                definition.id,
                code,
                e,
            )
            emit(
                ModelLoadFailed(
                    model_id=definition.id,
                    category=category,
                    error_type=code,
                    message=str(e)[:400],
                )
            )
            if err is e:
                raise
            raise err from e
        for cap, handle in handles.items():
            self._collections[cap].add(definition.id, handle)
        with self._defs_lock:
            self._definitions[definition.id] = definition
        load_ms = int((time.time() - t0) * 1000)
        logger.info("model loaded id=%s ms=%d", definition.id, load_ms)
        emit(
            ModelLoaded(
                model_id=definition.id,
                category=category,
                capabilities=[c.value for c in handles],
                load_ms=load_ms,
            )
        )

    def _handles_for(self, definition: ModelDefinition, backend: Any) -> Dict[Capability, Any]:
        handles: Dict[Capability, Any] = {}
        for cap in definition.capabilities():
            if isinstance(backend, _CAPABILITY_TYPES[cap]):
                handles[cap] = backend
            elif cap is Capability.COMPLETION and isinstance(backend, ChatModel):
                handles[cap] = ChatCompletionAdapter(backend)
            else:
                raise ModelLoadError(
                    f"backend {type(backend).__name__} does not provide {cap.value}"
                )
        return handles

    # --- requests --------------------------------------------------------------
    def chat(self, model_id: int, submission: ChatSubmission) -> ChatMessage:
        validate_chat(submission)
        return self.lookup(model_id, Capability.CHAT).chat(submission)

    def complete(self, model_id: int, submission: CompletionSubmission) -> str:
        validate_completion(submission)
        return self.lookup(model_id, Capability.COMPLETION).complete(submission)

    def encode(self, model_id: int, sentences: Sequence[str]) -> List[List[float]]:
        return self.lookup(model_id, Capability.EMBEDDING).encode(list(sentences))

    def rerank(self, model_id: int, query: str, passages: Sequence[str]) -> List[float]:
        return self.lookup(model_id, Capability.RERANK).rerank(query, list(passages))

    # --- listing ---------------------------------------------------------------
    def list_models(self) -> List[ModelInfo]:
        by_id: Dict[int, ModelDefinition] = {d.id: d for d in self._source.all()}
        with self._defs_lock:
            for model_id, definition in self._definitions.items():
                by_id.setdefault(model_id, definition)
        out: List[ModelInfo] = []
        for model_id in sorted(by_id):
            d = by_id[model_id]
            out.append(
                ModelInfo(
                    id=d.id,
                    name=d.name,
                    category=d.category.value,
                    capabilities=tuple(c.value for c in d.capabilities()),
                    loaded=tuple(
                        c.value for c in d.capabilities() if self.is_loaded(d.id, c)
                    ),
                )
            )
        return out

    def info(self, model_id: int) -> ModelInfo:
        for item in self.list_models():
            if item.id == model_id:
                return item
        raise ModelNotFoundError(model_id)

    def close(self) -> None:
        """Stop backend workers (process shutdown)."""
        seen: set[int] = set()
        for collection in self._collections.values():
            for handle in collection.handles():
                if id(handle) in seen:
                    continue
                seen.add(id(handle))
                closer: Optional[Callable[[], Any]] = getattr(handle, "close", None)
                if callable(closer):
                    closer()


__all__ = ["ModelRegistry"]

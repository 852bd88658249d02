"""FastAPI application factory for the Maiven inference API.

The app holds exactly one ModelRegistry (``app.state.registry``); routes
are sync handlers so blocking model work runs in the threadpool, never
on the event loop.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core import metrics
from core.artifacts import ArtifactError
from core.config import AggregatedConfig, get_config
from core.errors import map_exception, validate_error_type
from core.llm import ModelError
from core.logging_config import configure_logging
from core.registry import ModelRegistry
from maiven.api.routes.models import router as models_router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR_TYPE = {
    "invalid-params": 400,
    "invalid-location": 400,
    "unknown-location-scheme": 400,
    "unknown-backend": 400,
    "model-not-found": 404,
    "model-not-loaded": 409,
    "network-error": 502,
    "provider-error": 502,
    "worker-unavailable": 503,
}


def status_for(error_type: str) -> int:
    return _STATUS_BY_ERROR_TYPE.get(error_type, 500)


def _error_body(error_type: str, message: str) -> dict:
    return {"error": {"type": error_type, "message": message}}


def create_app(
    registry: ModelRegistry | None = None,
    cfg: AggregatedConfig | None = None,
) -> FastAPI:
    cfg = cfg or get_config()
    registry = registry or ModelRegistry.from_config(cfg)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        try:
            yield
        finally:
            registry.close()

    app = FastAPI(
        title="Maiven API",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.config = cfg

    @app.exception_handler(ModelError)
    @app.exception_handler(ArtifactError)
    async def _domain_error(request: Request, exc: Exception):  # noqa: D401
        error_type = validate_error_type(map_exception(exc))
        status = status_for(error_type)
        if status >= 500:
            logger.error(
                "request failed path=%s error_type=%s",
                request.url.path,
                error_type,
                exc_info=exc,
            )
        else:
            logger.info(
                "request rejected path=%s error_type=%s: %s",
                request.url.path,
                error_type,
                exc,
            )
        message = str(exc) if status != 500 else "internal error"
        return JSONResponse(status_code=status, content=_error_body(error_type, message))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):  # noqa: D401
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=_error_body(
                validate_error_type("invalid-params"),
                f"invalid request fields: {', '.join(fields)}",
            ),
        )

    @app.get("/health")
    def health():  # noqa: D401
        return {"status": "ok"}

    app.include_router(models_router)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
            if status >= 400:
                metrics.inc("api_request_errors_total", labels | {"status": status})

    return app


def main() -> None:  # pragma: no cover
    import uvicorn

    cfg = get_config()
    configure_logging(cfg.logging)
    uvicorn.run(create_app(cfg=cfg), host=cfg.api.host, port=cfg.api.port)


if __name__ == "__main__":  # pragma: no cover
    main()

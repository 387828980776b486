"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from push_relay import __version__
from push_relay.api.middleware.body_limit import BodySizeLimitMiddleware
from push_relay.api.middleware.cors import setup_cors
from push_relay.api.middleware.rate_limit import RateLimitMiddleware
from push_relay.api.v1 import v1_router
from push_relay.config.settings import AppConfig
from push_relay.engine.client import PushRelayEngine
from push_relay.errors.push_errors import PushRelayError
from push_relay.metrics.collector import DispatchMetrics
from push_relay.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Initialises the engine (token store, push sender, dispatch pipeline) on
    startup and shuts it down on exit.
    """
    engine: PushRelayEngine = app.state.engine
    try:
        if not engine.is_initialized:
            await engine.initialize()
        logger.info("Push relay engine ready")
        yield
    finally:
        await engine.close()
        logger.info("Push relay engine stopped")


def create_app(
    *,
    config: AppConfig | None = None,
    engine: PushRelayEngine | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
        engine: Optional pre-built engine; its config wins over *config*.
    """
    if engine is not None:
        config = engine.config
    elif config is None:
        config = AppConfig()

    metrics = engine.metrics if engine is not None else None
    if metrics is None and config.metrics.enabled:
        metrics = DispatchMetrics()
    if engine is None:
        engine = PushRelayEngine(config, metrics=metrics)

    app = FastAPI(
        title="py-push-relay",
        version=__version__,
        description="Webhook events to push notifications",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.engine = engine
    app.state.metrics = metrics

    if config.webhooks.allow_unauthenticated and not config.webhooks.default_secret:
        logger.warning("Webhook authentication is disabled for sources without a secret")

    # -- Middleware (last added runs first) --
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=config.http.max_body_bytes)
    if config.http.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, config=config.http)
    setup_cors(app)
    if metrics is not None:
        app.add_middleware(PrometheusMiddleware, registry=metrics.registry)

    # -- Error handlers --
    @app.exception_handler(PushRelayError)
    async def _push_relay_error_handler(request: Request, exc: PushRelayError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return JSONResponse(
            status_code=400,
            content={"code": "validation-error", "message": str(message)},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, str]:
        components = await app.state.engine.health_check()
        ok = components.get("engine") == "ok"
        return {"status": "ok" if ok else "starting", **components}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        registry = app.state.metrics.registry if app.state.metrics is not None else None
        body = generate_latest(registry) if registry else generate_latest()
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # -- Mount v1 API --
    app.include_router(v1_router)

    return app

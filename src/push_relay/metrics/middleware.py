"""HTTP request metrics for the relay's API surface.

Every request outside ``excluded_paths`` (the ``/metrics`` scrape and the
``/health`` check by default) is counted in ``http_request_total`` and timed
in ``http_request_duration_seconds``.  Paths are labelled by route template,
so ``/api/v1/tokens/user/{user_id}`` is one series however many users call
it; requests that match no route share the ``unmatched`` label.  A handler
that raises is recorded as status 500 before the exception propagates.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response

APP_LABEL = "push-relay"
UNMATCHED_PATH = "unmatched"
DEFAULT_EXCLUDED_PATHS = frozenset({"/metrics", "/health"})


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Count and time API requests per method, route and status."""

    def __init__(
        self,
        app: object,
        *,
        registry: CollectorRegistry,
        excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
        app_label: str = APP_LABEL,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._excluded = frozenset(excluded_paths)
        self._app_label = app_label
        self._requests = Counter(
            "http_request_total",
            "HTTP requests handled by the relay",
            ("method", "path", "status_code", "app"),
            registry=registry,
        )
        self._latency = Histogram(
            "http_request_duration_seconds",
            "Time spent handling relay HTTP requests",
            ("method", "path", "app"),
            registry=registry,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        if request.url.path in self._excluded:
            return await call_next(request)

        started = time.monotonic()
        status = 500
        try:
            response: Response = await call_next(request)
            status = response.status_code
            return response
        finally:
            self._observe(request, status, time.monotonic() - started)

    def _observe(self, request: Request, status: int, elapsed: float) -> None:
        route = request.scope.get("route")
        path = getattr(route, "path", UNMATCHED_PATH)
        self._requests.labels(
            method=request.method, path=path, status_code=str(status), app=self._app_label
        ).inc()
        self._latency.labels(method=request.method, path=path, app=self._app_label).observe(
            elapsed
        )

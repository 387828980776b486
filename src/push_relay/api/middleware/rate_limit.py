"""Sliding-window rate limiting per client address.

Applies to paths under ``http.rate_limit_path_prefix`` (``/api/`` by
default). Rejected requests get 429 with ``Retry-After`` and the
``RateLimit-*`` headers.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from starlette.requests import Request
    from starlette.responses import Response

    from push_relay.config.settings import HTTPConfig

logger = logging.getLogger(__name__)

# Above this many tracked clients, expired windows are swept on each check.
_SWEEP_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_after: float


class SlidingWindowLimiter:
    """At most *max_requests* per *window_seconds* for each key."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max = max_requests
        self._window = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    def __len__(self) -> int:
        return len(self._hits)

    def check(self, key: str) -> RateLimitResult:
        """Count a request for *key* if it fits in the window."""
        now = self._clock()
        cutoff = now - self._window
        if len(self._hits) > _SWEEP_THRESHOLD:
            self._sweep(cutoff)

        hits = self._hits.setdefault(key, deque())
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= self._max:
            return RateLimitResult(
                allowed=False,
                limit=self._max,
                remaining=0,
                reset_after=hits[0] + self._window - now,
            )

        hits.append(now)
        return RateLimitResult(
            allowed=True,
            limit=self._max,
            remaining=self._max - len(hits),
            reset_after=hits[0] + self._window - now,
        )

    def _sweep(self, cutoff: float) -> None:
        expired = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in expired:
            del self._hits[key]


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Starlette middleware enforcing :class:`SlidingWindowLimiter` per client."""

    def __init__(self, app: object, *, config: HTTPConfig) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._prefix = config.rate_limit_path_prefix
        self.limiter = SlidingWindowLimiter(
            config.rate_limit_max, config.rate_limit_window_seconds
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:  # type: ignore[type-arg]
        if not request.url.path.startswith(self._prefix):
            return await call_next(request)

        result = self.limiter.check(_client_key(request))
        reset = str(max(1, math.ceil(result.reset_after)))
        headers = {
            "RateLimit-Limit": str(result.limit),
            "RateLimit-Remaining": str(result.remaining),
            "RateLimit-Reset": reset,
        }
        if not result.allowed:
            logger.warning(
                "Rate limit exceeded for %s on %s", _client_key(request), request.url.path
            )
            return JSONResponse(
                status_code=429,
                content={"code": "rate-limited", "message": "too many requests, retry later"},
                headers={**headers, "Retry-After": reset},
            )

        response: Response = await call_next(request)
        response.headers.update(headers)
        return response

"""Request body size cap.

Pure ASGI middleware: the body is buffered up to ``max_body_bytes`` before
the application sees it, so both declared (``Content-Length``) and chunked
uploads are bounded. Oversized requests get 413.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _declared_length(scope: dict[str, Any]) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    """Reject requests whose body exceeds *max_body_bytes*."""

    def __init__(self, app: Any, *, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http" or scope["method"] in _BODYLESS_METHODS:
            await self.app(scope, receive, send)
            return

        declared = _declared_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            await self._reject(scope, receive, send)
            return

        buffered: list[dict[str, Any]] = []
        size = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            size += len(message.get("body", b""))
            if size > self.max_body_bytes:
                await self._reject(scope, receive, send)
                return
            if not message.get("more_body", False):
                break

        async def replay() -> dict[str, Any]:
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        logger.warning(
            "Rejected %s %s: body exceeds %d bytes",
            scope["method"],
            scope.get("path", ""),
            self.max_body_bytes,
        )
        response = JSONResponse(
            status_code=413,
            content={
                "code": "payload-too-large",
                "message": f"request body exceeds {self.max_body_bytes} bytes",
            },
        )
        await response(scope, receive, send)

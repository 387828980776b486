"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/tokens/user/{user_id}")
    async def list_tokens(
        user_id: str,
        engine: Annotated[PushRelayEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from push_relay.api.middleware.webhook_auth import (
    ADMIN_SOURCE,
    WEBHOOK_TOKEN_HEADER,
    extract_token,
    verify_webhook_token,
)
from push_relay.engine.client import PushRelayEngine  # noqa: TC001
from push_relay.errors.definitions import ErrEngineNotReady


def get_engine(request: Request) -> PushRelayEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup.

    Raises:
        PushRelayError: 503 if the engine is not initialized.
    """
    engine: PushRelayEngine | None = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_initialized:
        raise ErrEngineNotReady
    return engine


def presented_token(
    x_webhook_token: Annotated[str | None, Header(alias=WEBHOOK_TOKEN_HEADER)] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """The shared secret presented by the caller, or ``""``."""
    return extract_token(x_webhook_token, authorization)


def require_admin(
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
    token: Annotated[str, Depends(presented_token)],
) -> None:
    """Dependency guarding admin routes with the ``admin`` source secret."""
    verify_webhook_token(engine.config.webhooks, ADMIN_SOURCE, token)

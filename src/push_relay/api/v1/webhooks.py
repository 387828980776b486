"""V1 webhook endpoints.

External systems POST their events here; each event is classified,
turned into per-recipient notifications and delivered.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from push_relay.api.dependencies import get_engine, presented_token
from push_relay.api.middleware.webhook_auth import verify_webhook_token
from push_relay.api.v1.schemas import error_responses
from push_relay.engine.client import PushRelayEngine  # noqa: TC001
from push_relay.errors.definitions import ErrInvalidJsonPayload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhooks",
    tags=["webhooks"],
    responses=error_responses(400, 401, 413, 429, 503, 504),
)

DEFAULT_SOURCE = "default"


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError:
        logger.debug("Webhook body is not valid JSON")
        raise ErrInvalidJsonPayload from None


async def _receive(
    request: Request, engine: PushRelayEngine, source: str, token: str
) -> JSONResponse:
    verify_webhook_token(engine.config.webhooks, source, token)
    payload = await _read_payload(request)
    result = await engine.intake.receive(payload, source)
    if not result.success:
        status = result.error.status_code if result.error is not None else 422
        return JSONResponse(status_code=status, content=result.to_summary())
    return JSONResponse(content=result.to_summary())


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("")
async def receive_webhook(
    request: Request,
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
    token: Annotated[str, Depends(presented_token)],
    source: str = DEFAULT_SOURCE,
) -> JSONResponse:
    """Receive an event; the source comes from the ``source`` query parameter."""
    return await _receive(request, engine, source or DEFAULT_SOURCE, token)


@router.post("/{source}")
async def receive_source_webhook(
    source: str,
    request: Request,
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
    token: Annotated[str, Depends(presented_token)],
) -> JSONResponse:
    """Receive an event from a named source."""
    return await _receive(request, engine, source, token)

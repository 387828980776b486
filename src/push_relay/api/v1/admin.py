"""V1 admin endpoints.

Guarded by the ``admin`` shared secret (``webhooks.secrets.admin`` or the
default webhook secret).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from push_relay.api.dependencies import get_engine, require_admin
from push_relay.api.v1.schemas import PurgeResponse, error_responses
from push_relay.engine.client import PushRelayEngine  # noqa: TC001

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses=error_responses(400, 401, 429, 503),
)

DEFAULT_PURGE_DAYS = 90


@router.post("/tokens/purge")
async def purge_tokens(
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
    days: int = DEFAULT_PURGE_DAYS,
) -> dict:
    """Delete tokens not refreshed within *days* days."""
    purged = await engine.token_service.purge_stale(days)
    return PurgeResponse(purged=purged, days=days).model_dump()

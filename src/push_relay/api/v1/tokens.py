"""V1 device token endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from push_relay.api.dependencies import get_engine
from push_relay.api.v1.schemas import (
    TokenListResponse,
    TokenRegisterRequest,
    TokenRemoveRequest,
    error_responses,
)
from push_relay.engine.client import PushRelayEngine  # noqa: TC001

router = APIRouter(
    prefix="/tokens", tags=["tokens"], responses=error_responses(400, 413, 429, 503)
)


@router.post("/register")
async def register_token(
    body: TokenRegisterRequest,
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
) -> JSONResponse:
    """Register a device token; 201 when new, 200 when refreshed."""
    result = await engine.token_service.register(body.user_id, body.token, body.device_info)
    if not result.success:
        status = result.error.status_code if result.error is not None else 400
        return JSONResponse(status_code=status, content=result.to_dict())
    return JSONResponse(status_code=201 if result.created else 200, content=result.to_dict())


@router.post("/remove")
async def remove_token(
    body: TokenRemoveRequest,
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
) -> JSONResponse:
    """Remove a device token. Removing an unknown pair still succeeds."""
    result = await engine.token_service.remove(body.user_id, body.token)
    if not result.success:
        status = result.error.status_code if result.error is not None else 400
        return JSONResponse(status_code=status, content=result.to_dict())
    return JSONResponse(content=result.to_dict())


@router.get("/user/{user_id}")
async def list_user_tokens(
    user_id: str,
    engine: Annotated[PushRelayEngine, Depends(get_engine)],
    include_inactive: bool = False,
) -> dict:
    """List a user's active tokens, optionally with every stored record."""
    tokens = await engine.token_service.list_tokens(user_id)
    records = None
    if include_inactive:
        records = [r.to_dict() for r in await engine.token_service.list_records(user_id)]
    return TokenListResponse(
        user_id=user_id, tokens=tokens, records=records
    ).model_dump(by_alias=True, exclude_none=True)

"""V1 API request/response Pydantic schemas.

Field names follow the camelCase wire contract through aliases; handlers
read the snake_case attributes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error body: ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


def error_responses(*status_codes: int) -> dict[int | str, dict[str, Any]]:
    """OpenAPI ``responses`` entries documenting :class:`ErrorResponse` bodies."""
    return {code: {"model": ErrorResponse} for code in status_codes}


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenRegisterRequest(BaseModel):
    """POST /api/v1/tokens/register — register a device token for a user.

    Emptiness is checked by the registration service so that every invalid
    request is reported the same way.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    token: str | None = None
    device_info: dict[str, Any] | None = Field(default=None, alias="deviceInfo")


class TokenRemoveRequest(BaseModel):
    """POST /api/v1/tokens/remove — unregister a device token."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    token: str | None = None


class TokenListResponse(BaseModel):
    """GET /api/v1/tokens/user/{user_id}."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user_id: str = Field(alias="userId")
    tokens: list[str]
    records: list[dict[str, Any]] | None = None


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class PurgeResponse(BaseModel):
    """POST /api/v1/admin/tokens/purge."""

    success: bool = True
    purged: int
    days: int

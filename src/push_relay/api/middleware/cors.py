"""CORS middleware configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

from push_relay.api.middleware.webhook_auth import WEBHOOK_TOKEN_HEADER

if TYPE_CHECKING:
    from fastapi import FastAPI


def setup_cors(app: FastAPI) -> None:
    """Add CORS middleware allowing all origins and the webhook token header."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", WEBHOOK_TOKEN_HEADER],
    )

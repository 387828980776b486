"""API middleware — CORS, webhook shared-token auth."""

from push_relay.api.middleware.cors import setup_cors
from push_relay.api.middleware.webhook_auth import (
    ADMIN_SOURCE,
    WEBHOOK_TOKEN_HEADER,
    extract_token,
    verify_webhook_token,
)

__all__ = [
    "ADMIN_SOURCE",
    "WEBHOOK_TOKEN_HEADER",
    "extract_token",
    "setup_cors",
    "verify_webhook_token",
]

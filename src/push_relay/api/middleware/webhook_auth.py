"""Shared-token authentication for webhook sources.

Each source may have its own secret (``webhooks.secrets[source]``), falling
back to ``webhooks.default_secret``. A source with no secret is rejected
unless ``webhooks.allow_unauthenticated`` is set. The caller presents the
secret in ``x-webhook-token`` or as an ``Authorization: Bearer <secret>``
header.
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from push_relay.errors.definitions import ErrWebhookUnauthorized

if TYPE_CHECKING:
    from push_relay.config.settings import WebhookAuthConfig

logger = logging.getLogger(__name__)

WEBHOOK_TOKEN_HEADER = "x-webhook-token"

# Admin routes are guarded like a webhook source named "admin".
ADMIN_SOURCE = "admin"

_BEARER_PREFIX = "bearer "


def extract_token(token_header: str | None, authorization: str | None) -> str:
    """Return the presented secret; ``x-webhook-token`` wins over ``Authorization``."""
    if token_header:
        return token_header.strip()
    if authorization:
        value = authorization.strip()
        if value.lower().startswith(_BEARER_PREFIX):
            return value[len(_BEARER_PREFIX) :].strip()
        return value
    return ""


def verify_webhook_token(config: WebhookAuthConfig, source: str, presented: str) -> None:
    """Check *presented* against the secret configured for *source*.

    Raises:
        PushRelayError: 401 ``webhook-unauthorized`` on mismatch.
    """
    expected = config.secret_for(source)
    if not expected:
        if config.allow_unauthenticated:
            return
        logger.warning("Rejected request for source %s: no secret configured", source)
        raise ErrWebhookUnauthorized
    if not presented or not hmac.compare_digest(presented.encode(), expected.encode()):
        logger.warning("Rejected request for source %s: bad webhook token", source)
        raise ErrWebhookUnauthorized

"""Fixtures for API tests that need a non-default configuration."""

from __future__ import annotations

from contextlib import ExitStack
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from push_relay.api.app import create_app
from push_relay.config.settings import WebhookAuthConfig
from push_relay.engine.client import PushRelayEngine
from push_relay.metrics.collector import DispatchMetrics

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def make_client(app_config, memory_store, fake_sender) -> Iterator[Callable[..., TestClient]]:
    """Build started TestClients whose config differs from ``app_config``.

    Keyword arguments replace top-level config sections.
    """
    with ExitStack() as stack:

        def _make(**sections: Any) -> TestClient:
            config = app_config.model_copy(update=sections)
            engine = PushRelayEngine(
                config, store=memory_store, sender=fake_sender, metrics=DispatchMetrics()
            )
            client = TestClient(create_app(engine=engine), raise_server_exceptions=False)
            return stack.enter_context(client)

        yield _make


@pytest.fixture
def webhook_secrets() -> dict[str, str]:
    """Secrets configured on the secured client, keyed by source."""
    return {"default": "default-secret", "billing": "billing-secret", "admin": "admin-secret"}


@pytest.fixture
def secured_client(make_client, webhook_secrets) -> TestClient:
    """TestClient whose engine requires webhook and admin secrets."""
    return make_client(
        webhooks=WebhookAuthConfig(
            default_secret=webhook_secrets["default"],
            secrets={
                "billing": webhook_secrets["billing"],
                "admin": webhook_secrets["admin"],
            },
        )
    )

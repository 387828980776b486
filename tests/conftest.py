"""Shared test fixtures for the py-push-relay test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from push_relay.config.settings import (
    AppConfig,
    DatabaseConfig,
    DatabaseEngine,
    PushBackend,
    PushConfig,
    StoreConfig,
    StoreEngine,
    WebhookAuthConfig,
)
from push_relay.errors.push_errors import DeliveryError
from push_relay.push.models import DeliveryOutcome, FailureReason, SendReport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from push_relay.notifications.models import Notification

MEMORY_DSN = "sqlite+aiosqlite:///:memory:"


class FakePushSender:
    """Scriptable push sender.

    ``failures`` maps a token to the reason its delivery fails;
    ``raise_for_users`` makes the whole send raise for those recipients.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Notification, list[str]]] = []
        self.failures: dict[str, FailureReason] = {}
        self.raise_for_users: set[str] = set()
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def send(self, notification: Notification, tokens: Sequence[str]) -> SendReport:
        if not tokens:
            return SendReport()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append((notification, list(tokens)))
            if notification.user_id in self.raise_for_users:
                msg = "transport unavailable"
                raise DeliveryError(msg, code="fcm-request-failed")
            outcomes = [
                DeliveryOutcome.failed(t, self.failures[t], error_code=self.failures[t].lower())
                if t in self.failures
                else DeliveryOutcome.ok(t, f"msg-{t}")
                for t in tokens
            ]
            return SendReport.from_outcomes(outcomes)
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True

    @property
    def sent_user_ids(self) -> list[str]:
        return [n.user_id for n, _ in self.calls]


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig: memory store, logging sender, open webhooks."""
    return AppConfig(
        debug=True,
        db=DatabaseConfig(engine=DatabaseEngine.SQLITE, dsn=MEMORY_DSN),
        store=StoreConfig(engine=StoreEngine.MEMORY),
        push=PushConfig(backend=PushBackend.LOGGING),
        webhooks=WebhookAuthConfig(allow_unauthenticated=True),
    )


@pytest.fixture
def fake_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def memory_store():
    from push_relay.tokens.memory import MemoryTokenStore

    return MemoryTokenStore()


@pytest.fixture
async def datastore() -> AsyncIterator:
    """Open datastore on in-memory SQLite with the schema created."""
    from push_relay.datastore.client import Datastore
    from push_relay.engine.models import Base

    ds = Datastore(DatabaseConfig(engine=DatabaseEngine.SQLITE, dsn=MEMORY_DSN))
    await ds.open(base=Base)
    yield ds
    await ds.close()


@pytest.fixture
def sql_store(datastore):
    from push_relay.tokens.sql import SQLTokenStore

    return SQLTokenStore(datastore)


@pytest.fixture
def engine(app_config, memory_store, fake_sender):
    """Uninitialized engine wired to the memory store and the fake sender."""
    from push_relay.engine.client import PushRelayEngine
    from push_relay.metrics.collector import DispatchMetrics

    return PushRelayEngine(
        app_config, store=memory_store, sender=fake_sender, metrics=DispatchMetrics()
    )


@pytest.fixture
def test_client(engine):
    """Provide a FastAPI TestClient with the app wired to the test engine."""
    from fastapi.testclient import TestClient

    from push_relay.api.app import create_app

    app = create_app(engine=engine)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client

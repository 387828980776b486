"""Tests for DispatchOrchestrator: fan-out, delivery, pruning and policies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest

from push_relay.config.settings import PruneMode, SuccessPolicy
from push_relay.dispatch.orchestrator import DispatchOrchestrator
from push_relay.dispatch.results import NO_TOKENS_REASON
from push_relay.errors.push_errors import (
    ClassificationError,
    DispatchTimeoutError,
    InvalidEventError,
    StoreError,
)
from push_relay.events.processor import EventProcessor
from push_relay.metrics.collector import DispatchMetrics
from push_relay.notifications.builder import NotificationBuilder
from push_relay.push.models import DeliveryOutcome, FailureReason, SendReport
from push_relay.tokens.memory import MemoryTokenStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from conftest import FakePushSender

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FlakyStore(MemoryTokenStore):
    """Memory store whose token lookup fails for chosen users."""

    def __init__(self, failing_users: set[str]) -> None:
        super().__init__()
        self.failing_users = failing_users

    async def get_active_tokens_by_user(self, user_id: str) -> list[str]:
        if user_id in self.failing_users:
            msg = "database unavailable"
            raise StoreError(msg)
        return await super().get_active_tokens_by_user(user_id)


def _event(event_type: str = "payment", **data: Any) -> dict[str, Any]:
    return {"id": "evt-1", "type": event_type, "data": data}


@pytest.fixture
def make_orchestrator(
    memory_store: MemoryTokenStore, fake_sender: FakePushSender
) -> Callable[..., DispatchOrchestrator]:
    def _make(
        *, store: MemoryTokenStore | None = None, silent_types: tuple[str, ...] = (), **kwargs: Any
    ) -> DispatchOrchestrator:
        return DispatchOrchestrator(
            EventProcessor(silent_types=silent_types),
            NotificationBuilder(),
            fake_sender,
            store if store is not None else memory_store,
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# End-to-end scenario
# ---------------------------------------------------------------------------


class TestPaymentScenario:
    async def test_unregistered_token_is_pruned(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "token1", {})
        await memory_store.save("u1", "token2", {})
        fake_sender.failures = {"token2": FailureReason.UNREGISTERED}

        result = await make_orchestrator().dispatch(_event(amount=42, userId="u1"))

        assert result.success is True
        assert result.notified is True
        (recipient,) = result.recipients
        assert recipient.user_id == "u1"
        assert recipient.success is True
        assert recipient.tokens_count == 2
        assert recipient.success_count == 1
        assert recipient.failure_count == 1
        assert recipient.pruned_tokens == ["token2"]
        assert await memory_store.get_active_tokens_by_user("u1") == ["token1"]

    async def test_epoch_milliseconds_timestamp_is_delivered(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "token1", {})
        payload = {**_event(amount=42, userId="u1"), "timestamp": 1760774400000}

        result = await make_orchestrator().dispatch(payload)

        assert result.success is True
        assert result.notified is True
        assert fake_sender.sent_user_ids == ["u1"]

    async def test_notification_payload(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "token1", {})

        await make_orchestrator().dispatch(_event(amount=42, userId="u1"))

        ((notification, tokens),) = fake_sender.calls
        assert tokens == ["token1"]
        assert notification.user_id == "u1"
        assert notification.title == "Nuevo pago recibido"
        assert notification.body == "Se ha recibido un pago de 42."
        sent = notification.sanitized_data()
        assert sent == {"eventId": "evt-1", "eventType": "payment", "amount": "42"}
        assert all(isinstance(v, str) for v in sent.values())


# ---------------------------------------------------------------------------
# Skipped dispatches
# ---------------------------------------------------------------------------


class TestNoSend:
    async def test_should_not_notify(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "t1", {})
        result = await make_orchestrator().dispatch(_event(userId="u1", notify=False))
        assert result.success is True
        assert result.notified is False
        assert result.recipients == []
        assert fake_sender.calls == []

    async def test_silent_event_type(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "t1", {})
        orchestrator = make_orchestrator(silent_types=("heartbeat",))
        result = await orchestrator.dispatch(_event("heartbeat", userId="u1"))
        assert result.notified is False
        assert fake_sender.calls == []

    async def test_no_recipients(self, make_orchestrator, fake_sender: FakePushSender) -> None:
        result = await make_orchestrator().dispatch(_event(amount=5))
        assert result.success is True
        assert result.notified is False
        assert fake_sender.calls == []

    async def test_recipient_without_tokens(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u2", "t2", {})
        result = await make_orchestrator().dispatch(_event(usersToNotify=["u1", "u2"]))

        by_user = result.per_user_results
        assert by_user["u1"].success is False
        assert by_user["u1"].reason == NO_TOKENS_REASON
        assert by_user["u2"].success is True
        assert fake_sender.sent_user_ids == ["u2"]
        assert result.notified is True


# ---------------------------------------------------------------------------
# Failure classification and pruning
# ---------------------------------------------------------------------------


class TestPruning:
    @pytest.mark.parametrize("reason", [FailureReason.TRANSIENT, FailureReason.UNKNOWN])
    async def test_non_terminal_failures_keep_token(
        self,
        make_orchestrator,
        memory_store: MemoryTokenStore,
        fake_sender: FakePushSender,
        reason: FailureReason,
    ) -> None:
        await memory_store.save("u1", "t1", {})
        fake_sender.failures = {"t1": reason}

        result = await make_orchestrator().dispatch(_event(userId="u1"))

        (recipient,) = result.recipients
        assert recipient.success is False
        assert recipient.pruned_tokens == []
        assert recipient.failed_tokens[0].failure_reason == reason
        assert await memory_store.get_active_tokens_by_user("u1") == ["t1"]
        assert result.notified is False

    async def test_deactivate_mode(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "t1", {})
        await memory_store.save("u1", "t2", {})
        fake_sender.failures = {"t2": FailureReason.UNREGISTERED}

        result = await make_orchestrator(prune_mode=PruneMode.DEACTIVATE).dispatch(
            _event(userId="u1")
        )

        assert result.recipients[0].pruned_tokens == ["t2"]
        assert await memory_store.get_active_tokens_by_user("u1") == ["t1"]
        records = await memory_store.get_all_by_user("u1")
        assert {r.token: r.is_active for r in records} == {"t1": True, "t2": False}

    async def test_every_token_unregistered(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "t1", {})
        fake_sender.failures = {"t1": FailureReason.UNREGISTERED}

        result = await make_orchestrator().dispatch(_event(userId="u1"))

        assert result.recipients[0].success is False
        assert await memory_store.get_all_by_user("u1") == []


# ---------------------------------------------------------------------------
# Success policy
# ---------------------------------------------------------------------------


class TestSuccessPolicy:
    @pytest.fixture
    async def partial(self, memory_store: MemoryTokenStore, fake_sender: FakePushSender) -> None:
        await memory_store.save("u1", "t1", {})
        await memory_store.save("u1", "t2", {})
        fake_sender.failures = {"t2": FailureReason.TRANSIENT}

    async def test_any(self, make_orchestrator, partial: None) -> None:
        result = await make_orchestrator(success_policy=SuccessPolicy.ANY).dispatch(
            _event(userId="u1")
        )
        assert result.recipients[0].success is True

    async def test_all(self, make_orchestrator, partial: None) -> None:
        result = await make_orchestrator(success_policy=SuccessPolicy.ALL).dispatch(
            _event(userId="u1")
        )
        assert result.recipients[0].success is False
        assert result.recipients[0].error_code == "delivery-failed"


# ---------------------------------------------------------------------------
# Isolation and concurrency
# ---------------------------------------------------------------------------


class TestIsolation:
    async def test_sender_failure_is_contained(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        for user in ("u1", "u2", "u3"):
            await memory_store.save(user, f"t-{user}", {})
        fake_sender.raise_for_users = {"u2"}

        result = await make_orchestrator().dispatch(_event(usersToNotify=["u1", "u2", "u3"]))

        by_user = result.per_user_results
        assert by_user["u1"].success is True
        assert by_user["u3"].success is True
        assert by_user["u2"].success is False
        assert by_user["u2"].error_code == "fcm-request-failed"
        assert result.success is True
        assert result.notified is True

    async def test_store_failure_is_contained(self, make_orchestrator) -> None:
        store = FlakyStore({"u1"})
        await store.save("u1", "t1", {})
        await store.save("u2", "t2", {})

        result = await make_orchestrator(store=store).dispatch(_event(usersToNotify=["u1", "u2"]))

        by_user = result.per_user_results
        assert by_user["u1"].success is False
        assert by_user["u1"].error_code == "store-error"
        assert by_user["u2"].success is True

    async def test_results_follow_recipient_order(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        users = [f"u{i}" for i in range(6)]
        for user in users:
            await memory_store.save(user, f"t-{user}", {})
        fake_sender.delay = 0.01

        result = await make_orchestrator().dispatch(_event(usersToNotify=list(reversed(users))))

        assert [r.user_id for r in result.recipients] == list(reversed(users))

    async def test_concurrency_is_bounded(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        users = [f"u{i}" for i in range(8)]
        for user in users:
            await memory_store.save(user, f"t-{user}", {})
        fake_sender.delay = 0.02

        result = await make_orchestrator(max_concurrency=2).dispatch(_event(usersToNotify=users))

        assert len(result.succeeded) == 8
        assert 1 <= fake_sender.max_in_flight <= 2

    async def test_outcome_count_mismatch(self, make_orchestrator, memory_store) -> None:
        await memory_store.save("u1", "t1", {})
        await memory_store.save("u1", "t2", {})
        sender = MagicMock()

        async def _short(notification, tokens):
            return SendReport.from_outcomes([DeliveryOutcome.ok(tokens[0])])

        sender.send = _short
        orchestrator = DispatchOrchestrator(
            EventProcessor(), NotificationBuilder(), sender, memory_store
        )
        result = await orchestrator.dispatch(_event(userId="u1"))
        assert result.recipients[0].error_code == "outcome-mismatch"

    def test_rejects_zero_concurrency(self, make_orchestrator) -> None:
        with pytest.raises(ValueError, match="max_concurrency"):
            make_orchestrator(max_concurrency=0)


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


class TestTimeout:
    async def test_timeout_raises(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        await memory_store.save("u1", "t1", {})
        fake_sender.delay = 1.0

        with pytest.raises(DispatchTimeoutError) as exc_info:
            await make_orchestrator(timeout=0.05).dispatch(_event(userId="u1"))
        assert isinstance(exc_info.value, TimeoutError)

    async def test_fast_dispatch_within_timeout(
        self, make_orchestrator, memory_store: MemoryTokenStore
    ) -> None:
        await memory_store.save("u1", "t1", {})
        result = await make_orchestrator(timeout=5).dispatch(_event(userId="u1"))
        assert result.notified is True


# ---------------------------------------------------------------------------
# Classification failures
# ---------------------------------------------------------------------------


class TestClassificationFailure:
    async def test_invalid_event(self, make_orchestrator, fake_sender: FakePushSender) -> None:
        result = await make_orchestrator().dispatch({"data": {"userId": "u1"}})
        assert result.success is False
        assert isinstance(result.error, InvalidEventError)
        assert fake_sender.calls == []

    async def test_unexpected_processor_error(
        self, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        processor = MagicMock()
        processor.process.side_effect = RuntimeError("boom")
        orchestrator = DispatchOrchestrator(
            processor, NotificationBuilder(), fake_sender, memory_store
        )
        result = await orchestrator.dispatch(_event(userId="u1"))
        assert result.success is False
        assert isinstance(result.error, ClassificationError)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestMetrics:
    async def test_records_dispatch(
        self, make_orchestrator, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        metrics = DispatchMetrics()
        await memory_store.save("u1", "t1", {})
        await memory_store.save("u1", "t2", {})
        fake_sender.failures = {"t2": FailureReason.UNREGISTERED}

        await make_orchestrator(metrics=metrics).dispatch(_event(userId="u1"))

        registry = metrics.registry
        events = registry.get_sample_value(
            "pushrelay_events_total", {"event_type": "payment", "outcome": "notified"}
        )
        assert events == 1.0
        assert registry.get_sample_value("pushrelay_deliveries_total", {"result": "success"}) == 1.0
        assert (
            registry.get_sample_value("pushrelay_deliveries_total", {"result": "unregistered"})
            == 1.0
        )
        assert registry.get_sample_value("pushrelay_tokens_pruned_total") == 1.0
        assert registry.get_sample_value("pushrelay_dispatch_duration_seconds_count") == 1.0

    async def test_records_skipped(self, make_orchestrator) -> None:
        metrics = DispatchMetrics()
        await make_orchestrator(metrics=metrics).dispatch(_event("order", notify=False))
        value = metrics.registry.get_sample_value(
            "pushrelay_events_total", {"event_type": "order", "outcome": "skipped"}
        )
        assert value == 1.0

    async def test_unregistered_types_share_one_label(
        self, make_orchestrator, memory_store: MemoryTokenStore
    ) -> None:
        metrics = DispatchMetrics()
        await memory_store.save("u1", "t1", {})
        orchestrator = make_orchestrator(metrics=metrics)

        await orchestrator.dispatch(_event("made-up-1", userId="u1"))
        await orchestrator.dispatch(_event("made-up-2", userId="u1"))

        registry = metrics.registry
        assert (
            registry.get_sample_value(
                "pushrelay_events_total", {"event_type": "other", "outcome": "notified"}
            )
            == 2.0
        )
        assert (
            registry.get_sample_value(
                "pushrelay_events_total", {"event_type": "made-up-1", "outcome": "notified"}
            )
            is None
        )

    async def test_records_unexpected_classification_failure(
        self, memory_store: MemoryTokenStore, fake_sender: FakePushSender
    ) -> None:
        metrics = DispatchMetrics()
        processor = MagicMock()
        processor.process.side_effect = RuntimeError("boom")
        orchestrator = DispatchOrchestrator(
            processor, NotificationBuilder(), fake_sender, memory_store, metrics=metrics
        )

        await orchestrator.dispatch(_event(userId="u1"))

        value = metrics.registry.get_sample_value(
            "pushrelay_events_total", {"event_type": "unknown", "outcome": "failed"}
        )
        assert value == 1.0

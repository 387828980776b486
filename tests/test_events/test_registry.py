"""Tests for the event type registry and recipient strategies."""

from __future__ import annotations

from push_relay.events.models import Event
from push_relay.events.registry import (
    FALLBACK_SPEC,
    EventTypeRegistry,
    EventTypeSpec,
    explicit_recipients,
    field_recipient,
)
from push_relay.notifications.models import Priority


def _event(data: dict, event_type: str = "order") -> Event:
    return Event(id="e1", type=event_type, data=data)


class TestExplicitRecipients:
    def test_list_field(self) -> None:
        assert explicit_recipients(_event({"usersToNotify": ["u1", "u2"]})) == ["u1", "u2"]

    def test_scalar_field(self) -> None:
        assert explicit_recipients(_event({"userId": "u9"})) == ["u9"]

    def test_merges_and_dedupes_in_order(self) -> None:
        data = {"usersToNotify": ["u1", "u2"], "recipients": ["u2", "u3"], "userId": "u1"}
        assert explicit_recipients(_event(data)) == ["u1", "u2", "u3"]

    def test_skips_blank_and_none(self) -> None:
        assert explicit_recipients(_event({"usersToNotify": ["", None, " u1 "]})) == ["u1"]

    def test_numeric_ids_become_strings(self) -> None:
        assert explicit_recipients(_event({"userId": 42})) == ["42"]

    def test_no_recipients(self) -> None:
        assert explicit_recipients(_event({"amount": 1})) == []


class TestFieldRecipient:
    def test_reads_named_field(self) -> None:
        strategy = field_recipient("owner")
        assert strategy(_event({"owner": "u5", "userId": "other"})) == ["u5"]

    def test_list_value(self) -> None:
        assert field_recipient("members")(_event({"members": ["a", "b", "a"]})) == ["a", "b"]

    def test_missing_field(self) -> None:
        assert field_recipient("owner")(_event({})) == []


class TestEventTypeRegistry:
    def test_builtin_types(self) -> None:
        registry = EventTypeRegistry()
        for event_type in (
            "user_action",
            "system_alert",
            "data_update",
            "payment",
            "order",
            "message",
            "alert",
            "reminder",
        ):
            assert registry.is_known(event_type)

    def test_unknown_type_resolves_to_fallback(self) -> None:
        registry = EventTypeRegistry()
        assert not registry.is_known("weird")
        assert registry.resolve("weird") is FALLBACK_SPEC

    def test_fallback_body(self) -> None:
        spec = EventTypeRegistry().resolve("weird")
        assert spec.title == "New Event"
        assert spec.body is not None
        assert spec.body(_event({}, "weird")) == "Event of type weird occurred"

    def test_register_and_unregister(self) -> None:
        registry = EventTypeRegistry()
        spec = EventTypeSpec(title="Shipped", recipients=field_recipient("buyer"))
        registry.register("shipment", spec)
        assert registry.resolve("shipment") is spec
        registry.unregister("shipment")
        assert registry.resolve("shipment") is registry.fallback

    def test_empty_registry(self) -> None:
        registry = EventTypeRegistry({})
        assert registry.types == []

    def test_alert_types_are_high_priority(self) -> None:
        registry = EventTypeRegistry()
        assert registry.resolve("system_alert").priority == Priority.HIGH
        assert registry.resolve("alert").priority == Priority.HIGH

    def test_user_action_template(self) -> None:
        spec = EventTypeRegistry().resolve("user_action")
        assert spec.body is not None
        body = spec.body(_event({"user": "ana", "action": "login"}, "user_action"))
        assert body == "User ana performed action: login"

    def test_payment_template(self) -> None:
        spec = EventTypeRegistry().resolve("payment")
        assert spec.title == "Nuevo pago recibido"
        assert spec.body is not None
        assert spec.body(_event({"amount": 42}, "payment")) == "Se ha recibido un pago de 42."

"""Tests for EventProcessor classification."""

from __future__ import annotations

import pytest

from push_relay.errors.push_errors import ClassificationError, InvalidEventError
from push_relay.events.models import Event
from push_relay.events.processor import EventProcessor
from push_relay.events.registry import EventTypeRegistry, EventTypeSpec, field_recipient
from push_relay.notifications.models import Priority


@pytest.fixture
def processor() -> EventProcessor:
    return EventProcessor()


class TestClassification:
    def test_payment_event(self, processor: EventProcessor) -> None:
        processed = processor.process(
            {"id": "p1", "type": "payment", "data": {"amount": 42, "userId": "u1"}}
        )
        assert processed.should_notify is True
        assert processed.users_to_notify == ("u1",)
        assert processed.title == "Nuevo pago recibido"
        assert processed.body == "Se ha recibido un pago de 42."
        assert processed.priority == Priority.NORMAL

    def test_accepts_event_instance(self, processor: EventProcessor) -> None:
        event = Event(id="x", type="order", data={"userId": "u1", "orderId": "7"})
        processed = processor.process(event)
        assert processed.event is event
        assert processed.body == "Tu pedido #7 ha sido actualizado."

    def test_source_is_recorded(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "order", "data": {}}, "shop")
        assert processed.event.source == "shop"

    def test_unknown_type_uses_fallback(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "mystery", "data": {"userId": "u1"}})
        assert processed.should_notify is True
        assert processed.title == "New Event"
        assert processed.body == "Event of type mystery occurred"

    def test_no_recipients(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "payment", "data": {"amount": 1}})
        assert processed.users_to_notify == ()

    def test_system_alert_is_high(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "system_alert", "data": {"message": "disk"}})
        assert processed.priority == Priority.HIGH
        assert processed.body == "Alert: disk"


class TestOverrides:
    def test_title_and_body_from_data(self, processor: EventProcessor) -> None:
        processed = processor.process(
            {"type": "payment", "data": {"title": "Paid!", "body": "You got 5", "userId": "u"}}
        )
        assert processed.title == "Paid!"
        assert processed.body == "You got 5"

    def test_priority_and_ttl_from_data(self, processor: EventProcessor) -> None:
        processed = processor.process(
            {"type": "order", "data": {"priority": "HIGH", "timeToLive": "60"}}
        )
        assert processed.priority == Priority.HIGH
        assert processed.time_to_live == 60

    def test_invalid_ttl_uses_default(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "order", "data": {"timeToLive": -5}})
        assert processed.time_to_live == 86400

    def test_control_and_recipient_keys_stripped(self, processor: EventProcessor) -> None:
        processed = processor.process(
            {
                "type": "order",
                "data": {
                    "orderId": "A1",
                    "usersToNotify": ["u1"],
                    "userId": "u2",
                    "title": "t",
                    "notify": True,
                },
            }
        )
        assert dict(processed.data) == {"orderId": "A1"}


class TestShouldNotify:
    def test_notify_false_in_data(self, processor: EventProcessor) -> None:
        processed = processor.process({"type": "order", "data": {"notify": False, "userId": "u"}})
        assert processed.should_notify is False

    def test_silent_type(self) -> None:
        processor = EventProcessor(silent_types=["heartbeat"])
        processed = processor.process({"type": "heartbeat", "data": {"userId": "u"}})
        assert processed.should_notify is False

    def test_informational_spec(self) -> None:
        registry = EventTypeRegistry()
        registry.register("audit", EventTypeSpec(notify=False))
        processed = EventProcessor(registry).process({"type": "audit", "data": {"userId": "u"}})
        assert processed.should_notify is False


class TestErrors:
    def test_missing_type(self, processor: EventProcessor) -> None:
        with pytest.raises(InvalidEventError):
            processor.process({"data": {}})

    def test_not_a_mapping(self, processor: EventProcessor) -> None:
        with pytest.raises(InvalidEventError):
            processor.process(["payment"])  # type: ignore[arg-type]

    def test_required_field_missing(self) -> None:
        registry = EventTypeRegistry()
        registry.register("invoice", EventTypeSpec(required_fields=("invoiceId",)))
        with pytest.raises(InvalidEventError) as exc_info:
            EventProcessor(registry).process({"type": "invoice", "data": {}})
        assert exc_info.value.code == "missing-event-fields"

    def test_strategy_failure(self) -> None:
        def broken(event: Event) -> list[str]:
            raise KeyError("owner")

        registry = EventTypeRegistry()
        registry.register("doc", EventTypeSpec(recipients=broken))
        with pytest.raises(ClassificationError) as exc_info:
            EventProcessor(registry).process({"type": "doc", "data": {}})
        assert exc_info.value.code == "recipient-resolution-failed"


class TestPluggableRecipients:
    def test_custom_strategy(self) -> None:
        registry = EventTypeRegistry()
        registry.register("comment", EventTypeSpec(title="c", recipients=field_recipient("author")))
        processed = EventProcessor(registry).process(
            {"type": "comment", "data": {"author": "u7", "userId": "ignored"}}
        )
        assert processed.users_to_notify == ("u7",)

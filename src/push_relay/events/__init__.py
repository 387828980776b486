"""Events — inbound event model, type registry and classification.

Provides:
- ``Event`` / ``ProcessedEvent`` — the inbound event and its classification
- ``EventTypeRegistry`` — event type → templates + recipient strategy
- ``EventProcessor`` — turns a raw payload into a ``ProcessedEvent``
"""

from __future__ import annotations

from push_relay.events.models import Event, ProcessedEvent
from push_relay.events.processor import EventProcessor
from push_relay.events.registry import (
    EventTypeRegistry,
    EventTypeSpec,
    explicit_recipients,
    field_recipient,
)

__all__ = [
    "Event",
    "EventProcessor",
    "EventTypeRegistry",
    "EventTypeSpec",
    "ProcessedEvent",
    "explicit_recipients",
    "field_recipient",
]

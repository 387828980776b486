"""Event processor — classify an inbound event and resolve its recipients."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from push_relay.errors.push_errors import (
    ClassificationError,
    InvalidEventError,
    PushRelayError,
    ValidationError,
)
from push_relay.events.models import Event, ProcessedEvent
from push_relay.events.registry import RECIPIENT_KEYS, EventTypeRegistry
from push_relay.notifications.models import Priority

logger = logging.getLogger(__name__)

# Data keys that steer classification and are not forwarded as payload data.
_CONTROL_KEYS = frozenset({"title", "body", "priority", "timeToLive", "notify"})


def _ttl(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        ttl = int(value)
    except (TypeError, ValueError):
        return None
    return ttl if ttl >= 0 else None


class EventProcessor:
    """Turns raw webhook payloads into :class:`ProcessedEvent` values.

    Usage::

        processor = EventProcessor()
        processed = processor.process({"type": "payment", "data": {...}}, "stripe")
        if processed.should_notify:
            ...
    """

    def __init__(
        self,
        registry: EventTypeRegistry | None = None,
        *,
        silent_types: Iterable[str] = (),
        default_priority: Priority = Priority.NORMAL,
        default_time_to_live: int = 86400,
    ) -> None:
        self._registry = registry or EventTypeRegistry()
        self._silent_types = frozenset(silent_types)
        self._default_priority = default_priority
        self._default_ttl = default_time_to_live

    @property
    def registry(self) -> EventTypeRegistry:
        return self._registry

    def process(self, event: Event | Mapping[str, Any], source: str = "default") -> ProcessedEvent:
        """Classify *event*.

        Args:
            event: An :class:`Event` or a raw payload mapping.
            source: Identifier of the system that sent the event.

        Returns:
            The classification result. Unknown types are not an error; they
            are announced with the registry's fallback template.

        Raises:
            InvalidEventError: No discriminable type, or a field required by
                the event's type is missing.
            ClassificationError: The recipient strategy failed.
        """
        if not isinstance(event, Event):
            try:
                event = Event.from_payload(event, source)
            except ValidationError as exc:
                raise InvalidEventError(exc.message) from exc

        spec = self._registry.resolve(event.type)

        missing = [f for f in spec.required_fields if event.data.get(f) in (None, "")]
        if missing:
            msg = f"event type '{event.type}' requires field(s): {', '.join(missing)}"
            raise InvalidEventError(msg, code="missing-event-fields")

        try:
            recipients = tuple(spec.recipients(event))
        except PushRelayError:
            raise
        except Exception as exc:
            msg = f"recipient resolution failed for event type '{event.type}': {exc}"
            raise ClassificationError(msg, code="recipient-resolution-failed") from exc

        data = event.data
        should_notify = (
            spec.notify and event.type not in self._silent_types and data.get("notify") is not False
        )

        title = data.get("title") if isinstance(data.get("title"), str) else spec.title
        body = data.get("body") if isinstance(data.get("body"), str) else None
        if body is None and spec.body is not None:
            body = spec.body(event)

        if "priority" in data:
            priority = Priority.from_value(data["priority"], spec.priority or self._default_priority)
        else:
            priority = spec.priority or self._default_priority

        ttl = _ttl(data.get("timeToLive"))
        if ttl is None:
            ttl = spec.time_to_live if spec.time_to_live is not None else self._default_ttl

        processed = ProcessedEvent(
            event=event,
            should_notify=should_notify,
            users_to_notify=recipients,
            title=title or None,
            body=body or None,
            data={
                k: v for k, v in data.items() if k not in RECIPIENT_KEYS and k not in _CONTROL_KEYS
            },
            priority=priority,
            time_to_live=ttl,
        )
        logger.debug(
            "Classified event %s type=%s source=%s notify=%s recipients=%d",
            event.id,
            event.type,
            event.source,
            should_notify,
            len(recipients),
        )
        return processed

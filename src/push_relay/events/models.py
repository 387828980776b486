"""Event types for the dispatch pipeline.

- ``Event`` — immutable inbound event produced from a webhook payload
- ``ProcessedEvent`` — classification result: notify or not, and for whom
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from push_relay.errors.definitions import ErrEventNotMapping, ErrMissingEventType
from push_relay.notifications.models import Priority

# Keys of the payload envelope; everything else is event data when the
# payload carries no explicit ``data`` object.
_ENVELOPE_KEYS = frozenset({"id", "type", "data", "timestamp"})

# Numeric timestamps above this are epoch milliseconds (JS ``Date.now()``).
_EPOCH_MILLIS_THRESHOLD = 1e11


def _parse_timestamp(value: Any) -> datetime:
    """Accept datetimes, ISO-8601 strings and epoch seconds or milliseconds.

    Anything unparseable falls back to the current time.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return datetime.now(UTC)
    if isinstance(value, int | float):
        seconds = value / 1000 if abs(value) > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, UTC)
        except (ValueError, OverflowError, OSError):
            return datetime.now(UTC)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(UTC)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return datetime.now(UTC)


@dataclass(frozen=True)
class Event:
    """Inbound event envelope.

    ``data`` is wrapped in a read-only mapping so the event stays immutable
    once created.
    """

    id: str
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    source: str = "default"

    def __post_init__(self) -> None:
        if not isinstance(self.data, MappingProxyType):
            object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @classmethod
    def from_payload(cls, payload: Any, source: str = "default") -> Event:
        """Build an event from a raw webhook payload.

        Raises:
            ValidationError: If the payload is not a mapping or has no type.
        """
        if not isinstance(payload, Mapping):
            raise ErrEventNotMapping
        event_type = payload.get("type")
        if not isinstance(event_type, str) or not event_type.strip():
            raise ErrMissingEventType

        raw_data = payload.get("data")
        if isinstance(raw_data, Mapping):
            data = dict(raw_data)
        else:
            data = {k: v for k, v in payload.items() if k not in _ENVELOPE_KEYS}

        event_id = payload.get("id")
        return cls(
            id=str(event_id) if event_id not in (None, "") else uuid.uuid4().hex,
            type=event_type.strip(),
            data=data,
            timestamp=_parse_timestamp(payload.get("timestamp")),
            source=source or "default",
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return {
            "id": self.id,
            "type": self.type,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }


@dataclass(frozen=True)
class ProcessedEvent:
    """Classification of an inbound event."""

    event: Event
    should_notify: bool
    users_to_notify: tuple[str, ...] = ()
    title: str | None = None
    body: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    priority: Priority = Priority.NORMAL
    time_to_live: int = 86400

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def type(self) -> str:
        return self.event.type

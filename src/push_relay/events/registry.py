"""Event type registry — templates, policy and recipient strategy per type.

Each known event type maps to an :class:`EventTypeSpec`. Types that are not
registered resolve to the registry's fallback spec, so an unknown event is
still announced with a generic template instead of being rejected.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from push_relay.notifications.builder import default_body, default_title
from push_relay.notifications.models import Priority

if TYPE_CHECKING:
    from push_relay.events.models import Event

RecipientStrategy = Callable[["Event"], Sequence[str]]
BodyTemplate = Callable[["Event"], str]

# Payload keys naming recipients; they are routing input, not notification data.
RECIPIENT_LIST_KEYS = ("usersToNotify", "recipients", "userIds")
RECIPIENT_SCALAR_KEYS = ("userId", "recipient")
RECIPIENT_KEYS = frozenset(RECIPIENT_LIST_KEYS + RECIPIENT_SCALAR_KEYS)


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None or value == "":
        return default
    return str(value)


def _dedupe(values: Iterable[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        user_id = str(value).strip()
        if user_id:
            seen.setdefault(user_id, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Recipient strategies
# ---------------------------------------------------------------------------


def explicit_recipients(event: Event) -> list[str]:
    """Recipients named explicitly in the event data.

    Reads the list fields ``usersToNotify``, ``recipients`` and ``userIds``
    and the scalar fields ``userId`` and ``recipient``. Order is preserved
    and duplicates are dropped.
    """
    collected: list[Any] = []
    for key in RECIPIENT_LIST_KEYS:
        value = event.data.get(key)
        if isinstance(value, list | tuple):
            collected.extend(value)
        elif isinstance(value, str):
            collected.append(value)
    for key in RECIPIENT_SCALAR_KEYS:
        value = event.data.get(key)
        if isinstance(value, str | int):
            collected.append(value)
    return _dedupe(collected)


def field_recipient(name: str) -> RecipientStrategy:
    """Strategy reading the recipient from a single data field (e.g. ``owner``)."""

    def _strategy(event: Event) -> list[str]:
        value = event.data.get(name)
        if isinstance(value, list | tuple):
            return _dedupe(value)
        return _dedupe([value])

    _strategy.__name__ = f"field_recipient_{name}"
    return _strategy


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventTypeSpec:
    """How one event type is announced and routed.

    ``title``/``body`` left as None defer to the notification builder's
    defaults. ``priority``/``time_to_live`` left as None defer to the
    dispatch configuration.
    """

    title: str | None = None
    body: BodyTemplate | None = None
    recipients: RecipientStrategy = explicit_recipients
    required_fields: tuple[str, ...] = ()
    notify: bool = True
    priority: Priority | None = None
    time_to_live: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


def _builder_default(event_type: str) -> EventTypeSpec:
    return EventTypeSpec(
        title=default_title(event_type),
        body=lambda event: default_body(event_type, event.data),
    )


def _fallback_body(event: Event) -> str:
    return f"Event of type {event.type} occurred"


FALLBACK_SPEC = EventTypeSpec(title="New Event", body=_fallback_body)


def builtin_specs() -> dict[str, EventTypeSpec]:
    """The event types understood out of the box."""
    return {
        "user_action": EventTypeSpec(
            title="User Action",
            body=lambda e: (
                f"User {_text(e.data, 'user', 'unknown')} performed action: "
                f"{_text(e.data, 'action', 'unknown')}"
            ),
        ),
        "system_alert": EventTypeSpec(
            title="System Alert",
            body=lambda e: f"Alert: {_text(e.data, 'message', 'no details')}",
            priority=Priority.HIGH,
        ),
        "data_update": EventTypeSpec(
            title="Data Update",
            body=lambda e: f"{_text(e.data, 'entity', 'Entity')} data has been updated",
        ),
        "payment": _builder_default("payment"),
        "order": _builder_default("order"),
        "message": _builder_default("message"),
        "alert": EventTypeSpec(
            title=default_title("alert"),
            body=lambda e: default_body("alert", e.data),
            priority=Priority.HIGH,
        ),
        "reminder": _builder_default("reminder"),
    }


class EventTypeRegistry:
    """Mapping of event type → :class:`EventTypeSpec`, open for extension."""

    def __init__(
        self,
        specs: Mapping[str, EventTypeSpec] | None = None,
        *,
        fallback: EventTypeSpec = FALLBACK_SPEC,
    ) -> None:
        self._specs: dict[str, EventTypeSpec] = dict(builtin_specs() if specs is None else specs)
        self._fallback = fallback

    def register(self, event_type: str, spec: EventTypeSpec) -> None:
        """Add or replace the spec for *event_type*."""
        self._specs[event_type] = spec

    def unregister(self, event_type: str) -> None:
        self._specs.pop(event_type, None)

    def resolve(self, event_type: str) -> EventTypeSpec:
        """Return the spec for *event_type*, or the fallback spec."""
        return self._specs.get(event_type, self._fallback)

    def is_known(self, event_type: str) -> bool:
        return event_type in self._specs

    @property
    def types(self) -> list[str]:
        return sorted(self._specs)

    @property
    def fallback(self) -> EventTypeSpec:
        return self._fallback

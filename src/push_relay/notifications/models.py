"""Notification payload model."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any


class Priority(enum.StrEnum):
    """Delivery priority understood by the push transports."""

    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def from_value(cls, value: Any, default: Priority | None = None) -> Priority:
        """Parse a priority, returning *default* (or NORMAL) for unknown values."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.NORMAL


def stringify(value: Any) -> str:
    """Coerce a single data value into the string form push transports accept."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


@dataclass
class Notification:
    """A push notification addressed to one recipient.

    ``data`` keeps the typed values from the event; call
    :meth:`sanitized_data` right before handing the payload to a transport.
    """

    title: str
    body: str
    user_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    priority: Priority = Priority.NORMAL
    time_to_live: int = 86400

    def sanitized_data(self) -> dict[str, str]:
        """Return ``data`` with every key and value coerced to ``str``."""
        return {str(k): stringify(v) for k, v in self.data.items()}

    def to_fcm_options(self, *, now: float | None = None) -> dict[str, Any]:
        """Platform delivery options derived from priority and time-to-live.

        Android takes a priority and a TTL in seconds; APNs takes a numeric
        priority header and an absolute expiration timestamp.
        """
        high = self.priority == Priority.HIGH
        issued = int(now if now is not None else time.time())
        return {
            "android": {
                "priority": "high" if high else "normal",
                "ttl": self.time_to_live,
            },
            "apns": {
                "headers": {
                    "apns-priority": "10" if high else "5",
                    "apns-expiration": str(issued + self.time_to_live),
                },
            },
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (data values sanitized)."""
        return {
            "userId": self.user_id,
            "title": self.title,
            "body": self.body,
            "data": self.sanitized_data(),
            "priority": self.priority.value,
            "timeToLive": self.time_to_live,
        }

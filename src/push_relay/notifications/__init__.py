"""Notifications — payload model and the event → notification builder."""

from __future__ import annotations

from push_relay.notifications.builder import NotificationBuilder, default_body, default_title
from push_relay.notifications.models import Notification, Priority, stringify

__all__ = [
    "Notification",
    "NotificationBuilder",
    "Priority",
    "default_body",
    "default_title",
    "stringify",
]

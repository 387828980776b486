"""Push — delivery outcome model and push sender backends.

Provides:
- ``PushSender`` — protocol the dispatch pipeline depends on
- ``FirebasePushSender`` — Firebase Cloud Messaging via firebase-admin
  (import from ``push_relay.push.firebase``)
- ``LoggingPushSender`` — development sender that only logs
"""

from __future__ import annotations

from push_relay.push.models import (
    DeliveryOutcome,
    FailureReason,
    SendReport,
    classify_error_code,
)
from push_relay.push.sender import LoggingPushSender, PushSender

__all__ = [
    "DeliveryOutcome",
    "FailureReason",
    "LoggingPushSender",
    "PushSender",
    "SendReport",
    "classify_error_code",
]

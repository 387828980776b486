"""Error hierarchy for push-relay operations."""

from push_relay.errors.push_errors import (
    ClassificationError,
    DeliveryError,
    DispatchTimeoutError,
    InvalidEventError,
    PushRelayError,
    StoreError,
    ValidationError,
)

__all__ = [
    "ClassificationError",
    "DeliveryError",
    "DispatchTimeoutError",
    "InvalidEventError",
    "PushRelayError",
    "StoreError",
    "ValidationError",
]

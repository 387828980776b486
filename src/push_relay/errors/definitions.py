"""Pre-defined error instances shared by the intake and API layers."""

from __future__ import annotations

from push_relay.errors.push_errors import (
    PushRelayError,
    ValidationError,
)

# -- Authentication --------------------------------------------------------

ErrWebhookUnauthorized = PushRelayError(
    "invalid webhook authentication", status_code=401, code="webhook-unauthorized"
)

# -- Token registration ----------------------------------------------------

ErrMissingUserId = ValidationError("userId must be a non-empty string", code="missing-user-id")
ErrMissingToken = ValidationError("token must be a non-empty string", code="missing-token")
ErrInvalidDeviceInfo = ValidationError(
    "deviceInfo must be an object", code="invalid-device-info"
)
ErrInvalidPurgeDays = ValidationError("days must be a positive integer", code="invalid-days")

# -- Webhook intake --------------------------------------------------------

ErrMissingEventData = ValidationError(
    "missing event data in request body", code="missing-event-data"
)
ErrInvalidJsonPayload = ValidationError("Invalid JSON payload", code="invalid-json")
ErrEventNotMapping = ValidationError("event payload must be an object", code="event-not-object")
ErrMissingEventType = ValidationError(
    "event payload must contain a non-empty 'type' field", code="missing-event-type"
)

# -- Engine ----------------------------------------------------------------

ErrEngineNotReady = PushRelayError(
    "push relay engine is not initialized", status_code=503, code="engine-not-ready"
)

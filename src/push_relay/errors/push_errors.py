"""PushRelayError — base exception class and the error taxonomy."""

from __future__ import annotations


class PushRelayError(Exception):
    """Base error for all push-relay operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "push-relay-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ValidationError(PushRelayError):
    """Malformed input to registration or webhook intake."""

    def __init__(self, message: str, *, code: str = "validation-error") -> None:
        super().__init__(message, status_code=400, code=code)


class ClassificationError(PushRelayError):
    """The event processor could not determine type or recipients."""

    def __init__(self, message: str, *, code: str = "classification-error") -> None:
        super().__init__(message, status_code=422, code=code)


class InvalidEventError(ClassificationError):
    """Event lacks a discriminable type or a field its type requires."""

    def __init__(self, message: str, *, code: str = "invalid-event") -> None:
        super().__init__(message, code=code)


class StoreError(PushRelayError):
    """Token store operation failed."""

    def __init__(self, message: str, *, code: str = "store-error") -> None:
        super().__init__(message, status_code=503, code=code)


class DeliveryError(PushRelayError):
    """The push transport failed as a whole (not a per-token failure)."""

    def __init__(self, message: str, *, code: str = "delivery-error") -> None:
        super().__init__(message, status_code=502, code=code)


class DispatchTimeoutError(PushRelayError, TimeoutError):
    """A dispatch call exceeded its configured time budget."""

    def __init__(self, message: str = "dispatch timed out") -> None:
        super().__init__(message, status_code=504, code="dispatch-timeout")

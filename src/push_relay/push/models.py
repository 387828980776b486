"""Delivery outcome models.

A push sender returns one :class:`DeliveryOutcome` per token, index-aligned
with the token list it was given, wrapped in a :class:`SendReport`.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any


class FailureReason(enum.StrEnum):
    """Why a single token could not be delivered to.

    UNREGISTERED is terminal (the device target no longer exists) and
    triggers pruning. TRANSIENT may succeed on a later attempt. UNKNOWN
    gets no automatic action.
    """

    UNREGISTERED = "UNREGISTERED"
    TRANSIENT = "TRANSIENT"
    UNKNOWN = "UNKNOWN"


_UNREGISTERED_CODES = frozenset(
    {
        "unregistered",
        "not_found",
        "token_not_registered",
        "registration-token-not-registered",
        "messaging/registration-token-not-registered",
        "sender-id-mismatch",
        "messaging/mismatched-credential",
        "sender_id_mismatch",
    }
)
_TRANSIENT_CODES = frozenset(
    {
        "unavailable",
        "internal",
        "quota_exceeded",
        "quota-exceeded",
        "messaging/server-unavailable",
        "messaging/internal-error",
        "messaging/message-rate-exceeded",
        "message-rate-exceeded",
        "resource_exhausted",
        "deadline_exceeded",
    }
)


def classify_error_code(code: str | None) -> FailureReason:
    """Map a transport error code onto a :class:`FailureReason`."""
    if not code:
        return FailureReason.UNKNOWN
    normalized = code.strip().lower()
    if normalized in _UNREGISTERED_CODES:
        return FailureReason.UNREGISTERED
    if normalized in _TRANSIENT_CODES:
        return FailureReason.TRANSIENT
    return FailureReason.UNKNOWN


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering to one token."""

    token: str
    success: bool
    failure_reason: FailureReason | None = None
    error_code: str = ""
    message: str = ""
    message_id: str = ""

    @classmethod
    def ok(cls, token: str, message_id: str = "") -> DeliveryOutcome:
        return cls(token=token, success=True, message_id=message_id)

    @classmethod
    def failed(
        cls,
        token: str,
        reason: FailureReason,
        *,
        error_code: str = "",
        message: str = "",
    ) -> DeliveryOutcome:
        return cls(
            token=token,
            success=False,
            failure_reason=reason,
            error_code=error_code,
            message=message,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SendReport:
    """Aggregate result of one multi-token send."""

    success_count: int = 0
    failure_count: int = 0
    outcomes: list[DeliveryOutcome] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[DeliveryOutcome]) -> SendReport:
        ok = sum(1 for o in outcomes if o.success)
        return cls(success_count=ok, failure_count=len(outcomes) - ok, outcomes=list(outcomes))

    @property
    def failed(self) -> list[DeliveryOutcome]:
        return [o for o in self.outcomes if not o.success]

    def tokens_with(self, reason: FailureReason) -> list[str]:
        """Tokens whose delivery failed for *reason*."""
        return [o.token for o in self.outcomes if not o.success and o.failure_reason == reason]

    @property
    def unregistered_tokens(self) -> list[str]:
        return self.tokens_with(FailureReason.UNREGISTERED)

    @property
    def transient_tokens(self) -> list[str]:
        return self.tokens_with(FailureReason.TRANSIENT)

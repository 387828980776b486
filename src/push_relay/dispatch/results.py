"""Typed results of the dispatch use case."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from push_relay.errors.push_errors import PushRelayError
    from push_relay.events.models import ProcessedEvent
    from push_relay.push.models import DeliveryOutcome

NO_TOKENS_REASON = "No tokens available"


@dataclass(frozen=True)
class RecipientResult:
    """What happened for one recipient of an event."""

    user_id: str
    success: bool
    reason: str = ""
    tokens_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    failed_tokens: list[DeliveryOutcome] = field(default_factory=list)
    pruned_tokens: list[str] = field(default_factory=list)
    error_code: str = ""

    @classmethod
    def no_tokens(cls, user_id: str) -> RecipientResult:
        return cls(user_id=user_id, success=False, reason=NO_TOKENS_REASON, error_code="no-tokens")

    @classmethod
    def from_error(cls, user_id: str, error: PushRelayError | Exception) -> RecipientResult:
        code = getattr(error, "code", "") or type(error).__name__
        message = getattr(error, "message", "") or str(error) or type(error).__name__
        return cls(user_id=user_id, success=False, reason=message, error_code=code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "success": self.success,
            "reason": self.reason,
            "tokensCount": self.tokens_count,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "failedTokens": [
                {
                    "token": o.token,
                    "reason": o.failure_reason.value if o.failure_reason else None,
                    "errorCode": o.error_code,
                }
                for o in self.failed_tokens
            ],
            "prunedTokens": list(self.pruned_tokens),
        }


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of dispatching one inbound event.

    ``success`` is False only when the event could not be classified;
    per-recipient failures live in ``recipients``.
    """

    success: bool
    notified: bool = False
    recipients: list[RecipientResult] = field(default_factory=list)
    processed_event: ProcessedEvent | None = None
    error: PushRelayError | None = None

    @classmethod
    def failure(cls, error: PushRelayError) -> DispatchResult:
        return cls(success=False, notified=False, error=error)

    @property
    def per_user_results(self) -> dict[str, RecipientResult]:
        return {r.user_id: r for r in self.recipients}

    @property
    def succeeded(self) -> list[RecipientResult]:
        return [r for r in self.recipients if r.success]

    @property
    def failed(self) -> list[RecipientResult]:
        return [r for r in self.recipients if not r.success]

    def to_summary(self) -> dict[str, Any]:
        """Response body for the webhook endpoint."""
        if not self.success:
            return {
                "success": False,
                "code": self.error.code if self.error else "dispatch-failed",
                "error": self.error.message if self.error else "Failed to process event",
            }
        return {
            "success": True,
            "eventProcessed": True,
            "eventId": self.processed_event.id if self.processed_event else None,
            "notificationsDelivered": self.notified,
            "resultSummary": {
                "notifiedUsers": len(self.recipients),
                "successfulNotifications": len(self.succeeded),
            },
            "results": [r.to_dict() for r in self.recipients],
        }

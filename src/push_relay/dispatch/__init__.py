"""Dispatch — the event → notification → delivery pipeline.

- ``DispatchOrchestrator`` — fan-out to recipients, delivery and pruning
- ``WebhookIntake`` — payload validation in front of the orchestrator
- ``DispatchResult`` / ``RecipientResult`` — typed outcomes
"""

from push_relay.dispatch.intake import WebhookIntake
from push_relay.dispatch.orchestrator import DispatchOrchestrator
from push_relay.dispatch.results import NO_TOKENS_REASON, DispatchResult, RecipientResult

__all__ = [
    "NO_TOKENS_REASON",
    "DispatchOrchestrator",
    "DispatchResult",
    "RecipientResult",
    "WebhookIntake",
]

"""Webhook intake — validate an inbound payload, then dispatch it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from push_relay.errors.definitions import (
    ErrEventNotMapping,
    ErrMissingEventData,
    ErrMissingEventType,
)

if TYPE_CHECKING:
    from push_relay.dispatch.orchestrator import DispatchOrchestrator
    from push_relay.dispatch.results import DispatchResult

logger = logging.getLogger(__name__)


class WebhookIntake:
    """Entry point for events arriving from external systems.

    Rejected payloads raise before anything is dispatched.
    """

    def __init__(self, orchestrator: DispatchOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def receive(self, payload: Any, source: str = "default") -> DispatchResult:
        """Validate *payload* and dispatch it.

        Raises:
            ValidationError: The payload is missing, not an object, or has
                no ``type`` field.
            DispatchTimeoutError: The dispatch exceeded its time budget.
        """
        if payload is None:
            raise ErrMissingEventData
        if not isinstance(payload, Mapping):
            raise ErrEventNotMapping
        event_type = payload.get("type")
        if not isinstance(event_type, str) or not event_type.strip():
            raise ErrMissingEventType

        logger.info("Webhook received from %s: type=%s", source, event_type)
        return await self._orchestrator.dispatch(payload, source)

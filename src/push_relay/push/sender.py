"""Push sender protocol and the development logging sender."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from push_relay.push.models import DeliveryOutcome, SendReport

if TYPE_CHECKING:
    from collections.abc import Sequence

    from push_relay.notifications.models import Notification

logger = logging.getLogger(__name__)


@runtime_checkable
class PushSender(Protocol):
    """Delivers one notification to a batch of device tokens.

    Implementations must return exactly one outcome per input token, in
    input order, and must not call the transport when *tokens* is empty.
    """

    async def send(self, notification: Notification, tokens: Sequence[str]) -> SendReport: ...

    async def close(self) -> None: ...


class LoggingPushSender:
    """Sender that logs every notification and reports success for every token.

    Intended for local development and for running the service without
    push credentials.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[Notification, list[str]]] = []

    async def send(self, notification: Notification, tokens: Sequence[str]) -> SendReport:  # noqa: ASYNC910
        """Record and log the notification."""
        if not tokens:
            return SendReport()
        payload = notification.to_dict()
        self.sent.append((notification, list(tokens)))
        logger.info(
            "Push (logging backend) to %d token(s): %s | %s data=%s",
            len(tokens),
            payload["title"],
            payload["body"],
            payload["data"],
        )
        return SendReport.from_outcomes([DeliveryOutcome.ok(t) for t in tokens])

    async def close(self) -> None:  # noqa: ASYNC910
        """Nothing to release."""

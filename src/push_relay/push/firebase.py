"""Firebase Cloud Messaging sender built on firebase-admin.

The SDK is blocking, so each multicast request runs in a worker thread.
FCM accepts at most 500 tokens per multicast message; larger batches are
split and the per-token outcomes stitched back together in input order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from push_relay.errors.push_errors import DeliveryError
from push_relay.push.models import (
    DeliveryOutcome,
    FailureReason,
    SendReport,
    classify_error_code,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from push_relay.config.settings import FirebaseConfig
    from push_relay.notifications.models import Notification

logger = logging.getLogger(__name__)

MAX_MULTICAST_TOKENS = 500

_UNREGISTERED_ERRORS: tuple[type[Exception], ...] = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
)
_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    messaging.QuotaExceededError,
    exceptions.UnavailableError,
    exceptions.InternalError,
    exceptions.DeadlineExceededError,
)


def classify_exception(exc: BaseException | None) -> FailureReason:
    """Map a per-token firebase-admin exception onto a :class:`FailureReason`."""
    if exc is None:
        return FailureReason.UNKNOWN
    if isinstance(exc, _UNREGISTERED_ERRORS):
        return FailureReason.UNREGISTERED
    if isinstance(exc, _TRANSIENT_ERRORS):
        return FailureReason.TRANSIENT
    return classify_error_code(getattr(exc, "code", None))


def _error_code(exc: BaseException | None) -> str:
    code = getattr(exc, "code", None)
    return str(code) if code else type(exc).__name__ if exc else ""


def load_credential(config: FirebaseConfig) -> credentials.Base:
    """Resolve the credential described by *config*.

    Raises:
        DeliveryError: If the configured credential file does not exist or
            the inline JSON cannot be parsed.
    """
    if config.credential_path:
        try:
            return credentials.Certificate(config.credential_path)
        except (OSError, ValueError) as exc:
            msg = f"Firebase credential file not usable: {config.credential_path}"
            raise DeliveryError(msg, code="firebase-credentials") from exc
    if config.credentials_json:
        try:
            return credentials.Certificate(json.loads(config.credentials_json))
        except ValueError as exc:
            msg = "Firebase credentials JSON is invalid"
            raise DeliveryError(msg, code="firebase-credentials") from exc
    return credentials.ApplicationDefault()


class FirebasePushSender:
    """Push sender backed by Firebase Cloud Messaging.

    Usage::

        sender = FirebasePushSender(config.firebase, app_name="push-relay")
        await sender.connect()
        report = await sender.send(notification, ["token-1", "token-2"])
        await sender.close()
    """

    def __init__(
        self,
        config: FirebaseConfig,
        *,
        app_name: str = "push-relay",
        dry_run: bool = False,
        app: firebase_admin.App | None = None,
    ) -> None:
        self._config = config
        self._app_name = app_name
        self._dry_run = dry_run
        self._app = app
        self._owns_app = False

    @property
    def is_connected(self) -> bool:
        return self._app is not None

    async def connect(self) -> None:
        """Initialise (or reuse) the named firebase-admin app."""
        if self._app is not None:
            return
        try:
            self._app = firebase_admin.get_app(self._app_name)
            return
        except ValueError:
            pass
        options: dict[str, Any] = {}
        if self._config.project_id:
            options["projectId"] = self._config.project_id
        self._app = firebase_admin.initialize_app(
            load_credential(self._config),
            options or None,
            name=self._app_name,
        )
        self._owns_app = True
        logger.info("Firebase app '%s' initialised", self._app_name)

    async def close(self) -> None:
        """Delete the firebase-admin app if this sender created it."""
        if self._app is not None and self._owns_app:
            firebase_admin.delete_app(self._app)
        self._app = None
        self._owns_app = False

    def build_message(
        self, notification: Notification, tokens: Sequence[str]
    ) -> messaging.MulticastMessage:
        """Build the multicast message; data values are stringified here."""
        options = notification.to_fcm_options()
        return messaging.MulticastMessage(
            tokens=list(tokens),
            data=notification.sanitized_data(),
            notification=messaging.Notification(
                title=notification.title,
                body=notification.body,
            ),
            android=messaging.AndroidConfig(
                priority=options["android"]["priority"],
                ttl=options["android"]["ttl"],
            ),
            apns=messaging.APNSConfig(headers=options["apns"]["headers"]),
        )

    async def send(self, notification: Notification, tokens: Sequence[str]) -> SendReport:
        """Send *notification* to every token.

        Raises:
            DeliveryError: If the transport request itself failed.
        """
        if not tokens:
            return SendReport()
        await self.connect()

        outcomes: list[DeliveryOutcome] = []
        for start in range(0, len(tokens), MAX_MULTICAST_TOKENS):
            chunk = list(tokens[start : start + MAX_MULTICAST_TOKENS])
            outcomes.extend(await self._send_chunk(notification, chunk))

        report = SendReport.from_outcomes(outcomes)
        logger.debug(
            "FCM send for user %s: %d ok, %d failed",
            notification.user_id,
            report.success_count,
            report.failure_count,
        )
        return report

    async def _send_chunk(
        self, notification: Notification, tokens: list[str]
    ) -> list[DeliveryOutcome]:
        message = self.build_message(notification, tokens)
        try:
            batch = await asyncio.to_thread(
                messaging.send_each_for_multicast,
                message,
                dry_run=self._dry_run,
                app=self._app,
            )
        except exceptions.FirebaseError as exc:
            msg = f"FCM multicast failed: {exc}"
            raise DeliveryError(msg, code="fcm-request-failed") from exc
        except ValueError as exc:
            msg = f"FCM rejected the message: {exc}"
            raise DeliveryError(msg, code="fcm-invalid-message") from exc

        outcomes: list[DeliveryOutcome] = []
        for token, response in zip(tokens, batch.responses, strict=True):
            if response.success:
                outcomes.append(DeliveryOutcome.ok(token, response.message_id or ""))
                continue
            exc = response.exception
            outcomes.append(
                DeliveryOutcome.failed(
                    token,
                    classify_exception(exc),
                    error_code=_error_code(exc),
                    message=str(exc) if exc else "",
                )
            )
        return outcomes

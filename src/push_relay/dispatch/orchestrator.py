"""Dispatch orchestrator — event in, notifications out, stale tokens pruned.

For every inbound event:

1. classify it with the :class:`EventProcessor`;
2. for each recipient, load active tokens from the :class:`TokenStore`;
3. build the notification and hand it to the :class:`PushSender`;
4. prune tokens the transport reports as unregistered;
5. fold everything into a :class:`DispatchResult`.

Recipients are processed concurrently, bounded by a semaphore. A failure in
one recipient's pipeline is recorded in that recipient's result and never
cancels or fails its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from push_relay.config.settings import PruneMode, SuccessPolicy
from push_relay.dispatch.results import DispatchResult, RecipientResult
from push_relay.errors.push_errors import (
    ClassificationError,
    DeliveryError,
    DispatchTimeoutError,
    PushRelayError,
)
from push_relay.push.models import FailureReason

if TYPE_CHECKING:
    from collections.abc import Mapping

    from push_relay.events.models import Event, ProcessedEvent
    from push_relay.events.processor import EventProcessor
    from push_relay.metrics.collector import DispatchMetrics
    from push_relay.notifications.builder import NotificationBuilder
    from push_relay.push.models import SendReport
    from push_relay.push.sender import PushSender
    from push_relay.tokens.store import TokenStore

logger = logging.getLogger(__name__)

OTHER_EVENT_TYPE = "other"


class DispatchOrchestrator:
    """Runs the dispatch pipeline for one event at a time.

    Usage::

        orchestrator = DispatchOrchestrator(processor, builder, sender, store)
        result = await orchestrator.dispatch(payload, "payment-gateway")
        if result.notified:
            ...
    """

    def __init__(
        self,
        processor: EventProcessor,
        builder: NotificationBuilder,
        sender: PushSender,
        store: TokenStore,
        *,
        max_concurrency: int = 10,
        timeout: float | None = None,
        success_policy: SuccessPolicy = SuccessPolicy.ANY,
        prune_mode: PruneMode = PruneMode.DELETE,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        if max_concurrency < 1:
            msg = "max_concurrency must be at least 1"
            raise ValueError(msg)
        self._processor = processor
        self._builder = builder
        self._sender = sender
        self._store = store
        self._max_concurrency = max_concurrency
        self._timeout = timeout
        self._success_policy = success_policy
        self._prune_mode = prune_mode
        self._metrics = metrics

    async def dispatch(
        self, raw_event: Event | Mapping[str, Any], source: str = "default"
    ) -> DispatchResult:
        """Dispatch one event.

        Returns:
            The aggregated result. Classification failures come back as
            ``success=False`` with the typed error attached.

        Raises:
            DispatchTimeoutError: The configured timeout elapsed before every
                recipient was handled.
        """
        if self._metrics is None:
            return await self._bounded(raw_event, source)
        with self._metrics.track_dispatch():
            return await self._bounded(raw_event, source)

    async def _bounded(self, raw_event: Event | Mapping[str, Any], source: str) -> DispatchResult:
        if self._timeout is None:
            return await self._run(raw_event, source)
        try:
            return await asyncio.wait_for(self._run(raw_event, source), self._timeout)
        except TimeoutError as exc:
            logger.warning("Dispatch from source %s timed out after %ss", source, self._timeout)
            msg = f"dispatch exceeded {self._timeout}s"
            raise DispatchTimeoutError(msg) from exc

    async def _run(self, raw_event: Event | Mapping[str, Any], source: str) -> DispatchResult:
        try:
            processed = self._processor.process(raw_event, source)
        except PushRelayError as exc:
            logger.warning("Event from source %s rejected: %s", source, exc.message)
            self._record_event("unknown", "failed")
            return DispatchResult.failure(exc)
        except Exception as exc:
            logger.exception("Unexpected error classifying event from source %s", source)
            self._record_event("unknown", "failed")
            msg = f"event classification failed: {exc}"
            return DispatchResult.failure(ClassificationError(msg))

        if not processed.should_notify or not processed.users_to_notify:
            logger.info(
                "Event %s (%s) needs no notification (notify=%s, recipients=%d)",
                processed.id,
                processed.type,
                processed.should_notify,
                len(processed.users_to_notify),
            )
            self._record_event(self._metric_type(processed), "skipped")
            return DispatchResult(success=True, notified=False, processed_event=processed)

        recipients = await self._fan_out(processed)
        notified = any(r.success for r in recipients)
        self._record_event(self._metric_type(processed), "notified" if notified else "undelivered")
        logger.info(
            "Event %s (%s): %d/%d recipient(s) notified",
            processed.id,
            processed.type,
            sum(1 for r in recipients if r.success),
            len(recipients),
        )
        return DispatchResult(
            success=True,
            notified=notified,
            recipients=recipients,
            processed_event=processed,
        )

    async def _fan_out(self, processed: ProcessedEvent) -> list[RecipientResult]:
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _guarded(user_id: str) -> RecipientResult:
            async with semaphore:
                return await self._notify_recipient(processed, user_id)

        user_ids = list(processed.users_to_notify)
        outcomes = await asyncio.gather(
            *(_guarded(user_id) for user_id in user_ids),
            return_exceptions=True,
        )
        # gather keeps input order, so each entry maps back to its user id.
        results: dict[str, RecipientResult] = {}
        for user_id, outcome in zip(user_ids, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                results[user_id] = RecipientResult.from_error(user_id, outcome)
            else:
                results[user_id] = outcome
        return [results[user_id] for user_id in user_ids]

    async def _notify_recipient(self, processed: ProcessedEvent, user_id: str) -> RecipientResult:
        try:
            tokens = await self._store.get_active_tokens_by_user(user_id)
            if not tokens:
                logger.info("No active tokens for user %s", user_id)
                return RecipientResult.no_tokens(user_id)

            notification = self._builder.build(processed, user_id)
            report = await self._sender.send(notification, tokens)
            if len(report.outcomes) != len(tokens):
                msg = (
                    f"push sender returned {len(report.outcomes)} outcome(s) "
                    f"for {len(tokens)} token(s)"
                )
                raise DeliveryError(msg, code="outcome-mismatch")

            self._record_deliveries(report)
            pruned = await self._prune(user_id, report.unregistered_tokens)
            if report.transient_tokens:
                logger.warning(
                    "Transient delivery failure for user %s on %d token(s); kept for retry",
                    user_id,
                    len(report.transient_tokens),
                )
        except Exception as exc:
            if isinstance(exc, PushRelayError):
                logger.warning("Dispatch to user %s failed: %s", user_id, exc.message)
            else:
                logger.exception("Dispatch to user %s failed", user_id)
            return RecipientResult.from_error(user_id, exc)

        success = self._recipient_succeeded(report, len(tokens))
        return RecipientResult(
            user_id=user_id,
            success=success,
            reason="" if success else "Delivery failed",
            tokens_count=len(tokens),
            success_count=report.success_count,
            failure_count=report.failure_count,
            failed_tokens=report.failed,
            pruned_tokens=pruned,
            error_code="" if success else "delivery-failed",
        )

    def _recipient_succeeded(self, report: SendReport, token_count: int) -> bool:
        if self._success_policy == SuccessPolicy.ALL:
            return token_count > 0 and report.success_count == token_count
        return report.success_count > 0

    async def _prune(self, user_id: str, tokens: list[str]) -> list[str]:
        pruned: list[str] = []
        for token in tokens:
            if self._prune_mode == PruneMode.DEACTIVATE:
                changed = await self._store.mark_inactive(token)
            else:
                changed = await self._store.remove(user_id, token)
            if changed:
                pruned.append(token)
        if pruned:
            logger.warning(
                "Pruned %d unregistered token(s) for user %s (%s)",
                len(pruned),
                user_id,
                self._prune_mode.value,
            )
            if self._metrics is not None:
                self._metrics.record_pruned(len(pruned))
        return pruned

    def _metric_type(self, processed: ProcessedEvent) -> str:
        # Types come from unauthenticated payloads; only registered ones become label values.
        if self._processor.registry.is_known(processed.type):
            return processed.type
        return OTHER_EVENT_TYPE

    def _record_event(self, event_type: str, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_event(event_type, outcome)

    def _record_deliveries(self, report: SendReport) -> None:
        if self._metrics is None:
            return
        self._metrics.record_deliveries("success", report.success_count)
        for reason in FailureReason:
            self._metrics.record_deliveries(reason.value.lower(), len(report.tokens_with(reason)))

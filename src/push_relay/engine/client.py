"""PushRelayEngine — central engine client owning all components."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from push_relay.config.settings import PushBackend, StoreEngine

if TYPE_CHECKING:
    from push_relay.config.settings import AppConfig
    from push_relay.datastore.client import Datastore
    from push_relay.dispatch.intake import WebhookIntake
    from push_relay.dispatch.orchestrator import DispatchOrchestrator
    from push_relay.events.processor import EventProcessor
    from push_relay.events.registry import EventTypeRegistry
    from push_relay.metrics.collector import DispatchMetrics
    from push_relay.notifications.builder import NotificationBuilder
    from push_relay.push.sender import PushSender
    from push_relay.tokens.service import TokenRegistrationService
    from push_relay.tokens.store import TokenStore

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class PushRelayEngine:
    """Central engine that owns the dispatch pipeline and its infrastructure.

    Components passed to the constructor are used as-is and never closed by
    the engine; everything else is built from *config* in :meth:`initialize`.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        store: TokenStore | None = None,
        sender: PushSender | None = None,
        registry: EventTypeRegistry | None = None,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            store: Token store override (tests, embedding).
            sender: Push sender override.
            registry: Event type registry override.
            metrics: Metrics sink shared with the HTTP layer.
        """
        self._config = config
        self._initialized = False

        self._store_override = store
        self._sender_override = sender
        self._registry = registry

        # Infrastructure components
        self._datastore: Datastore | None = None
        self._store: TokenStore | None = None
        self._sender: PushSender | None = None
        self._metrics = metrics

        # Use cases
        self._processor: EventProcessor | None = None
        self._builder: NotificationBuilder | None = None
        self._orchestrator: DispatchOrchestrator | None = None
        self._intake: WebhookIntake | None = None
        self._token_service: TokenRegistrationService | None = None

    async def initialize(self) -> None:
        """Open the token store, connect the push sender and build the pipeline.

        Raises:
            RuntimeError: If already initialized.

        A failed start releases whatever was opened before re-raising.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        from push_relay.dispatch.intake import WebhookIntake
        from push_relay.dispatch.orchestrator import DispatchOrchestrator
        from push_relay.events.processor import EventProcessor
        from push_relay.events.registry import EventTypeRegistry
        from push_relay.notifications.builder import NotificationBuilder
        from push_relay.notifications.models import Priority
        from push_relay.tokens.service import TokenRegistrationService

        try:
            self._store = (
                self._store_override
                if self._store_override is not None
                else await self._open_store()
            )
            self._sender = (
                self._sender_override
                if self._sender_override is not None
                else await self._connect_sender()
            )
        except Exception:
            logger.exception("Push relay engine failed to start")
            await self._close_datastore()
            self._store = None
            raise

        dispatch_cfg = self._config.dispatch
        priority = Priority.from_value(dispatch_cfg.default_priority)
        self._processor = EventProcessor(
            self._registry if self._registry is not None else EventTypeRegistry(),
            silent_types=dispatch_cfg.silent_event_types,
            default_priority=priority,
            default_time_to_live=dispatch_cfg.default_time_to_live,
        )
        self._builder = NotificationBuilder(
            default_priority=priority,
            default_time_to_live=dispatch_cfg.default_time_to_live,
        )
        self._orchestrator = DispatchOrchestrator(
            self._processor,
            self._builder,
            self._sender,
            self._store,
            max_concurrency=dispatch_cfg.max_concurrency,
            timeout=dispatch_cfg.timeout_seconds,
            success_policy=dispatch_cfg.success_policy,
            prune_mode=dispatch_cfg.prune_mode,
            metrics=self._metrics,
        )
        self._intake = WebhookIntake(self._orchestrator)
        self._token_service = TokenRegistrationService(self._store)

        self._initialized = True
        logger.info(
            "Push relay engine initialized (store=%s, push=%s)",
            type(self._store).__name__,
            type(self._sender).__name__,
        )

    async def _open_store(self) -> TokenStore:
        if self._config.store.engine == StoreEngine.MEMORY:
            from push_relay.tokens.memory import MemoryTokenStore

            return MemoryTokenStore()

        from push_relay.datastore.client import Datastore
        from push_relay.datastore.migrations import run_auto_migrate
        from push_relay.tokens.sql import SQLTokenStore

        self._datastore = Datastore(self._config.db)
        await self._datastore.open()
        await run_auto_migrate(self._datastore.engine)
        return SQLTokenStore(self._datastore)

    async def _connect_sender(self) -> PushSender:
        push_cfg = self._config.push
        if push_cfg.backend == PushBackend.LOGGING:
            from push_relay.push.sender import LoggingPushSender

            return LoggingPushSender()

        from push_relay.push.firebase import FirebasePushSender

        sender = FirebasePushSender(
            self._config.firebase,
            app_name=push_cfg.app_name,
            dry_run=push_cfg.dry_run,
        )
        await sender.connect()
        return sender

    async def _close_datastore(self) -> None:
        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

    async def close(self) -> None:
        """Gracefully shut down owned components.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._intake = None
        self._orchestrator = None
        self._token_service = None
        self._processor = None
        self._builder = None

        # Close the sender only if we built it
        if self._sender is not None and self._sender_override is None:
            await self._sender.close()
        self._sender = None
        self._store = None

        await self._close_datastore()

        self._initialized = False
        logger.info("Push relay engine shut down")

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def datastore(self) -> Datastore | None:
        """Get the datastore (None unless the SQL store is in use)."""
        return self._datastore

    @property
    def store(self) -> TokenStore:
        """Get the token store."""
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def sender(self) -> PushSender:
        """Get the push sender."""
        if self._sender is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sender

    @property
    def processor(self) -> EventProcessor:
        if self._processor is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._processor

    @property
    def orchestrator(self) -> DispatchOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._orchestrator

    @property
    def intake(self) -> WebhookIntake:
        """Get the webhook intake."""
        if self._intake is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._intake

    @property
    def token_service(self) -> TokenRegistrationService:
        """Get the token registration service."""
        if self._token_service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._token_service

    @property
    def metrics(self) -> DispatchMetrics | None:
        """Get the dispatch metrics (None when metrics are disabled)."""
        return self._metrics

    async def health_check(self) -> dict[str, str]:
        """Check health status of engine components.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'not_initialized').
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "store": "unknown",
            "push": "unknown",
        }
        if not self._initialized:
            return status

        if self._datastore is not None:
            status["store"] = "ok" if self._datastore.is_open else "error"
        else:
            status["store"] = "ok" if self._store is not None else "error"

        connected = getattr(self._sender, "is_connected", True)
        status["push"] = "ok" if connected else "error"
        return status

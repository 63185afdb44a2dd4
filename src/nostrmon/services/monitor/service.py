"""
Monitor service for live Nostr relay subscriptions.

Keeps exactly one subscription open across the configured relays, filters
incoming text notes against the search pattern, and sends an alert for
every match.

Event flow:

```text
relays --nostr-sdk--> transport --RelayNotification--> asyncio.Queue
      --> consumer task --> handle_notification() --> matches() --> AlertSink
```

The transport only enqueues. A single consumer task handles notifications
one at a time, so matching never runs concurrently with itself. Each
subscription carries a locally generated id; notifications stamped with
any other id (late deliveries from a subscription that was already
closed) are discarded.

Configuration changes arrive as
[SettingsUpdate][nostrmon.services.common.settings.SettingsUpdate]
messages through [propose()][nostrmon.services.monitor.Monitor.propose],
or are picked up from the settings file on every
[run()][nostrmon.services.monitor.Monitor.run] cycle. A change to the
relays or the pattern restarts the subscription. Restarts are serialized
and coalesced: requests arriving while one is pending collapse into a
single resubscription using the newest settings.

See Also:
    [MonitorConfig][nostrmon.services.monitor.MonitorConfig]:
        Configuration model for this service.
    [CredentialVault][nostrmon.services.vault.CredentialVault]:
        Holds the private key; initialized on context entry.
    [RelayTransport][nostrmon.utils.transport.RelayTransport]:
        Relay boundary; tests substitute a fake.

Examples:
    ```python
    from nostrmon.services.monitor import Monitor

    monitor = Monitor.from_yaml("config/monitor.yaml")
    async with monitor:
        await monitor.run_forever()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, fields
from types import TracebackType
from typing import TYPE_CHECKING, ClassVar

from nostrmon.core.base_service import BaseService
from nostrmon.core.exceptions import ConfigurationError, TransportError
from nostrmon.core.logger import Logger
from nostrmon.models.constants import NotificationType, ServiceName
from nostrmon.services.common.alerts import AlertSink, build_alert_sink
from nostrmon.services.common.settings import (
    Settings,
    SettingsManager,
    SettingsStore,
    SettingsUpdate,
)
from nostrmon.services.vault import CredentialVault
from nostrmon.utils.keys import validate_secret_input
from nostrmon.utils.matching import matches
from nostrmon.utils.transport import NostrTransport, RelayTransport

from .configs import MonitorConfig
from .utils import build_filter, format_alert


if TYPE_CHECKING:
    from nostrmon.models.notification import RelayNotification
    from nostrmon.models.subscription import Subscription


@dataclass(slots=True)
class MonitorCounters:
    """Cumulative per-process totals, mirrored to Prometheus when enabled."""

    events_received: int = 0
    events_matched: int = 0
    events_discarded_stale: int = 0
    events_duplicate: int = 0
    handler_errors: int = 0
    alerts_sent: int = 0
    restarts: int = 0

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class Monitor(BaseService[MonitorConfig]):
    """Relay event monitor.

    Args:
        config: Service configuration. Defaults to ``MonitorConfig()``.
        settings: Settings manager. Defaults to one backed by
            ``config.settings_path``.
        transport: Relay transport. Defaults to
            [NostrTransport][nostrmon.utils.transport.NostrTransport].
        alert_sink: Alert destination. Defaults to the sinks enabled in
            ``config.alerts``.
        vault: Credential vault. Defaults to one sharing ``settings`` and
            ``alert_sink``.
        clock: Returns the current Unix time; used for the ``since`` bound.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.MONITOR
    CONFIG_CLASS: ClassVar[type[MonitorConfig]] = MonitorConfig

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        settings: SettingsManager | None = None,
        transport: RelayTransport | None = None,
        alert_sink: AlertSink | None = None,
        vault: CredentialVault | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(config=config)
        self._config: MonitorConfig
        self._settings = settings or SettingsManager(SettingsStore(self._config.settings_path))
        self._transport: RelayTransport = transport or NostrTransport(
            timeout=self._config.transport.timeout,
            proxy_url=self._config.transport.proxy_url,
        )
        self._alerts = alert_sink or build_alert_sink(self._config.alerts)
        self._vault = vault or CredentialVault(self._settings, self._alerts)
        self._clock = clock
        self._audit = Logger(f"{self.SERVICE_NAME}.audit", max_value_length=0)

        self._channel: asyncio.Queue[RelayNotification] = asyncio.Queue(
            maxsize=self._config.processing.queue_size
        )
        self._consumer: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None
        self._active: Settings | None = None
        self._since = 0
        self._eose_relays: set[str] = set()
        self._initial_sync_logged = False
        self._seen_ids: OrderedDict[str, None] = OrderedDict()

        self._restart_lock = asyncio.Lock()
        self._pending: Settings | None = None
        self._generation = 0
        self._reload_tasks: set[asyncio.Task[None]] = set()

        self.counters = MonitorCounters()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def channel(self) -> asyncio.Queue[RelayNotification]:
        """Queue the transport delivers notifications into."""
        return self._channel

    @property
    def subscription(self) -> Subscription | None:
        """The live subscription, or ``None`` when not monitoring."""
        return self._subscription

    @property
    def is_monitoring(self) -> bool:
        return self._subscription is not None

    @property
    def since(self) -> int:
        return self._since

    @property
    def settings(self) -> Settings:
        return self._settings.settings

    @property
    def settings_manager(self) -> SettingsManager:
        return self._settings

    @property
    def vault(self) -> CredentialVault:
        return self._vault

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Monitor:
        await super().__aenter__()
        settings = await self._settings.load()
        await self._vault.initialize(settings.encrypted_secret)
        try:
            await self.start(settings)
        except TransportError as e:
            # run() reopens the subscription on the next cycle
            self._logger.error("monitoring_start_failed", error=str(e))
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        for task in list(self._reload_tasks):
            task.cancel()
        await self.stop()
        await self._alerts.close()
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Reconcile the live subscription with the persisted settings.

        Picks up edits made outside this process: relay or pattern changes
        restart the subscription, a changed ciphertext re-initializes the
        vault, and a missing subscription is reopened. An invalid settings
        file is logged and the current settings stay in effect.
        """
        try:
            previous, current = await self._settings.reload()
        except ConfigurationError as e:
            self._logger.warning("settings_reload_failed", error=str(e))
            return

        if current.encrypted_secret != previous.encrypted_secret:
            await self._vault.initialize(current.encrypted_secret)

        if self._subscription is None:
            await self.start(current)
        elif self._active is not None and self._active.subscription_differs(current):
            await self.restart(current)

    def request_reload(self) -> None:
        """Schedule an immediate [run()][nostrmon.services.monitor.Monitor.run].

        Safe to call from a signal handler.
        """
        task = asyncio.get_running_loop().create_task(self._reload())
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)

    async def _reload(self) -> None:
        try:
            await self.run()
        except TransportError as e:
            self._logger.error("reload_failed", error=str(e))

    # -------------------------------------------------------------------------
    # Subscription management
    # -------------------------------------------------------------------------

    async def start(self, settings: Settings | None = None) -> Subscription | None:
        """Open a subscription for text notes created from now on.

        Any live subscription is closed first. Returns ``None`` when
        [stop()][nostrmon.services.monitor.Monitor.stop] ran while the
        transport was subscribing; the new subscription is closed again.

        Raises:
            TransportError: If the transport cannot open the subscription.
        """
        settings = settings or self._settings.settings
        generation = self._generation
        await self._close_subscription()

        self._since = int(self._clock())
        self._eose_relays = set()
        self._initial_sync_logged = False

        subscription = await self._transport.subscribe(
            list(settings.relays), [build_filter(self._since)], self._channel
        )
        if generation != self._generation:
            await self._transport.close(subscription.relays)
            self._logger.info("subscription_abandoned", subscription=subscription.id)
            return None

        self._subscription = subscription
        self._active = settings
        self._ensure_consumer()

        self.set_gauge("relays", len(settings.relays))
        self._logger.info(
            "monitoring_started",
            subscription=subscription.id,
            relays=len(settings.relays),
            since=self._since,
            pattern=settings.search_pattern,
        )
        return subscription

    async def restart(self, settings: Settings | None = None) -> Subscription | None:
        """Replace the live subscription using the newest requested settings.

        Restarts are serialized. While one restart is pending or running,
        further requests only update the settings it will use; after
        ``processing.restart_debounce`` seconds the newest settings are
        applied once. Requests that find their settings already applied
        return without resubscribing.
        """
        self._pending = settings or self._settings.settings
        async with self._restart_lock:
            if self._pending is None:
                return self._subscription

            debounce = self._config.processing.restart_debounce
            if debounce > 0:
                await asyncio.sleep(debounce)

            # stop() during the debounce cancels the restart
            target, self._pending = self._pending, None
            if target is None:
                return None

            self._count("restarts")
            self._logger.info("monitoring_restarting", relays=len(target.relays))
            return await self.start(target)

    async def stop(self) -> None:
        """Close the live subscription and stop consuming notifications.

        Safe to call when nothing is active.
        """
        self._pending = None
        self._generation += 1
        was_active = self._subscription is not None
        await self._close_subscription()

        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None

        if was_active:
            self._logger.info("monitoring_stopped", **self.counters.as_dict())

    async def _close_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        self._active = None
        if subscription is None:
            return
        await self._transport.close(subscription.relays)
        self._logger.debug("subscription_closed", subscription=subscription.id)

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume(), name="monitor-consumer")

    async def _consume(self) -> None:
        while True:
            notification = await self._channel.get()
            try:
                await self.handle_notification(notification)
            finally:
                self._channel.task_done()

    # -------------------------------------------------------------------------
    # Configuration updates
    # -------------------------------------------------------------------------

    async def propose(self, update: SettingsUpdate) -> Settings:
        """Apply a configuration change.

        The secret is validated before anything is written. Relay and
        pattern changes are persisted, the secret goes to the vault, and the
        subscription restarts only when relays or the pattern changed while
        monitoring.

        Returns:
            The settings now in effect.

        Raises:
            InvalidPatternError: If the pattern does not compile. Nothing
                is persisted and the previous pattern stays active.
            InvalidSecretError: If the secret is neither empty nor an
                ``nsec1`` key. Nothing is persisted.
            ConfigurationError: If a relay URL is invalid.
        """
        if update.secret is not None:
            validate_secret_input(update.secret)

        previous = self._settings.settings
        changes = update.settings_changes
        if changes:
            await self._settings.update(**changes)
        if update.secret is not None:
            await self._vault.set_secret(update.secret)

        current = self._settings.settings
        if self.is_monitoring and previous.subscription_differs(current):
            await self.restart(current)
        return current

    # -------------------------------------------------------------------------
    # Notification handling
    # -------------------------------------------------------------------------

    async def handle_notification(self, notification: RelayNotification) -> None:
        """Process one channel message. Never raises except on cancellation."""
        subscription = self._subscription
        if subscription is None or notification.subscription_id != subscription.id:
            if notification.type == NotificationType.EVENT:
                self._count("events_discarded_stale")
            self._logger.debug(
                "notification_discarded",
                subscription=notification.subscription_id,
                relay=notification.relay_url,
            )
            return

        try:
            if notification.type == NotificationType.END_OF_STORED_EVENTS:
                self._on_end_of_stored_events(notification.relay_url, subscription)
            else:
                await self._on_event(notification)
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:  # event handler boundary: the subscription keeps running
            self._count("handler_errors")
            self._logger.error(
                "event_handler_error",
                relay=notification.relay_url,
                error_type=type(e).__name__,
                error=str(e),
            )

    def _on_end_of_stored_events(self, relay_url: str, subscription: Subscription) -> None:
        self._logger.debug("end_of_stored_events", relay=relay_url)
        self._eose_relays.add(relay_url)
        if not self._initial_sync_logged and self._eose_relays >= set(subscription.relays):
            self._initial_sync_logged = True
            self._logger.info("initial_sync_completed", relays=len(self._eose_relays))

    async def _on_event(self, notification: RelayNotification) -> None:
        event = notification.event
        if event is None:
            return

        if event.created_at < self._since:
            self._count("events_discarded_stale")
            self._logger.debug("event_before_since", id=event.id, created_at=event.created_at)
            return

        if event.id in self._seen_ids:
            self._count("events_duplicate")
            return
        if len(self._seen_ids) >= self._config.processing.max_seen_ids:
            self._seen_ids.popitem(last=False)
        self._seen_ids[event.id] = None

        pattern = self._active.search_pattern if self._active is not None else ""
        matched = matches(pattern, event.content)

        self._count("events_received")
        self._audit.info(
            "event_received",
            id=event.id,
            author=event.author_id,
            content=event.content,
            created_at=event.created_at_iso,
            kind=event.kind,
            relay=notification.relay_url,
            matched=matched,
        )

        if not matched:
            return

        self._count("events_matched")
        message = format_alert(
            event,
            preview_length=self._config.processing.preview_length,
            author_length=self._config.processing.author_length,
        )
        if await self._alerts.notify(message):
            self._count("alerts_sent")

    def _count(self, name: str) -> None:
        setattr(self.counters, name, getattr(self.counters, name) + 1)
        self.inc_counter(name)

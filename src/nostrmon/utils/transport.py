"""Relay subscription transport.

The monitor talks to relays only through the
[RelayTransport][nostrmon.utils.transport.RelayTransport] protocol:
``subscribe`` opens one subscription spanning a set of relays and delivers
everything it receives into an ``asyncio.Queue`` as
[RelayNotification][nostrmon.models.notification.RelayNotification]
messages; ``close`` tears down whatever is open against a set of relays.

[NostrTransport][nostrmon.utils.transport.NostrTransport] implements the
protocol on top of ``nostr-sdk``, which owns the WebSocket connections,
framing, reconnection, and signature verification. Each subscription gets
its own ``Client`` so closing one never disturbs another.

Note:
    nostr-sdk delivers notifications on its own callback path. The handler
    only converts and enqueues; all matching happens in the monitor's
    consumer task.

Examples:
    ```python
    channel: asyncio.Queue[RelayNotification] = asyncio.Queue()
    transport = NostrTransport(timeout=10.0)
    sub = await transport.subscribe(["wss://yabu.me"], [SubscriptionFilter(since=now)], channel)
    ...
    await transport.close(sub.relays)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from ipaddress import AddressValueError, IPv4Address, IPv6Address
from typing import TYPE_CHECKING, Final, Protocol
from urllib.parse import urlparse

from nostr_sdk import (
    Client,
    ClientBuilder,
    ClientOptions,
    Connection,
    ConnectionMode,
    ConnectionTarget,
    HandleNotification,
    RelayMessageEnum,
    RelayUrl,
)

from nostrmon.core.exceptions import TransportError
from nostrmon.models.event import Event
from nostrmon.models.notification import RelayNotification
from nostrmon.models.relay import Relay, normalize_relay_url
from nostrmon.models.subscription import Subscription, SubscriptionFilter


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent
    from nostr_sdk import RelayMessage


DEFAULT_TIMEOUT: Final[float] = 10.0


logger = logging.getLogger("utils.transport")

# nostr-sdk logs reconnect attempts and callback tracebacks at ERROR
logging.getLogger("nostr_sdk").setLevel(logging.CRITICAL)


class RelayTransport(Protocol):
    """Boundary between the monitor and the relay wire protocol."""

    async def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[SubscriptionFilter],
        channel: asyncio.Queue[RelayNotification],
    ) -> Subscription: ...

    async def close(self, relays: Sequence[str]) -> None: ...


async def create_client(proxy_url: str | None = None) -> Client:
    """Create a read-only Nostr client with optional SOCKS5 proxy support.

    Args:
        proxy_url: SOCKS5 proxy URL for overlay networks (e.g.
            ``socks5://127.0.0.1:9050``).

    Note:
        nostr-sdk requires a numeric proxy address, so a hostname in
        ``proxy_url`` is resolved with ``socket.gethostbyname`` in a thread.
    """
    builder = ClientBuilder()

    if proxy_url is not None:
        parsed = urlparse(proxy_url)
        proxy_host = parsed.hostname or "127.0.0.1"
        proxy_port = parsed.port or 9050

        bare_host = proxy_host.strip("[]")
        try:
            IPv4Address(bare_host)
        except (AddressValueError, ValueError):
            try:
                IPv6Address(bare_host)
                proxy_host = bare_host
            except (AddressValueError, ValueError):
                proxy_host = await asyncio.to_thread(socket.gethostbyname, proxy_host)

        proxy_mode = ConnectionMode.PROXY(proxy_host, proxy_port)
        conn = Connection().mode(proxy_mode).target(ConnectionTarget.ONION)
        opts = ClientOptions().connection(conn)
        builder = builder.opts(opts)

    return builder.build()


class _ChannelHandler(HandleNotification):
    """Converts nostr-sdk callbacks into channel messages for one subscription."""

    def __init__(self, subscription_id: str, channel: asyncio.Queue[RelayNotification]) -> None:
        super().__init__()
        self._subscription_id = subscription_id
        self._channel = channel

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent) -> None:
        try:
            converted = Event.from_nostr(event)
        except (TypeError, ValueError) as e:
            logger.warning("event_conversion_failed relay=%s error=%s", relay_url, e)
            return
        self._put(
            RelayNotification.for_event(self._subscription_id, _relay_key(relay_url), converted)
        )

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        if isinstance(msg.as_enum(), RelayMessageEnum.END_OF_STORED_EVENTS):
            self._put(
                RelayNotification.end_of_stored_events(self._subscription_id, _relay_key(relay_url))
            )

    def _put(self, notification: RelayNotification) -> None:
        try:
            self._channel.put_nowait(notification)
        except asyncio.QueueFull:
            logger.warning(
                "channel_full subscription=%s relay=%s dropped=%s",
                notification.subscription_id,
                notification.relay_url,
                notification.type,
            )


@dataclass(slots=True)
class _OpenSubscription:
    subscription: Subscription
    client: Client
    task: asyncio.Task[None]


class NostrTransport:
    """[RelayTransport][nostrmon.utils.transport.RelayTransport] backed by nostr-sdk.

    Args:
        timeout: Seconds to wait for the initial relay connections.
        proxy_url: SOCKS5 proxy used when the relay set contains overlay
            (Tor, I2P, Lokinet) relays.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, proxy_url: str | None = None) -> None:
        self._timeout = timeout
        self._proxy_url = proxy_url
        self._open: dict[str, _OpenSubscription] = {}

    @property
    def open_subscriptions(self) -> list[Subscription]:
        return [o.subscription for o in self._open.values()]

    async def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[SubscriptionFilter],
        channel: asyncio.Queue[RelayNotification],
    ) -> Subscription:
        """Connect to *relays* and subscribe with *filters*.

        Raises:
            TransportError: If no relay could be added or the subscription
                request fails.
        """
        subscription = Subscription(relays=tuple(relays), filters=tuple(filters))
        needs_proxy = any(Relay(url).is_overlay for url in subscription.relays)
        client = await create_client(self._proxy_url if needs_proxy else None)

        try:
            added = 0
            for url in subscription.relays:
                try:
                    await client.add_relay(RelayUrl.parse(url))
                    added += 1
                except Exception as e:  # nostr-sdk raises its own FFI error types
                    logger.warning("relay_add_failed relay=%s error=%s", url, e)
            if not added:
                raise TransportError("no relay could be added to the subscription")

            await client.connect()
            await client.wait_for_connection(timedelta(seconds=self._timeout))

            for f in subscription.filters:
                await client.subscribe(f.to_nostr())
        except TransportError:
            await _shutdown(client)
            raise
        except Exception as e:  # nostr-sdk raises its own FFI error types
            await _shutdown(client)
            raise TransportError(f"subscribe failed: {e}") from e

        handler = _ChannelHandler(subscription.id, channel)
        task = asyncio.create_task(
            client.handle_notifications(handler),
            name=f"nostr-notifications-{subscription.id}",
        )
        self._open[subscription.id] = _OpenSubscription(subscription, client, task)
        logger.debug(
            "subscription_opened id=%s relays=%d", subscription.id, len(subscription.relays)
        )
        return subscription

    async def close(self, relays: Sequence[str]) -> None:
        """Shut down every open subscription that uses any of *relays*."""
        wanted = set(relays)
        for sub_id in [k for k, o in self._open.items() if wanted & set(o.subscription.relays)]:
            opened = self._open.pop(sub_id)
            opened.task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await opened.task
            await _shutdown(opened.client)
            logger.debug("subscription_closed id=%s", sub_id)


def _relay_key(relay_url: RelayUrl | str) -> str:
    """Normalize a relay URL reported by nostr-sdk to the form the subscription uses."""
    url = str(relay_url)
    try:
        return normalize_relay_url(url)
    except ValueError:
        return url


async def _shutdown(client: Client) -> None:
    # nostr-sdk shutdown can raise arbitrary errors from the FFI layer
    with contextlib.suppress(Exception):
        await client.shutdown()

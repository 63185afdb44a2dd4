"""Pure frozen dataclasses with zero I/O for relays, events, and notifications.

The models layer is the foundation of the package. Every model uses
``@dataclass(frozen=True, slots=True)`` and validates in ``__post_init__``
so invalid instances never escape the constructor.

Attributes:
    Relay: Validated relay URL with RFC 3986 parsing and
        [NetworkType][nostrmon.models.constants.NetworkType] detection.
    Event: The five fields of a Nostr event the monitor works with.
    RelayNotification: Channel message from the transport to the monitor.
    NotificationType: ``event`` or ``end_of_stored_events``.
    SubscriptionFilter: Event kinds and ``since`` timestamp of a subscription.
    Subscription: Handle for one open subscription across a relay set.
"""

from .constants import EVENT_KIND_MAX, EventKind, NetworkType, NotificationType, ServiceName
from .event import Event
from .notification import RelayNotification
from .relay import Relay, normalize_relay_url
from .subscription import Subscription, SubscriptionFilter


__all__ = [
    "EVENT_KIND_MAX",
    "Event",
    "EventKind",
    "NetworkType",
    "NotificationType",
    "Relay",
    "RelayNotification",
    "ServiceName",
    "Subscription",
    "SubscriptionFilter",
    "normalize_relay_url",
]

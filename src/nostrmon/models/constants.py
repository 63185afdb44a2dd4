"""Shared constants for the models layer.

Defines enumerations used across model, utils, and service modules.
Placing them here avoids circular dependencies between layers.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class NetworkType(StrEnum):
    """Network type enum for relay classification.

    Each relay URL is classified into exactly one network type during
    [Relay][nostrmon.models.relay.Relay] construction. Overlay networks
    are only reachable through the SOCKS5 proxy configured on the transport.

    Attributes:
        CLEARNET: Public internet relay.
        TOR: Tor hidden service identified by a ``.onion`` hostname.
        I2P: I2P eepsite identified by a ``.i2p`` hostname.
        LOKI: Lokinet service identified by a ``.loki`` hostname.
        LOCAL: Loopback or private address, e.g. a relay on the same machine.
    """

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics."""

    MONITOR = "monitor"
    VAULT = "vault"


class EventKind(IntEnum):
    """Well-known Nostr event kinds.

    Attributes:
        TEXT_NOTE: Kind 1 -- short text note (NIP-01). The only kind the
            monitor subscribes to.
    """

    TEXT_NOTE = 1


class NotificationType(StrEnum):
    """Kinds of message a relay subscription delivers to the monitor.

    Attributes:
        EVENT: A new event matching the subscription filter.
        END_OF_STORED_EVENTS: The relay finished sending stored events (EOSE).
    """

    EVENT = "event"
    END_OF_STORED_EVENTS = "end_of_stored_events"


EVENT_KIND_MAX = 65_535

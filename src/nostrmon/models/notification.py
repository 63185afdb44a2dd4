"""
Channel messages between the relay transport and the monitor.

The transport never calls into the monitor. It wraps everything a relay
delivers in a [RelayNotification][nostrmon.models.notification.RelayNotification]
and puts it on an ``asyncio.Queue``; the monitor's consumer task is the only
reader. Tests feed synthetic notifications into the same queue.
"""

from __future__ import annotations

from dataclasses import dataclass

from ._validation import validate_instance, validate_str_not_empty
from .constants import NotificationType
from .event import Event


@dataclass(frozen=True, slots=True)
class RelayNotification:
    """One message delivered by a relay for a given subscription.

    Attributes:
        subscription_id: Id of the subscription the message belongs to.
            The monitor discards messages whose id is not the live one.
        relay_url: Relay the message came from.
        type: [NotificationType][nostrmon.models.constants.NotificationType].
        event: The event for ``EVENT`` messages, ``None`` for EOSE.

    Raises:
        ValueError: If an ``EVENT`` notification carries no event.
    """

    subscription_id: str
    relay_url: str
    type: NotificationType
    event: Event | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.subscription_id, "subscription_id")
        validate_str_not_empty(self.relay_url, "relay_url")
        validate_instance(self.type, NotificationType, "type")
        if self.type == NotificationType.EVENT:
            validate_instance(self.event, Event, "event")

    @classmethod
    def for_event(cls, subscription_id: str, relay_url: str, event: Event) -> RelayNotification:
        return cls(subscription_id, relay_url, NotificationType.EVENT, event)

    @classmethod
    def end_of_stored_events(cls, subscription_id: str, relay_url: str) -> RelayNotification:
        return cls(subscription_id, relay_url, NotificationType.END_OF_STORED_EVENTS)

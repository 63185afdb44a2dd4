"""
Subscription filter and live subscription handle.

[SubscriptionFilter][nostrmon.models.subscription.SubscriptionFilter] is a
plain description of which events a subscription asks for; it is converted
to a ``nostr_sdk.Filter`` only at the transport boundary.
[Subscription][nostrmon.models.subscription.Subscription] identifies one
open subscription spanning a set of relays.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from nostr_sdk import Filter, Kind, Timestamp

from ._validation import validate_str_not_empty, validate_timestamp
from .constants import EVENT_KIND_MAX, EventKind


@dataclass(frozen=True, slots=True)
class SubscriptionFilter:
    """Which events a subscription requests.

    Attributes:
        kinds: Event kinds to receive.
        since: Only events created at or after this Unix timestamp.

    Raises:
        ValueError: If ``kinds`` is empty or holds an out-of-range kind.
    """

    kinds: tuple[int, ...] = (EventKind.TEXT_NOTE,)
    since: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", tuple(int(k) for k in self.kinds))
        if not self.kinds:
            raise ValueError("kinds must not be empty")
        for kind in self.kinds:
            if not 0 <= kind <= EVENT_KIND_MAX:
                raise ValueError(f"kind out of range: {kind}")
        validate_timestamp(self.since, "since")

    def to_nostr(self) -> Filter:
        """Build the equivalent ``nostr_sdk.Filter``."""
        return (
            Filter()
            .kinds([Kind(k) for k in self.kinds])
            .since(Timestamp.from_secs(self.since))
        )


def new_subscription_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass(frozen=True, slots=True)
class Subscription:
    """Handle for one open subscription.

    Attributes:
        relays: Normalized relay URLs the subscription spans.
        filters: Filters sent to every relay.
        id: Locally generated subscription id stamped on every notification
            the subscription delivers.
    """

    relays: tuple[str, ...]
    filters: tuple[SubscriptionFilter, ...]
    id: str = field(default_factory=new_subscription_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "relays", tuple(self.relays))
        object.__setattr__(self, "filters", tuple(self.filters))
        validate_str_not_empty(self.id, "id")
        if not self.relays:
            raise ValueError("relays must not be empty")

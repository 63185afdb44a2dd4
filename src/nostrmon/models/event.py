"""
Immutable Nostr event received from a relay subscription.

The monitor only needs five fields of a signed event, so instead of carrying
the ``nostr_sdk.Event`` FFI handle through the matching pipeline the
transport copies them into a frozen [Event][nostrmon.models.event.Event]
via [from_nostr()][nostrmon.models.event.Event.from_nostr]. Signature
verification has already happened inside ``nostr-sdk`` by that point.

See Also:
    [RelayNotification][nostrmon.models.notification.RelayNotification]:
        Channel message that carries an event from the transport to the
        monitor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from ._validation import validate_instance, validate_str_not_empty, validate_timestamp
from .constants import EVENT_KIND_MAX


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Attributes:
        id: Event id as 64-character lowercase hex.
        author_id: Author public key as 64-character lowercase hex.
        content: Raw event content.
        created_at: Unix timestamp (seconds) set by the author.
        kind: Integer event kind (1 for text notes).

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If ``id`` or ``author_id`` is empty, ``created_at`` is
            negative, or ``kind`` is outside ``0..65535``.

    Examples:
        ```python
        event = Event(id="ab" * 32, author_id="cd" * 32, content="hello",
                      created_at=1700000000, kind=1)
        event.created_at_iso  # '2023-11-14T22:13:20+00:00'
        ```
    """

    id: str
    author_id: str
    content: str
    created_at: int
    kind: int = 1

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_not_empty(self.author_id, "author_id")
        validate_instance(self.content, str, "content")
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}, got {self.kind}")

    @property
    def created_at_iso(self) -> str:
        """Creation time as an ISO-8601 UTC string."""
        return datetime.fromtimestamp(self.created_at, tz=UTC).isoformat()

    @classmethod
    def from_nostr(cls, event: NostrEvent) -> Event:
        """Copy the fields the monitor uses out of a ``nostr_sdk.Event``."""
        return cls(
            id=event.id().to_hex(),
            author_id=event.author().to_hex(),
            content=event.content(),
            created_at=event.created_at().as_secs(),
            kind=event.kind().as_u16(),
        )

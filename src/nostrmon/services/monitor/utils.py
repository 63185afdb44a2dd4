"""Monitor service utility functions.

Pure helpers for building the subscription filter and rendering alerts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrmon.models.constants import EventKind
from nostrmon.models.subscription import SubscriptionFilter


if TYPE_CHECKING:
    from nostrmon.models.event import Event


ALERT_TITLE = "🔔 New Nostr message"


def build_filter(now: int) -> SubscriptionFilter:
    """Text notes created from *now* on; no stored backlog is requested."""
    return SubscriptionFilter(kinds=(EventKind.TEXT_NOTE,), since=now)


def preview(content: str, length: int) -> str:
    """First *length* characters of *content*, with ``...`` if truncated."""
    if len(content) > length:
        return content[:length] + "..."
    return content


def format_alert(event: Event, preview_length: int = 100, author_length: int = 6) -> str:
    """Render the user-visible alert text for a matching event.

    Examples:
        ```text
        🔔 New Nostr message
        Author: 3bf0c6...
        Content: this has foo in it
        Time: 2024-01-01T00:00:00+00:00
        ```
    """
    return "\n".join(
        (
            ALERT_TITLE,
            f"Author: {event.author_id[:author_length]}...",
            f"Content: {preview(event.content, preview_length)}",
            f"Time: {event.created_at_iso}",
        )
    )

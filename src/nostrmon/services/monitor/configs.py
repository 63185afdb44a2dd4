"""Monitor service configuration models.

See Also:
    [Monitor][nostrmon.services.monitor.Monitor]: The service class
        that consumes these configurations.
    [BaseServiceConfig][nostrmon.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures`` and
        ``metrics``.

Examples:
    ```yaml
    interval: 30
    settings_path: data/settings.yaml
    transport:
      timeout: 10
      proxy_url: socks5://127.0.0.1:9050
    processing:
      restart_debounce: 0.25
      preview_length: 100
    alerts:
      webhook_url: https://ntfy.example/nostr
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from nostrmon.core.base_service import BaseServiceConfig
from nostrmon.services.common.alerts import AlertsConfig


class TransportConfig(BaseModel):
    """Relay connection settings.

    ``proxy_url`` is only used when the relay list contains overlay
    (``.onion``, ``.i2p``, ``.loki``) relays.
    """

    timeout: float = Field(default=10.0, ge=1.0, le=120.0)
    proxy_url: str | None = Field(default=None)


class ProcessingConfig(BaseModel):
    """Event handling and restart behaviour.

    Attributes:
        restart_debounce: Seconds to wait before applying a restart so a
            burst of edits collapses into one resubscription. ``0`` applies
            immediately.
        preview_length: Maximum content characters shown in an alert.
        author_length: Leading characters of the author id shown in an alert.
        queue_size: Capacity of the notification channel (``0`` = unbounded).
        max_seen_ids: Capacity of the cross-relay duplicate filter; the
            oldest ids are evicted first.
    """

    restart_debounce: float = Field(default=0.25, ge=0.0, le=10.0)
    preview_length: int = Field(default=100, ge=1, le=10_000)
    author_length: int = Field(default=6, ge=1, le=64)
    queue_size: int = Field(default=10_000, ge=0)
    max_seen_ids: int = Field(default=100_000, ge=100)


class MonitorConfig(BaseServiceConfig):
    """Monitor service configuration.

    ``interval`` is how often the persisted settings are re-read so edits
    made with the CLI reach a running daemon.
    """

    settings_path: str = Field(default="data/settings.yaml", min_length=1)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)

"""Building blocks shared by nostrmon services: settings and alert sinks."""

from .alerts import (
    AlertsConfig,
    AlertSink,
    LogAlertSink,
    MultiAlertSink,
    WebhookAlertSink,
    build_alert_sink,
)
from .settings import (
    DEFAULT_RELAYS,
    DEFAULT_SEARCH_PATTERN,
    Settings,
    SettingsManager,
    SettingsStore,
    SettingsUpdate,
)


__all__ = [
    "DEFAULT_RELAYS",
    "DEFAULT_SEARCH_PATTERN",
    "AlertSink",
    "AlertsConfig",
    "LogAlertSink",
    "MultiAlertSink",
    "Settings",
    "SettingsManager",
    "SettingsStore",
    "SettingsUpdate",
    "WebhookAlertSink",
    "build_alert_sink",
]

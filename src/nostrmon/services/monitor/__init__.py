"""Monitor service package."""

from .configs import MonitorConfig, ProcessingConfig, TransportConfig
from .service import Monitor, MonitorCounters
from .utils import build_filter, format_alert


__all__ = [
    "Monitor",
    "MonitorConfig",
    "MonitorCounters",
    "ProcessingConfig",
    "TransportConfig",
    "build_filter",
    "format_alert",
]

"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons.
``BaseService.run_forever()`` records cycle counts and durations; the monitor
adds its own totals (events received, matched, discarded, alerts sent)
through ``inc_counter()`` and ``set_gauge()``.

The ``MetricsServer`` serves the registry over aiohttp for Prometheus
scraping. It is off unless ``MetricsConfig.enabled`` is set.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint."""

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=9464, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


SERVICE_INFO = Info(
    "nostrmon_service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "nostrmon_cycle_duration_seconds",
    "Duration of a service cycle in seconds",
    ["service"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60),
)

# Labels used by the monitor:
#   gauge:   consecutive_failures, last_cycle_timestamp, relays
#   counter: cycles_success, cycles_failed, errors_{type}, events_received,
#            events_matched, events_duplicate, events_discarded_stale,
#            handler_errors, alerts_sent, restarts
SERVICE_GAUGE = Gauge(
    "nostrmon_service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "nostrmon_service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


class MetricsServer:
    """Async HTTP server exposing the Prometheus registry.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True))
        await server.start()
        ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Release the bound port. Safe to call when never started."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server; the caller owns ``stop()``."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server

"""User-visible alert delivery.

An [AlertSink][nostrmon.services.common.alerts.AlertSink] receives
rendered alert text. Delivery is fire-and-forget from the caller's point of
view: ``notify`` reports success as a boolean, logs failures, and never
raises.

Sinks:

* [LogAlertSink][nostrmon.services.common.alerts.LogAlertSink] writes an
  ``alert`` warning record. Always available, enabled by default.
* [WebhookAlertSink][nostrmon.services.common.alerts.WebhookAlertSink]
  POSTs ``{"message": ...}`` as JSON with aiohttp.
* [MultiAlertSink][nostrmon.services.common.alerts.MultiAlertSink] fans out
  to several sinks.

Examples:
    ```yaml
    alerts:
      log: true
      webhook_url: https://ntfy.example/nostr
      webhook_timeout: 5
    ```
"""

from __future__ import annotations

from typing import Protocol

import aiohttp
from pydantic import BaseModel, Field

from nostrmon.core.logger import Logger


class AlertsConfig(BaseModel):
    """Which alert sinks are active."""

    log: bool = Field(default=True, description="Write alerts to the log")
    webhook_url: str | None = Field(default=None, description="POST alerts to this URL")
    webhook_timeout: float = Field(default=10.0, gt=0, le=120.0)


class AlertSink(Protocol):
    async def notify(self, message: str) -> bool: ...

    async def close(self) -> None: ...


class LogAlertSink:
    """Writes each alert as a structured warning."""

    def __init__(self, logger: Logger | None = None) -> None:
        self._logger = logger or Logger("alerts")

    async def notify(self, message: str) -> bool:
        self._logger.warning("alert", message=message)
        return True

    async def close(self) -> None:
        return None


class WebhookAlertSink:
    """POSTs each alert as ``{"message": ...}`` to a URL.

    The ``aiohttp.ClientSession`` is created on first use and closed by
    ``close()``. Each request is bounded by ``timeout`` seconds.
    """

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._logger = Logger("alerts.webhook")

    async def notify(self, message: str) -> bool:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        try:
            async with self._session.post(self._url, json={"message": message}) as response:
                if response.status >= 400:
                    self._logger.error("webhook_rejected", url=self._url, status=response.status)
                    return False
        except (aiohttp.ClientError, TimeoutError) as e:
            self._logger.error("webhook_failed", url=self._url, error=str(e) or type(e).__name__)
            return False
        return True

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class MultiAlertSink:
    """Delivers each alert to every wrapped sink, in order."""

    def __init__(self, sinks: list[AlertSink]) -> None:
        self._sinks = list(sinks)

    @property
    def sinks(self) -> list[AlertSink]:
        return list(self._sinks)

    async def notify(self, message: str) -> bool:
        delivered = False
        for sink in self._sinks:
            if await sink.notify(message):
                delivered = True
        return delivered

    async def close(self) -> None:
        for sink in self._sinks:
            await sink.close()


def build_alert_sink(config: AlertsConfig) -> AlertSink:
    """Assemble the sinks enabled in *config*.

    Falls back to a [LogAlertSink][nostrmon.services.common.alerts.LogAlertSink]
    when every sink is disabled, so matches are never silently dropped.
    """
    sinks: list[AlertSink] = []
    if config.log:
        sinks.append(LogAlertSink())
    if config.webhook_url:
        sinks.append(WebhookAlertSink(config.webhook_url, config.webhook_timeout))
    if not sinks:
        return LogAlertSink()
    if len(sinks) == 1:
        return sinks[0]
    return MultiAlertSink(sinks)

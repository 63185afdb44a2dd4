"""
Unit tests for core.metrics module.

Tests:
- MetricsConfig initialization and validation
- MetricsServer start/stop lifecycle
- Metrics endpoint response format
- start_metrics_server helper function
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info
from pydantic import ValidationError

from nostrmon.core.metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)


# ============================================================================
# MetricsConfig Tests
# ============================================================================


class TestMetricsConfig:
    """Tests for MetricsConfig Pydantic model."""

    def test_defaults(self) -> None:
        config = MetricsConfig()

        assert config.enabled is False
        assert config.port == 9464
        assert config.host == "127.0.0.1"
        assert config.path == "/metrics"

    def test_custom_values(self) -> None:
        config = MetricsConfig(enabled=True, port=9090, host="0.0.0.0", path="/custom")
        assert config.port == 9090
        assert config.path == "/custom"

    @pytest.mark.parametrize("port", [80, 1023, 65536])
    def test_port_out_of_range(self, port) -> None:
        with pytest.raises(ValidationError):
            MetricsConfig(port=port)


# ============================================================================
# Module-level Metrics Tests
# ============================================================================


class TestModuleMetrics:
    """Process-wide metric objects."""

    def test_types(self) -> None:
        assert isinstance(SERVICE_INFO, Info)
        assert isinstance(CYCLE_DURATION_SECONDS, Histogram)
        assert isinstance(SERVICE_GAUGE, Gauge)
        assert isinstance(SERVICE_COUNTER, Counter)

    def test_labels(self) -> None:
        SERVICE_GAUGE.labels(service="test", name="relays").set(3)
        SERVICE_COUNTER.labels(service="test", name="alerts_sent").inc()
        CYCLE_DURATION_SECONDS.labels(service="test").observe(0.1)


# ============================================================================
# MetricsServer Tests
# ============================================================================


class TestMetricsServer:
    """MetricsServer lifecycle."""

    async def test_start_disabled_is_noop(self) -> None:
        server = MetricsServer(MetricsConfig(enabled=False))
        with patch("nostrmon.core.metrics.web.AppRunner") as runner_cls:
            await server.start()
        runner_cls.assert_not_called()

    async def test_stop_without_start(self) -> None:
        server = MetricsServer(MetricsConfig())
        await server.stop()

    async def test_start_and_stop(self) -> None:
        runner = MagicMock()
        runner.setup = AsyncMock()
        runner.cleanup = AsyncMock()
        site = MagicMock()
        site.start = AsyncMock()

        config = MetricsConfig(enabled=True, port=9999, host="127.0.0.1")
        server = MetricsServer(config)
        with (
            patch("nostrmon.core.metrics.web.AppRunner", return_value=runner),
            patch("nostrmon.core.metrics.web.TCPSite", return_value=site) as site_cls,
        ):
            await server.start()
            site_cls.assert_called_once_with(runner, "127.0.0.1", 9999)
            site.start.assert_awaited_once()

            await server.stop()
            runner.cleanup.assert_awaited_once()

            await server.stop()
            runner.cleanup.assert_awaited_once()

    async def test_handle_metrics(self) -> None:
        response = await MetricsServer._handle_metrics(MagicMock())
        assert response.headers["Content-Type"] == CONTENT_TYPE_LATEST
        assert b"nostrmon_service" in response.body


class TestStartMetricsServer:
    """start_metrics_server() helper."""

    async def test_default_config_disabled(self) -> None:
        server = await start_metrics_server()
        assert isinstance(server, MetricsServer)
        await server.stop()

    async def test_starts_server(self) -> None:
        with patch.object(MetricsServer, "start", new_callable=AsyncMock) as start:
            server = await start_metrics_server(MetricsConfig(enabled=True))
        start.assert_awaited_once()
        assert isinstance(server, MetricsServer)

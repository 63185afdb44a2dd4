"""Core layer providing the foundation for all nostrmon services.

Depends only on ``nostrmon.models`` and is depended upon by
``nostrmon.services``.

Attributes:
    BaseService: Abstract generic base class with lifecycle management
        ([run()][nostrmon.core.base_service.BaseService.run] /
        [run_forever()][nostrmon.core.base_service.BaseService.run_forever] /
        shutdown), factory methods, and Prometheus metrics integration.
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrmon.core.logger.Logger].
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.
        See [MetricsServer][nostrmon.core.metrics.MetricsServer].
    YAML: Safe YAML loading and dumping.
        See [load_yaml()][nostrmon.core.yaml.load_yaml].
"""

from .base_service import (
    BaseService,
    BaseServiceConfig,
    ConfigT,
)
from .exceptions import (
    AuthenticationError,
    CipherError,
    ConfigurationError,
    InvalidPatternError,
    InvalidSecretError,
    MalformedInputError,
    NostrmonError,
    TransportError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .yaml import dump_yaml, load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "AuthenticationError",
    "BaseService",
    "BaseServiceConfig",
    "CipherError",
    "ConfigT",
    "ConfigurationError",
    "InvalidPatternError",
    "InvalidSecretError",
    "Logger",
    "MalformedInputError",
    "MetricsConfig",
    "MetricsServer",
    "NostrmonError",
    "StructuredFormatter",
    "TransportError",
    "dump_yaml",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Prometheus instrumentation configuration.

The configuration is an immutable snapshot read once at bootstrap, either
built explicitly or loaded from environment variables:

- PROMETHEUS_METRICS_PATH: metrics endpoint path (default: /metrics)
- PROMETHEUS_DEFAULT_METRICS_INTERVAL: process metrics sampling interval in seconds
- PROMETHEUS_DURATION_BUCKETS: comma separated duration buckets (seconds)
- PROMETHEUS_REQUEST_SIZE_BUCKETS: comma separated request size buckets (bytes)
- PROMETHEUS_RESPONSE_SIZE_BUCKETS: comma separated response size buckets (bytes)
- PROMETHEUS_UNIQUE_METRIC_NAMES: prefix metric names with the service name
- PROMETHEUS_EXCLUDED_PATHS: comma separated paths that are never recorded
- PROMETHEUS_SERVICE_NAME / PROMETHEUS_SERVICE_VERSION: service identity
"""

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

logger = logging.getLogger(__name__)

# Response time buckets from 1ms to 500ms
DEFAULT_DURATION_BUCKETS: Tuple[float, ...] = (
    0.001,
    0.005,
    0.015,
    0.05,
    0.1,
    0.2,
    0.3,
    0.4,
    0.5,
)

# Size buckets from 5 bytes to 10000 bytes
DEFAULT_SIZE_BUCKETS: Tuple[float, ...] = (
    5,
    10,
    25,
    50,
    100,
    250,
    500,
    1000,
    2500,
    5000,
    10000,
)

DEFAULT_METRICS_PATH = "/metrics"
DEFAULT_METRICS_INTERVAL = 10.0


@dataclass(frozen=True)
class PrometheusConfig:
    """Immutable instrumentation settings."""

    metrics_path: str = DEFAULT_METRICS_PATH
    default_metrics_interval: float = DEFAULT_METRICS_INTERVAL
    duration_buckets: Tuple[float, ...] = DEFAULT_DURATION_BUCKETS
    request_size_buckets: Tuple[float, ...] = DEFAULT_SIZE_BUCKETS
    response_size_buckets: Tuple[float, ...] = DEFAULT_SIZE_BUCKETS
    use_unique_metric_names: bool = False
    excluded_paths: FrozenSet[str] = field(default_factory=frozenset)
    service_name: Optional[str] = None
    service_version: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PrometheusConfig":
        """Build a configuration from PROMETHEUS_* environment variables."""
        return cls(
            metrics_path=os.getenv("PROMETHEUS_METRICS_PATH") or DEFAULT_METRICS_PATH,
            default_metrics_interval=_env_float(
                "PROMETHEUS_DEFAULT_METRICS_INTERVAL", DEFAULT_METRICS_INTERVAL
            ),
            duration_buckets=_env_buckets(
                "PROMETHEUS_DURATION_BUCKETS", DEFAULT_DURATION_BUCKETS
            ),
            request_size_buckets=_env_buckets(
                "PROMETHEUS_REQUEST_SIZE_BUCKETS", DEFAULT_SIZE_BUCKETS
            ),
            response_size_buckets=_env_buckets(
                "PROMETHEUS_RESPONSE_SIZE_BUCKETS", DEFAULT_SIZE_BUCKETS
            ),
            use_unique_metric_names=_env_bool("PROMETHEUS_UNIQUE_METRIC_NAMES", False),
            excluded_paths=frozenset(_split(os.getenv("PROMETHEUS_EXCLUDED_PATHS"))),
            service_name=os.getenv("PROMETHEUS_SERVICE_NAME") or None,
            service_version=os.getenv("PROMETHEUS_SERVICE_VERSION") or None,
        )

    @property
    def metrics_json_path(self) -> str:
        return f"{self.metrics_path}.json"


def _split(value: Optional[str]) -> list:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, value, default)
        return default


def _env_buckets(name: str, default: Tuple[float, ...]) -> Tuple[float, ...]:
    items = _split(os.getenv(name))
    if not items:
        return default
    try:
        return tuple(sorted(float(item) for item in items))
    except ValueError:
        logger.warning("Invalid %s=%r, using default buckets", name, os.getenv(name))
        return default


# Global configuration snapshot
_config: Optional[PrometheusConfig] = None


def get_prometheus_config() -> PrometheusConfig:
    """Get the global Prometheus configuration.

    Returns:
        PrometheusConfig loaded from the environment on first use.
    """
    global _config
    if _config is None:
        _config = PrometheusConfig.from_env()
    return _config


def reset_prometheus_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None

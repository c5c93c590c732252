# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Bootstrap of the Prometheus instrumentation.

PrometheusMetrics is the process-wide service object shared by the
middleware: it owns the configuration, the HTTP metric definitions and the
handle of the default metrics sampler. setup() is idempotent; running it
again, or running several instances against one registry, reuses the
metrics already registered instead of registering them twice.

Usage:
    from prometheus_api_metrics import setup_prometheus

    app = FastAPI(title="orders-service", version="1.4.2")
    setup_prometheus(app)
"""

import dataclasses
import logging
import re
from typing import Optional

from prometheus_client import CollectorRegistry

from prometheus_api_metrics.collectors import DefaultMetricsCollector, DefaultMetricsTimer
from prometheus_api_metrics.config import PrometheusConfig, get_prometheus_config
from prometheus_api_metrics.metrics.http import HTTPMetrics
from prometheus_api_metrics.registry import find_collector, get_registry

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "app"
DEFAULT_SERVICE_VERSION = "0.0.0"

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


def normalize_prefix(service_name: str) -> str:
    """Build a metric name prefix from a service name.

    Examples:
        >>> normalize_prefix("orders-service")
        'orders_service_'
        >>> normalize_prefix("3d.render")
        '_3d_render_'
    """
    prefix = _NON_ALPHANUMERIC.sub("_", service_name)
    if prefix[:1].isdigit():
        prefix = "_" + prefix
    return prefix + "_"


class PrometheusMetrics:
    """Process-wide Prometheus instrumentation state."""

    def __init__(
        self,
        config: Optional[PrometheusConfig] = None,
        registry: Optional[CollectorRegistry] = None,
        service_name: Optional[str] = None,
        service_version: Optional[str] = None,
    ):
        self.config = config or get_prometheus_config()
        self.registry = registry if registry is not None else get_registry()
        self.service_name = (
            service_name or self.config.service_name or DEFAULT_SERVICE_NAME
        )
        self.service_version = (
            service_version or self.config.service_version or DEFAULT_SERVICE_VERSION
        )
        self.prefix = (
            normalize_prefix(self.service_name)
            if self.config.use_unique_metric_names
            else ""
        )
        self.http = HTTPMetrics(
            registry=self.registry,
            prefix=self.prefix,
            duration_buckets=self.config.duration_buckets,
            request_size_buckets=self.config.request_size_buckets,
            response_size_buckets=self.config.response_size_buckets,
        )
        self.default_metrics_timer: Optional[DefaultMetricsTimer] = None
        self._setup_done = False

    def setup(self) -> "PrometheusMetrics":
        """Register (or reuse) all metrics and start the default metrics sampler."""
        if self._setup_done:
            return self
        logger.info(
            "Init metrics middleware for %s %s with options: %s",
            self.service_name,
            self.service_version,
            self.config,
        )

        self.default_metrics_timer = self._start_default_metrics()
        self.http.set_version(self.service_version)
        self.http.ensure_created()

        self._setup_done = True
        return self

    def _start_default_metrics(self) -> Optional[DefaultMetricsTimer]:
        prefix = self.prefix
        collector = find_collector(
            self.registry,
            lambda c: isinstance(c, DefaultMetricsCollector) and c.prefix == prefix,
        )
        if collector is None:
            collector = DefaultMetricsCollector(prefix=prefix)
            try:
                self.registry.register(collector)
            except ValueError:
                # e.g. the global prometheus_client REGISTRY already exports them
                logger.warning(
                    "Default metrics with prefix %r are already exported, skipping",
                    prefix,
                )
                return None
        else:
            logger.info("Reusing default metrics collector (prefix=%r)", prefix)

        if self.config.default_metrics_interval <= 0:
            logger.info("Periodic default metrics collection disabled")
            return collector.timer
        if collector.timer is None or not collector.timer.running:
            collector.timer = DefaultMetricsTimer(
                collector, self.config.default_metrics_interval
            ).start()
        return collector.timer

    def shutdown(self) -> None:
        """Stop the default metrics sampler."""
        if self.default_metrics_timer is not None:
            self.default_metrics_timer.cancel()


def setup_prometheus(
    app=None,
    config: Optional[PrometheusConfig] = None,
    registry: Optional[CollectorRegistry] = None,
    **overrides,
) -> PrometheusMetrics:
    """Set up Prometheus instrumentation, optionally for a FastAPI app.

    Args:
        app: FastAPI/Starlette application to instrument. Its title and
            version name the service when the configuration does not.
        config: Configuration snapshot. Loaded from the environment if not provided.
        registry: Prometheus registry. Uses the global registry if not provided.
        **overrides: PrometheusConfig fields overriding ``config``

    Returns:
        The set up PrometheusMetrics service
    """
    from prometheus_api_metrics.middleware import PrometheusMiddleware

    config = config or get_prometheus_config()
    if overrides:
        config = dataclasses.replace(config, **overrides)

    metrics = PrometheusMetrics(
        config=config,
        registry=registry,
        service_name=config.service_name or getattr(app, "title", None),
        service_version=config.service_version or getattr(app, "version", None),
    ).setup()

    if app is not None:
        if getattr(app.state, "prometheus_metrics", None) is None:
            app.add_middleware(PrometheusMiddleware, metrics=metrics)
            app.state.prometheus_metrics = metrics
        else:
            logger.info("Prometheus middleware already installed on %s", app)
    return metrics


# Global instance
_metrics: Optional[PrometheusMetrics] = None


def get_prometheus_metrics() -> PrometheusMetrics:
    """Get the global PrometheusMetrics instance.

    Returns:
        PrometheusMetrics singleton, set up on first use.
    """
    global _metrics
    if _metrics is None:
        _metrics = PrometheusMetrics().setup()
    return _metrics


def reset_prometheus_metrics() -> None:
    """Reset the global PrometheusMetrics (for testing)."""
    global _metrics
    if _metrics is not None:
        _metrics.shutdown()
    _metrics = None

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Prometheus API metrics for FastAPI/Starlette services.

This module provides:
- HTTP request duration, request size and response size histograms
- An app_version gauge and periodically sampled process metrics
- FastAPI middleware for automatic metrics collection
- Metrics snapshots in text (/metrics) and JSON (/metrics.json) formats
- Route template normalization keeping label cardinality bounded

Usage:
    from prometheus_api_metrics import setup_prometheus

    app = FastAPI(title="orders-service", version="1.4.2")

    # Adds PrometheusMiddleware, which also serves /metrics and /metrics.json
    setup_prometheus(app)
"""

from prometheus_api_metrics.bootstrap import (
    PrometheusMetrics,
    get_prometheus_metrics,
    normalize_prefix,
    reset_prometheus_metrics,
    setup_prometheus,
)
from prometheus_api_metrics.config import (
    DEFAULT_DURATION_BUCKETS,
    DEFAULT_SIZE_BUCKETS,
    PrometheusConfig,
    get_prometheus_config,
)
from prometheus_api_metrics.endpoint import (
    create_metrics_endpoint,
    render_metrics_json,
    render_metrics_text,
)
from prometheus_api_metrics.metrics import HTTPMetrics
from prometheus_api_metrics.middleware import PrometheusMiddleware, RequestMetricsContext
from prometheus_api_metrics.routing import RouteInfo, classify_route, get_route_label

__all__ = [
    # Bootstrap
    "PrometheusMetrics",
    "setup_prometheus",
    "get_prometheus_metrics",
    "reset_prometheus_metrics",
    "normalize_prefix",
    # Config
    "PrometheusConfig",
    "get_prometheus_config",
    "DEFAULT_DURATION_BUCKETS",
    "DEFAULT_SIZE_BUCKETS",
    # Metrics
    "HTTPMetrics",
    # Middleware
    "PrometheusMiddleware",
    "RequestMetricsContext",
    # Routing
    "RouteInfo",
    "classify_route",
    "get_route_label",
    # Endpoint
    "create_metrics_endpoint",
    "render_metrics_text",
    "render_metrics_json",
]

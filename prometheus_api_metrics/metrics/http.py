# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""HTTP/API Prometheus metrics.

Provides metrics for HTTP request tracking:
- http_request_duration_seconds: Histogram for request latency
- http_request_size_bytes: Histogram for request body size
- http_response_size_bytes: Histogram for response body size
- app_version: Gauge carrying the service version as labels

All histograms are labeled by (method, route, code). Metric definitions are
looked up in the registry before creation, so several instances sharing one
registry reuse the same definitions.
"""

import logging
import re
from timeit import default_timer
from typing import Callable, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Gauge, Histogram

from prometheus_api_metrics.config import (
    DEFAULT_DURATION_BUCKETS,
    DEFAULT_SIZE_BUCKETS,
)
from prometheus_api_metrics.registry import get_registry, get_single_metric

logger = logging.getLogger(__name__)

HTTP_LABEL_NAMES = ("method", "route", "code")
VERSION_LABEL_NAMES = ("version", "major", "minor", "patch")

REQUEST_DURATION_NAME = "http_request_duration_seconds"
REQUEST_SIZE_NAME = "http_request_size_bytes"
RESPONSE_SIZE_NAME = "http_response_size_bytes"
APP_VERSION_NAME = "app_version"

_VERSION_PART = re.compile(r"^\d+")


def split_version(version: str) -> Tuple[str, str, str]:
    """Split a version string into (major, minor, patch) label values.

    Missing or non-numeric parts become empty strings.

    Examples:
        >>> split_version("1.2.3")
        ('1', '2', '3')
        >>> split_version("2.0.1rc1")
        ('2', '0', '1')
    """
    parts = version.split(".")
    segments = []
    for index in range(3):
        match = _VERSION_PART.match(parts[index]) if index < len(parts) else None
        segments.append(str(int(match.group(0))) if match else "")
    return segments[0], segments[1], segments[2]


class HTTPMetrics:
    """HTTP metrics collection class.

    Provides metrics for monitoring HTTP API traffic:
    - Request latency distribution
    - Request and response size distribution
    - Service version
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        prefix: str = "",
        duration_buckets: Sequence[float] = DEFAULT_DURATION_BUCKETS,
        request_size_buckets: Sequence[float] = DEFAULT_SIZE_BUCKETS,
        response_size_buckets: Sequence[float] = DEFAULT_SIZE_BUCKETS,
    ):
        """Initialize HTTP metrics.

        Args:
            registry: Optional Prometheus registry. Uses global registry if not provided.
            prefix: Prefix applied to every metric name
            duration_buckets: Buckets of the duration histogram (seconds)
            request_size_buckets: Buckets of the request size histogram (bytes)
            response_size_buckets: Buckets of the response size histogram (bytes)
        """
        self._registry = registry if registry is not None else get_registry()
        self.prefix = prefix
        self._duration_buckets = tuple(duration_buckets)
        self._request_size_buckets = tuple(request_size_buckets)
        self._response_size_buckets = tuple(response_size_buckets)
        self._request_duration: Optional[Histogram] = None
        self._request_size: Optional[Histogram] = None
        self._response_size: Optional[Histogram] = None
        self._app_version: Optional[Gauge] = None

    def _get_or_create(self, metric_cls, name: str, documentation: str, **kwargs):
        existing = get_single_metric(self._registry, name)
        if existing is not None:
            logger.info("Reusing already registered metric %s", name)
            return existing
        return metric_cls(name, documentation, registry=self._registry, **kwargs)

    @property
    def request_duration(self) -> Histogram:
        """Get or create the request duration histogram."""
        if self._request_duration is None:
            self._request_duration = self._get_or_create(
                Histogram,
                self.prefix + REQUEST_DURATION_NAME,
                "Duration of HTTP requests in seconds",
                labelnames=HTTP_LABEL_NAMES,
                buckets=self._duration_buckets,
            )
        return self._request_duration

    @property
    def request_size(self) -> Histogram:
        """Get or create the request size histogram."""
        if self._request_size is None:
            self._request_size = self._get_or_create(
                Histogram,
                self.prefix + REQUEST_SIZE_NAME,
                "Size of HTTP requests in bytes",
                labelnames=HTTP_LABEL_NAMES,
                buckets=self._request_size_buckets,
            )
        return self._request_size

    @property
    def response_size(self) -> Histogram:
        """Get or create the response size histogram."""
        if self._response_size is None:
            self._response_size = self._get_or_create(
                Histogram,
                self.prefix + RESPONSE_SIZE_NAME,
                "Size of HTTP response in bytes",
                labelnames=HTTP_LABEL_NAMES,
                buckets=self._response_size_buckets,
            )
        return self._response_size

    @property
    def app_version(self) -> Optional[Gauge]:
        """The version gauge, once set_version() has run."""
        return self._app_version

    def set_version(self, version: str) -> Gauge:
        """Create the version gauge and set it to 1 for ``version``.

        An already registered gauge is reused untouched.
        """
        if self._app_version is not None:
            return self._app_version

        name = self.prefix + APP_VERSION_NAME
        existing = get_single_metric(self._registry, name)
        if existing is not None:
            logger.info("Reusing already registered metric %s", name)
            self._app_version = existing
            return existing

        gauge = Gauge(
            name,
            "The service version",
            labelnames=VERSION_LABEL_NAMES,
            registry=self._registry,
        )
        major, minor, patch = split_version(version)
        gauge.labels(version, major, minor, patch).set(1)
        self._app_version = gauge
        return gauge

    def ensure_created(self) -> None:
        """Create (or look up) all request histograms eagerly."""
        _ = self.request_duration, self.request_size, self.response_size

    def start_timer(self, **labels: str) -> Callable[..., float]:
        """Start a duration timer with a partial label set.

        The returned callable observes the elapsed seconds once the remaining
        labels are known, e.g. ``stop(route="/users/:id", code="200")``.
        """
        start = default_timer()

        def stop(**extra_labels: str) -> float:
            duration = max(default_timer() - start, 0.0)
            self.request_duration.labels(**{**labels, **extra_labels}).observe(
                duration
            )
            return duration

        return stop

    def observe_request(
        self,
        method: str,
        route: str,
        status_code: int,
        timer: Callable[..., float],
        request_size: int,
        response_size: int,
    ) -> None:
        """Record a completed HTTP request.

        The three observations are independent; a failing one is logged and
        does not prevent the others.

        Args:
            method: HTTP method (GET, POST, etc.)
            route: Route label (e.g., /api/tasks/:task_id)
            status_code: HTTP response status code
            timer: Timer returned by start_timer() for this request
            request_size: Declared request body size in bytes
            response_size: Declared response body size in bytes
        """
        code = str(status_code)
        labels = {"method": method, "route": route, "code": code}

        try:
            self.request_size.labels(**labels).observe(request_size)
        except Exception:
            logger.exception("Failed to record request size for %s %s", method, route)

        try:
            timer(route=route, code=code)
        except Exception:
            logger.exception("Failed to record duration for %s %s", method, route)

        try:
            self.response_size.labels(**labels).observe(response_size)
        except Exception:
            logger.exception("Failed to record response size for %s %s", method, route)

        logger.debug(
            "metrics updated, request length: %s, response length: %s",
            request_size,
            response_size,
        )

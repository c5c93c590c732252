# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""FastAPI Prometheus middleware for automatic HTTP metrics collection.

This middleware wraps every request:
- Serves the metrics snapshot on the metrics path (text) and on the
  metrics path with a ``.json`` suffix (JSON), without recording them
- Starts a duration timer and captures the declared request size
- Once the response has been sent, classifies the route and records
  duration, request size and response size with (method, route, code)

Recording happens in completion callbacks of a RequestMetricsContext, which
fire exactly once per request whether the downstream handler succeeded or
raised.
"""

import logging
import re
from typing import Any, Callable, List, Optional, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from prometheus_api_metrics.endpoint import (
    metrics_json_response,
    metrics_text_response,
)
from prometheus_api_metrics.routing import get_route_label

logger = logging.getLogger(__name__)

CONTENT_LENGTH_PATTERN = re.compile(r"[0-9]+")


def parse_content_length(value: Optional[str]) -> int:
    """Parse a content-length header value, 0 when missing or invalid."""
    if value is None:
        return 0
    value = value.strip()
    if not CONTENT_LENGTH_PATTERN.fullmatch(value):
        return 0
    return int(value)


class RequestMetricsContext:
    """Per-request metrics state.

    Holds the running duration timer and the declared request size, and
    runs the registered completion callbacks exactly once.

    Usage:
        ctx = RequestMetricsContext(timer=metrics.start_timer(method="GET"), content_length=12)
        ctx.add_done_callback(lambda ctx: record(ctx))
        ...
        ctx.finish(status_code=200, response_length=340)
    """

    def __init__(self, timer: Callable[..., float], content_length: int = 0):
        self.timer = timer
        self.content_length = content_length
        self.status_code: Optional[int] = None
        self.response_length = 0
        self._callbacks: List[Callable[["RequestMetricsContext"], Any]] = []
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def add_done_callback(self, callback: Callable[["RequestMetricsContext"], Any]) -> None:
        self._callbacks.append(callback)

    def finish(self, status_code: int, response_length: int = 0) -> None:
        """Complete the request and run the callbacks; later calls are ignored."""
        if self._finished:
            return
        self._finished = True
        self.status_code = status_code
        self.response_length = response_length

        for callback in self._callbacks:
            try:
                callback(self)
            except Exception:
                logger.exception("Request metrics callback failed")


class PrometheusMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for Prometheus HTTP metrics collection.

    Automatically records:
    - http_request_duration_seconds: Histogram with method, route, code
    - http_request_size_bytes: Histogram with the same labels
    - http_response_size_bytes: Histogram with the same labels

    Usage:
        metrics = setup_prometheus()
        app.add_middleware(PrometheusMiddleware, metrics=metrics)
    """

    def __init__(
        self,
        app,
        metrics=None,
        excluded_paths: Optional[Set[str]] = None,
    ):
        """Initialize PrometheusMiddleware.

        Args:
            app: ASGI application
            metrics: PrometheusMetrics service. Uses the global one if not provided.
            excluded_paths: Additional paths excluded from metrics collection
        """
        super().__init__(app)
        if metrics is None:
            from prometheus_api_metrics.bootstrap import get_prometheus_metrics

            metrics = get_prometheus_metrics()
        self._metrics = metrics

        config = metrics.config
        self._metrics_path = config.metrics_path
        self._metrics_json_path = config.metrics_json_path
        self._excluded_paths = set(config.excluded_paths)
        if excluded_paths:
            self._excluded_paths.update(excluded_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and record metrics.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware/handler in chain

        Returns:
            HTTP response
        """
        path = request.url.path

        if path == self._metrics_path:
            logger.debug("Request to %s endpoint", path)
            return metrics_text_response(self._metrics.registry)
        if path == self._metrics_json_path:
            logger.debug("Request to %s endpoint", path)
            return metrics_json_response(self._metrics.registry)

        if path in self._excluded_paths:
            return await call_next(request)

        context = RequestMetricsContext(
            timer=self._metrics.http.start_timer(method=request.method),
            content_length=parse_content_length(request.headers.get("content-length")),
        )
        context.add_done_callback(lambda ctx: self._handle_response(request, ctx))
        request.state.metrics = context
        logger.debug(
            "Set start time and content length for request. url: %s, method: %s",
            path,
            request.method,
        )

        try:
            response = await call_next(request)
        except Exception:
            context.finish(status_code=500)
            raise

        response_length = parse_content_length(response.headers.get("content-length"))
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            context.finish(response.status_code, response_length)
            return response

        async def tracked_body_iterator():
            try:
                async for chunk in body_iterator:
                    yield chunk
            finally:
                # Record metrics after the body has been sent
                context.finish(response.status_code, response_length)

        response.body_iterator = tracked_body_iterator()
        return response

    def _handle_response(self, request: Request, context: RequestMetricsContext) -> None:
        route = get_route_label(request, context.status_code)
        if route is None:
            logger.debug("No route label for %s %s, skipping", request.method, request.url.path)
            return

        self._metrics.http.observe_request(
            method=request.method,
            route=route,
            status_code=context.status_code,
            timer=context.timer,
            request_size=context.content_length,
            response_size=context.response_length,
        )

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Prometheus metrics snapshots.

Renders a registry in the standard text exposition format and as a JSON
array of metric records, and provides a router factory exposing both.

Usage:
    from prometheus_api_metrics import create_metrics_endpoint

    app = FastAPI()
    app.include_router(create_metrics_endpoint())
"""

import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.utils import floatToGoString
from starlette.responses import JSONResponse, Response

from prometheus_api_metrics.registry import get_registry


def render_metrics_text(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Render all metrics in the Prometheus text exposition format."""
    return generate_latest(registry if registry is not None else get_registry())


def _json_value(value: float) -> Any:
    # JSON has no representation for +Inf/-Inf/NaN
    if isinstance(value, float) and not math.isfinite(value):
        return floatToGoString(value)
    return value


def render_metrics_json(registry: Optional[CollectorRegistry] = None) -> List[Dict[str, Any]]:
    """Render all metrics as a list of records.

    Each record has the metric ``name``, ``help``, ``type`` and its
    ``values``: one entry per sample with ``metric_name``, ``labels`` and
    ``value``.
    """
    registry = registry if registry is not None else get_registry()
    return [
        {
            "name": metric.name,
            "help": metric.documentation,
            "type": metric.type,
            "values": [
                {
                    "metric_name": sample.name,
                    "labels": dict(sample.labels),
                    "value": _json_value(sample.value),
                }
                for sample in metric.samples
            ],
        }
        for metric in registry.collect()
    ]


def metrics_text_response(registry: Optional[CollectorRegistry] = None) -> Response:
    return Response(content=render_metrics_text(registry), media_type=CONTENT_TYPE_LATEST)


def metrics_json_response(registry: Optional[CollectorRegistry] = None) -> JSONResponse:
    return JSONResponse(content=render_metrics_json(registry))


def create_metrics_endpoint(
    path: str = "/metrics", registry: Optional[CollectorRegistry] = None
) -> APIRouter:
    """Create a FastAPI router with the Prometheus metrics endpoints.

    Args:
        path: URL path for the text endpoint (default: /metrics). The JSON
            endpoint is served at the same path with a ``.json`` suffix.
        registry: Registry to expose. Uses the global registry if not provided.

    Returns:
        FastAPI APIRouter with the metrics endpoints

    Usage:
        app = FastAPI()
        app.include_router(create_metrics_endpoint())

        # Or with custom path:
        app.include_router(create_metrics_endpoint("/prometheus/metrics"))
    """
    router = APIRouter(tags=["monitoring"])

    @router.get(path, include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics in text format."""
        return metrics_text_response(registry)

    @router.get(f"{path}.json", include_in_schema=False)
    async def metrics_json() -> Response:
        """Expose Prometheus metrics as JSON."""
        return metrics_json_response(registry)

    return router

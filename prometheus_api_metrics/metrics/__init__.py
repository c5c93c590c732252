# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Prometheus metrics module."""

from prometheus_api_metrics.metrics.http import (
    APP_VERSION_NAME,
    HTTP_LABEL_NAMES,
    REQUEST_DURATION_NAME,
    REQUEST_SIZE_NAME,
    RESPONSE_SIZE_NAME,
    HTTPMetrics,
    split_version,
)

__all__ = [
    "HTTPMetrics",
    "HTTP_LABEL_NAMES",
    "REQUEST_DURATION_NAME",
    "REQUEST_SIZE_NAME",
    "RESPONSE_SIZE_NAME",
    "APP_VERSION_NAME",
    "split_version",
]

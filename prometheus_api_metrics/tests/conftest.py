# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import pytest
from prometheus_client import CollectorRegistry

from prometheus_api_metrics.bootstrap import reset_prometheus_metrics
from prometheus_api_metrics.collectors import cancel_all_timers
from prometheus_api_metrics.config import PrometheusConfig, reset_prometheus_config
from prometheus_api_metrics.registry import reset_registry


@pytest.fixture
def registry():
    """Isolated registry per test."""
    return CollectorRegistry(auto_describe=True)


@pytest.fixture
def config():
    """Configuration whose sampler never fires during a test."""
    return PrometheusConfig(default_metrics_interval=3600)


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    reset_prometheus_metrics()
    reset_prometheus_config()
    reset_registry()
    cancel_all_timers()

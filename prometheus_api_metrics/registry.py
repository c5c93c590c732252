# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Prometheus registry management.

Provides a centralized registry for all Prometheus metrics and lookups of
already registered collectors, so that metric definitions can be reused
instead of registered twice.
Supports both single-process and multi-process modes.
"""

import os
from typing import Callable, Optional

from prometheus_client import CollectorRegistry, multiprocess
from prometheus_client.registry import Collector

# Global registry instance
_registry: Optional[CollectorRegistry] = None


def get_registry() -> CollectorRegistry:
    """Get the global Prometheus registry.

    In multi-process mode (when PROMETHEUS_MULTIPROC_DIR is set),
    uses the multiprocess collector. Otherwise, uses a standard registry.

    Returns:
        CollectorRegistry instance for metrics collection.
    """
    global _registry
    if _registry is None:
        prometheus_multiproc_dir = os.getenv("PROMETHEUS_MULTIPROC_DIR") or os.getenv(
            "prometheus_multiproc_dir"
        )
        if prometheus_multiproc_dir:
            # Multi-process mode: use multiprocess collector
            _registry = CollectorRegistry()
            multiprocess.MultiProcessCollector(_registry)
        else:
            # Single-process mode: use standard registry
            _registry = CollectorRegistry(auto_describe=True)

    return _registry


def reset_registry() -> None:
    """Reset the global registry (for testing)."""
    global _registry
    _registry = None


def get_single_metric(registry: CollectorRegistry, name: str) -> Optional[Collector]:
    """Return the collector registered under exactly ``name``, if any."""
    # prometheus_client has no public lookup by name
    with registry._lock:
        return registry._names_to_collectors.get(name)


def find_collector(
    registry: CollectorRegistry, predicate: Callable[[Collector], bool]
) -> Optional[Collector]:
    """Return the first registered collector matching ``predicate``."""
    with registry._lock:
        collectors = list(registry._collector_to_names)
    for collector in collectors:
        if predicate(collector):
            return collector
    return None

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Default process metrics sampled on a background timer.

DefaultMetricsCollector wraps prometheus_client's built-in process, platform
and GC collectors and serves a cached snapshot of them, optionally prefixed.
DefaultMetricsTimer refreshes that snapshot every ``interval`` seconds on a
daemon thread and can be canceled. All running timers are canceled at
process exit.
"""

import atexit
import logging
import threading
from typing import Iterable, List, Optional, Set

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
)
from prometheus_client.metrics_core import Metric

logger = logging.getLogger(__name__)

_running_timers: Set["DefaultMetricsTimer"] = set()
_running_lock = threading.Lock()
_exit_hook_registered = False


def _prefixed(families: Iterable[Metric], prefix: str) -> List[Metric]:
    if not prefix:
        return list(families)
    result = []
    for family in families:
        metric = Metric(prefix + family.name, family.documentation, family.type, family.unit)
        metric.samples = [
            sample._replace(name=prefix + sample.name) for sample in family.samples
        ]
        result.append(metric)
    return result


class DefaultMetricsCollector:
    """Cached process, platform and GC metrics.

    The collector itself is registered in a registry; the wrapped built-in
    collectors live in a private registry that is never exposed, so their
    values only change on refresh().
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self._sources = CollectorRegistry()
        ProcessCollector(registry=self._sources)
        PlatformCollector(registry=self._sources)
        GCCollector(registry=self._sources)
        self._lock = threading.Lock()
        self._families: List[Metric] = []
        self.timer: Optional["DefaultMetricsTimer"] = None
        self.refresh()

    def refresh(self) -> None:
        families = _prefixed(self._sources.collect(), self.prefix)
        with self._lock:
            self._families = families

    def collect(self) -> List[Metric]:
        with self._lock:
            return list(self._families)

    def describe(self) -> List[Metric]:
        return self.collect()


class DefaultMetricsTimer:
    """Cancelable background refresh of a DefaultMetricsCollector."""

    def __init__(self, collector: DefaultMetricsCollector, interval: float):
        if interval <= 0:
            raise ValueError(f"default metrics interval must be positive, got {interval}")
        self.collector = collector
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name="prometheus-default-metrics",
            daemon=True,
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> "DefaultMetricsTimer":
        _register_exit_hook()
        with _running_lock:
            _running_timers.add(self)
        self._thread.start()
        logger.info(
            "Started default metrics collection every %ss (prefix=%r)",
            self.interval,
            self.collector.prefix,
        )
        return self

    def cancel(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        with _running_lock:
            _running_timers.discard(self)
        logger.info("Stopped default metrics collection (prefix=%r)", self.collector.prefix)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.collector.refresh()
            except Exception:
                logger.exception("Failed to refresh default metrics")


def cancel_all_timers() -> None:
    """Cancel every running default metrics timer."""
    with _running_lock:
        timers = list(_running_timers)
    if timers:
        logger.debug("Process is closing, stop the process metrics collection interval")
    for timer in timers:
        timer.cancel()


def _register_exit_hook() -> None:
    global _exit_hook_registered
    with _running_lock:
        if _exit_hook_registered:
            return
        atexit.register(cancel_all_timers)
        _exit_hook_registered = True

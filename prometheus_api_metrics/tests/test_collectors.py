# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the default process metrics sampler.
"""

import atexit
import threading

import pytest
from prometheus_client import CollectorRegistry

from prometheus_api_metrics import collectors
from prometheus_api_metrics.collectors import (
    DefaultMetricsCollector,
    DefaultMetricsTimer,
    cancel_all_timers,
)


class CountingCollector(DefaultMetricsCollector):
    """Signals every refresh after the initial one."""

    def __init__(self, prefix: str = ""):
        self.refreshes = 0
        self.refreshed = threading.Event()
        super().__init__(prefix)

    def refresh(self) -> None:
        super().refresh()
        self.refreshes += 1
        if self.refreshes > 1:
            self.refreshed.set()


@pytest.mark.unit
class TestDefaultMetricsCollector:
    def test_collects_platform_metrics(self):
        names = {metric.name for metric in DefaultMetricsCollector().collect()}

        assert "python_info" in names

    def test_prefix_applied_to_families_and_samples(self):
        families = DefaultMetricsCollector(prefix="orders_").collect()

        assert families
        for family in families:
            assert family.name.startswith("orders_")
            for sample in family.samples:
                assert sample.name.startswith("orders_")

    def test_registers_in_registry(self):
        registry = CollectorRegistry(auto_describe=True)
        registry.register(DefaultMetricsCollector(prefix="svc_"))

        names = {metric.name for metric in registry.collect()}
        assert "svc_python_info" in names

    def test_builtin_collectors_stay_private(self):
        registry = CollectorRegistry(auto_describe=True)
        registry.register(DefaultMetricsCollector(prefix="svc_"))

        names = {metric.name for metric in registry.collect()}
        assert names
        assert all(name.startswith("svc_") for name in names)
        assert "python_info" not in names

    def test_same_prefix_twice_is_rejected_by_registry(self):
        registry = CollectorRegistry(auto_describe=True)
        registry.register(DefaultMetricsCollector(prefix="svc_"))

        with pytest.raises(ValueError):
            registry.register(DefaultMetricsCollector(prefix="svc_"))


class TestDefaultMetricsTimer:
    def test_refreshes_periodically(self):
        collector = CountingCollector()
        timer = DefaultMetricsTimer(collector, interval=0.01).start()
        try:
            assert collector.refreshed.wait(timeout=5)
        finally:
            timer.cancel()
            timer.join(timeout=1)

        assert not timer.running

    def test_cancel_is_idempotent(self):
        timer = DefaultMetricsTimer(DefaultMetricsCollector(), interval=3600).start()

        timer.cancel()
        timer.cancel()
        timer.join(timeout=1)

        assert not timer.running

    def test_cancel_all_timers(self):
        timers = [
            DefaultMetricsTimer(DefaultMetricsCollector(), interval=3600).start()
            for _ in range(2)
        ]

        cancel_all_timers()

        for timer in timers:
            timer.join(timeout=1)
            assert not timer.running

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            DefaultMetricsTimer(DefaultMetricsCollector(), interval=0)

    def test_refresh_failure_keeps_timer_running(self):
        calls = threading.Event()

        class FailingCollector(DefaultMetricsCollector):
            initialized = False

            def refresh(self):
                if not self.initialized:
                    self.initialized = True
                    return super().refresh()
                calls.set()
                raise RuntimeError("no /proc")

        timer = DefaultMetricsTimer(FailingCollector(), interval=0.01).start()
        try:
            assert calls.wait(timeout=5)
            assert timer.running
        finally:
            timer.cancel()
            timer.join(timeout=1)

    def test_exit_hook_registered_once(self, monkeypatch):
        registered = []
        monkeypatch.setattr(collectors, "_exit_hook_registered", False)
        monkeypatch.setattr(atexit, "register", registered.append)

        timers = [
            DefaultMetricsTimer(DefaultMetricsCollector(), interval=3600).start()
            for _ in range(2)
        ]
        try:
            assert registered == [cancel_all_timers]
        finally:
            for timer in timers:
                timer.cancel()
                timer.join(timeout=1)

"""Tests for microbench.bench.timing — clock and CPU-time capture."""

from __future__ import annotations

import gc
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from microbench.bench.timing import (
    DEFAULT_GC_TRIGGER,
    CpuTimes,
    CpuUsage,
    cpu_delta,
    now_ms,
)


class TestNowMs(unittest.TestCase):
    def test_monotonic(self) -> None:
        a = now_ms()
        b = now_ms()
        self.assertGreaterEqual(b, a)

    def test_milliseconds(self) -> None:
        with patch("microbench.bench.timing.time.perf_counter", return_value=1.5):
            self.assertEqual(now_ms(), 1500.0)


class TestGcTrigger(unittest.TestCase):
    def test_default_is_gc_collect(self) -> None:
        self.assertIs(DEFAULT_GC_TRIGGER, gc.collect)


class TestCpuTimes(unittest.TestCase):
    def test_capture_converts_to_ms(self) -> None:
        usage = SimpleNamespace(ru_utime=1.25, ru_stime=0.5)
        with patch("microbench.bench.timing.resource.getrusage", return_value=usage):
            times = CpuTimes.capture()
        self.assertEqual(times.user_ms, 1250.0)
        self.assertEqual(times.system_ms, 500.0)

    def test_capture_real_process(self) -> None:
        times = CpuTimes.capture()
        self.assertGreaterEqual(times.user_ms, 0.0)
        self.assertGreaterEqual(times.system_ms, 0.0)


class TestCpuDelta(unittest.TestCase):
    def test_delta(self) -> None:
        usage = cpu_delta(CpuTimes(100.0, 20.0), CpuTimes(150.0, 25.0))
        self.assertEqual(usage, CpuUsage(user_ms=50.0, system_ms=5.0))
        self.assertEqual(usage.total_ms, 55.0)

    def test_negative_delta_clamped(self) -> None:
        usage = cpu_delta(CpuTimes(100.0, 20.0), CpuTimes(99.0, 20.0))
        self.assertEqual(usage.user_ms, 0.0)
        self.assertEqual(usage.system_ms, 0.0)


class TestCpuUsageSerialization(unittest.TestCase):
    def test_round_trip(self) -> None:
        usage = CpuUsage(user_ms=12.3456789, system_ms=0.5)
        data = usage.to_dict()
        self.assertEqual(data["user_ms"], 12.3456789)
        self.assertEqual(CpuUsage.from_dict(data).system_ms, 0.5)

"""Tests for per-stage timing."""

import time

import pytest

from airwrite.profiler import StageProfiler


class TestStageProfiler:
    def test_records_stage(self):
        profiler = StageProfiler()
        with profiler.stage("template"):
            time.sleep(0.01)
        summary = profiler.summary()
        assert summary["template"]["calls"] == 1
        assert summary["template"]["avg_ms"] >= 5.0
        assert summary["template"]["p95_ms"] <= summary["template"]["max_ms"]

    def test_window_bounds_samples(self):
        profiler = StageProfiler(window_size=3)
        for _ in range(10):
            with profiler.stage("blend"):
                pass
        assert profiler.calls("blend") == 10
        assert len(profiler._samples["blend"]) == 3

    def test_records_on_error(self):
        profiler = StageProfiler()
        with pytest.raises(RuntimeError):
            with profiler.stage("neural"):
                raise RuntimeError("boom")
        assert profiler.calls("neural") == 1

    def test_disabled(self):
        profiler = StageProfiler(enabled=False)
        with profiler.stage("template"):
            pass
        assert profiler.summary() == {}
        assert profiler.calls("template") == 0

    def test_reset(self):
        profiler = StageProfiler()
        with profiler.stage("template"):
            pass
        profiler.reset()
        assert profiler.summary() == {}

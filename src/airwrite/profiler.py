"""Per-stage timing for recognition passes.

    profiler = StageProfiler()
    with profiler.stage("template"):
        matcher.classify(points)
    profiler.summary()  # {"template": {"avg_ms": ..., "p95_ms": ..., "calls": 1}}
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator

import numpy as np


class StageProfiler:
    """Rolling window of stage durations in milliseconds."""

    def __init__(self, window_size: int = 120, enabled: bool = True):
        self.window_size = window_size
        self.enabled = enabled
        self._samples: dict[str, deque] = {}
        self._calls: dict[str, int] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - t0) * 1000.0
            self._samples.setdefault(name, deque(maxlen=self.window_size)).append(elapsed)
            self._calls[name] = self._calls.get(name, 0) + 1

    def calls(self, name: str) -> int:
        return self._calls.get(name, 0)

    def summary(self) -> dict[str, dict]:
        result = {}
        for name, samples in self._samples.items():
            if not samples:
                continue
            arr = np.fromiter(samples, dtype=np.float64)
            result[name] = {
                "avg_ms": round(float(arr.mean()), 3),
                "max_ms": round(float(arr.max()), 3),
                "p95_ms": round(float(np.percentile(arr, 95)), 3),
                "calls": self._calls[name],
            }
        return result

    def reset(self):
        self._samples.clear()
        self._calls.clear()

"""Helpers for point sources feeding the engine.

The engine expects points that are already smoothed and free of short
tracking gaps. ``StrokeSmoother`` does both for a raw per-frame fingertip
position: an exponential low-pass against the last emitted point, and a
short hold so a few frames of lost tracking or a flickering "pen down"
pose do not split the stroke.
"""

from __future__ import annotations

import math
from typing import Optional

from airwrite.types import Point


class StrokeSmoother:
    """Per-frame filter producing engine-ready points.

    Args:
        smoothing: Weight of the previous point in the low-pass (0 = raw).
        hold_frames: Frames to keep drawing after the pen-down signal drops.
        min_step: Movement below this distance is reported as stationary.
    """

    def __init__(self, smoothing: float = 0.45, hold_frames: int = 8, min_step: float = 5.0):
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        self.smoothing = smoothing
        self.hold_frames = hold_frames
        self.min_step = min_step
        self._last: Optional[Point] = None
        self._hold = 0
        self.last_movement_ms: Optional[int] = None

    def update(
        self,
        x: Optional[float],
        y: Optional[float],
        timestamp_ms: int,
        pen_down: bool = True,
    ) -> Optional[Point]:
        """Feed one frame. Returns a point to submit, or None.

        Pass ``x``/``y`` as None for a frame where tracking was lost.
        """
        tracked = x is not None and y is not None
        if pen_down and tracked:
            self._hold = self.hold_frames
        else:
            if self._hold > 0:
                self._hold -= 1
            if self._hold == 0 or not tracked:
                return None

        if self._last is not None:
            a = self.smoothing
            x = self._last.x * a + x * (1 - a)
            y = self._last.y * a + y * (1 - a)
            if math.hypot(x - self._last.x, y - self._last.y) > self.min_step:
                self.last_movement_ms = timestamp_ms
        else:
            self.last_movement_ms = timestamp_ms

        point = Point(x, y, timestamp_ms)
        self._last = point
        return point

    @property
    def drawing(self) -> bool:
        return self._hold > 0

    def reset(self):
        self._last = None
        self._hold = 0
        self.last_movement_ms = None

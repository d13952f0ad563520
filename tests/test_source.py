"""Tests for the per-frame stroke smoother."""

import pytest

from airwrite.source import StrokeSmoother
from airwrite.types import Point


class TestStrokeSmoother:
    def test_first_point_passes_through(self):
        s = StrokeSmoother()
        assert s.update(10, 20, 0) == Point(10, 20, 0)
        assert s.drawing

    def test_low_pass(self):
        s = StrokeSmoother(smoothing=0.5)
        s.update(0, 0, 0)
        p = s.update(10, 20, 16)
        assert (p.x, p.y) == pytest.approx((5, 10))

    def test_no_smoothing(self):
        s = StrokeSmoother(smoothing=0.0)
        s.update(0, 0, 0)
        assert s.update(10, 20, 16) == Point(10, 20, 16)

    def test_pen_up_is_held_briefly(self):
        s = StrokeSmoother(smoothing=0.0, hold_frames=2)
        s.update(0, 0, 0)
        assert s.update(5, 5, 16, pen_down=False) is not None
        assert s.update(6, 6, 32, pen_down=False) is None
        assert not s.drawing

    def test_lost_tracking_emits_nothing(self):
        s = StrokeSmoother(hold_frames=3)
        s.update(0, 0, 0)
        assert s.update(None, None, 16) is None
        assert s.drawing
        assert s.update(1, 1, 32) is not None

    def test_pen_up_from_rest(self):
        s = StrokeSmoother()
        assert s.update(5, 5, 0, pen_down=False) is None
        assert not s.drawing

    def test_last_movement(self):
        s = StrokeSmoother(smoothing=0.0, min_step=5.0)
        s.update(0, 0, 0)
        s.update(1, 1, 16)
        assert s.last_movement_ms == 0
        s.update(20, 0, 32)
        assert s.last_movement_ms == 32

    def test_reset(self):
        s = StrokeSmoother(smoothing=0.5)
        s.update(0, 0, 0)
        s.reset()
        assert not s.drawing
        assert s.last_movement_ms is None
        assert s.update(10, 10, 50) == Point(10, 10, 50)

    def test_invalid_smoothing(self):
        with pytest.raises(ValueError):
            StrokeSmoother(smoothing=1.0)

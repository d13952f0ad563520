"""Tests for stroke normalization: resample, rotate, scale, translate."""

import math

import numpy as np
import pytest

from airwrite.normalizer import (
    NUM_POINTS,
    REFERENCE_SIZE,
    centroid,
    indicative_angle,
    normalize,
    path_length,
    resample,
    rotate_by,
    scale_to,
)
from airwrite.stroke import stroke_from_xy
from airwrite.templates import default_library
from airwrite.types import Point


def densify(path, per_segment=10):
    """Linearly interpolate a polyline into many raw points."""
    pts = []
    for (x0, y0), (x1, y1) in zip(path[:-1], path[1:]):
        for t in np.linspace(0.0, 1.0, per_segment, endpoint=False):
            pts.append((x0 + t * (x1 - x0), y0 + t * (y1 - y0)))
    pts.append(path[-1])
    return stroke_from_xy(pts)


def circle(n=48, r=60.0, cx=200.0, cy=200.0):
    return stroke_from_xy([
        (cx + r * math.cos(2 * math.pi * i / n), cy + r * math.sin(2 * math.pi * i / n))
        for i in range(n + 1)
    ])


def rotated(points, angle, about=(0.0, 0.0)):
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    ox, oy = about
    out = []
    for p in points:
        dx, dy = p.x - ox, p.y - oy
        out.append(Point(ox + dx * cos_a - dy * sin_a, oy + dx * sin_a + dy * cos_a, p.timestamp_ms))
    return out


class TestResample:
    def test_output_length(self):
        for n_in in (2, 5, 17, 200):
            xy = [(i * 3.0, (i % 4) * 10.0) for i in range(n_in)]
            assert resample(stroke_from_xy(xy)).shape == (NUM_POINTS, 2)

    def test_custom_length(self):
        assert resample(stroke_from_xy([(0, 0), (10, 10)]), n=16).shape == (16, 2)

    def test_even_spacing_on_line(self):
        out = resample(stroke_from_xy([(0, 0), (100, 0)]))
        steps = np.linalg.norm(np.diff(out, axis=0), axis=1)
        np.testing.assert_allclose(steps, 100.0 / (NUM_POINTS - 1), atol=1e-9)

    def test_keeps_endpoints(self):
        out = resample(stroke_from_xy([(0, 0), (50, 0), (50, 80)]))
        np.testing.assert_allclose(out[0], [0, 0])
        np.testing.assert_allclose(out[-1], [50, 80], atol=1e-6)

    def test_preserves_path_length(self):
        pts = circle()
        raw = path_length(np.array([[p.x, p.y] for p in pts]))
        assert path_length(resample(pts)) == pytest.approx(raw, rel=0.01)

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            resample([])

    def test_single_point_tiles(self):
        out = resample([Point(3, 4)])
        assert out.shape == (NUM_POINTS, 2)
        assert np.all(out == [3, 4])

    def test_zero_length_stroke_tiles(self):
        out = resample([Point(7, 7, t) for t in range(10)])
        assert out.shape == (NUM_POINTS, 2)
        assert np.all(out == [7, 7])

    def test_accepts_arrays(self):
        out = resample(np.array([[0, 0], [10, 0], [10, 10]]))
        assert out.shape == (NUM_POINTS, 2)


class TestTransforms:
    def test_rotate_about_centroid(self):
        pts = np.array([[0.0, 0.0], [10.0, 0.0]])
        out = rotate_by(pts, math.pi / 2)
        np.testing.assert_allclose(centroid(out), centroid(pts), atol=1e-12)
        np.testing.assert_allclose(out, [[5, -5], [5, 5]], atol=1e-12)

    def test_indicative_angle(self):
        pts = np.array([[0.0, 0.0], [10.0, 10.0]])
        assert indicative_angle(pts) == pytest.approx(math.pi / 4)

    def test_scale_is_per_axis(self):
        pts = np.array([[0.0, 0.0], [10.0, 50.0], [20.0, 5.0]])
        span = np.ptp(scale_to(pts), axis=0)
        np.testing.assert_allclose(span, [REFERENCE_SIZE, REFERENCE_SIZE])

    def test_scale_skips_flat_axis(self):
        pts = np.array([[0.0, 4.0], [10.0, 4.0]])
        out = scale_to(pts)
        np.testing.assert_allclose(out[:, 1], [4.0, 4.0])
        assert np.ptp(out[:, 0]) == pytest.approx(REFERENCE_SIZE)


class TestNormalize:
    def test_shape_and_centroid(self):
        out = normalize(densify([(0, 0), (0, 100), (50, 100)]))
        assert out.shape == (NUM_POINTS, 2)
        np.testing.assert_allclose(centroid(out), [0, 0], atol=1e-9)

    def test_extents_match_reference_size(self):
        out = normalize(densify([(0, 0), (0, 100), (50, 100)]))
        np.testing.assert_allclose(np.ptp(out, axis=0), [REFERENCE_SIZE, REFERENCE_SIZE], atol=1e-6)

    def test_first_point_faces_centroid(self):
        out = normalize(circle())
        assert indicative_angle(out) == pytest.approx(0.0, abs=1e-6)

    def test_straight_line_does_not_blow_up(self):
        out = normalize(stroke_from_xy([(100, y) for y in range(0, 200, 10)]))
        assert np.all(np.isfinite(out))
        assert np.ptp(out[:, 1]) < 1e-6
        assert np.ptp(out[:, 0]) == pytest.approx(REFERENCE_SIZE)

    def test_identical_points(self):
        out = normalize([Point(5, 5, t) for t in range(6)])
        assert np.all(np.isfinite(out))
        np.testing.assert_allclose(out, 0.0)

    def test_idempotent_on_line_template(self):
        template = default_library().variants("I")[0]
        np.testing.assert_allclose(normalize(template.points), template.points, atol=1e-6)

    def test_idempotent_on_circle(self):
        once = normalize(circle(n=200))
        twice = normalize(once)
        np.testing.assert_allclose(twice, once, atol=2.0)

    @pytest.mark.parametrize("angle_deg", [-40, -15, 10, 30, 90, 170])
    def test_rotation_invariant(self, angle_deg):
        for pts in (densify([(0, 0), (0, 100), (50, 100)]),
                    densify([(50, 0), (0, 25), (50, 75), (0, 100)]),
                    circle()):
            turned = rotated(pts, math.radians(angle_deg), about=(25, 50))
            np.testing.assert_allclose(normalize(turned), normalize(pts), atol=1e-6)

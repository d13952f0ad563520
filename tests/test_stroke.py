"""Tests for the stroke buffer and stroke files."""

import json
import logging

import pytest

from airwrite.stroke import StrokeBuffer, load_stroke, stroke_from_xy
from airwrite.types import BoundingBox, Point


class TestStrokeBuffer:
    def test_append_in_order(self):
        buf = StrokeBuffer()
        assert buf.append(Point(0, 0, 10))
        assert buf.append(Point(1, 1, 10))  # equal timestamps are fine
        assert buf.append(Point(2, 2, 20))
        assert len(buf) == 3
        assert buf[-1] == Point(2, 2, 20)

    def test_out_of_order_dropped(self, caplog):
        buf = StrokeBuffer([Point(0, 0, 100)])
        with caplog.at_level(logging.WARNING, logger="airwrite.stroke"):
            assert not buf.append(Point(5, 5, 50))
        assert len(buf) == 1
        assert "out-of-order" in caplog.text

    def test_extend_counts_accepted(self):
        buf = StrokeBuffer()
        kept = buf.extend([Point(0, 0, 0), Point(1, 0, 20), Point(2, 0, 10), Point(3, 0, 30)])
        assert kept == 3
        assert [p.x for p in buf] == [0, 1, 3]

    def test_points_is_snapshot(self):
        buf = StrokeBuffer([Point(0, 0, 0)])
        snapshot = buf.points
        buf.append(Point(1, 1, 1))
        assert len(snapshot) == 1
        assert isinstance(snapshot, tuple)

    def test_clear(self):
        buf = StrokeBuffer(stroke_from_xy([(0, 0), (1, 1)]))
        buf.clear()
        assert len(buf) == 0
        assert buf.duration_ms == 0

    def test_geometry(self):
        buf = StrokeBuffer(stroke_from_xy([(0, 0), (3, 4), (3, 10)], step_ms=10))
        assert buf.bounding_box() == BoundingBox(0, 3, 0, 10)
        assert buf.path_length() == pytest.approx(11.0)
        assert buf.duration_ms == 20
        assert buf.as_array().shape == (3, 2)

    def test_empty_geometry(self):
        buf = StrokeBuffer()
        assert buf.path_length() == 0.0
        assert buf.bounding_box().width == 0
        assert buf.as_array().shape == (0, 2)


class TestStrokeFiles:
    def test_load_dicts(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps([{"x": 1, "y": 2, "t": 5}, {"x": 3, "y": 4, "t": 21}]))
        assert load_stroke(path) == [Point(1, 2, 5), Point(3, 4, 21)]

    def test_load_triples_and_pairs(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"points": [[1, 2, 5], [3, 4]]}))
        assert load_stroke(path) == [Point(1, 2, 5), Point(3, 4, 0)]

    def test_malformed_point(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps([[1, 2, 3, 4]]))
        with pytest.raises(ValueError):
            load_stroke(path)

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps("nope"))
        with pytest.raises(ValueError):
            load_stroke(path)

    def test_stroke_from_xy_timing(self):
        pts = stroke_from_xy([(0, 0), (1, 1), (2, 2)], start_ms=100, step_ms=16)
        assert [p.timestamp_ms for p in pts] == [100, 116, 132]

    def test_point_dict_round_trip(self):
        p = Point(1.5, -2.0, 40)
        assert Point.from_dict(p.to_dict()) == p

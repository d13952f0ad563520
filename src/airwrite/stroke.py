"""Point stream buffer for the gesture currently being drawn."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import numpy as np

from airwrite.types import BoundingBox, Point, points_to_array

logger = logging.getLogger("airwrite.stroke")


class StrokeBuffer:
    """Ordered, append-only sequence of timestamped points.

    Points are expected with non-decreasing timestamps. A point older than
    the last accepted one is dropped with a warning instead of reordering
    the stroke.
    """

    def __init__(self, points: Iterable[Point] = ()):
        self._points: list[Point] = []
        self.extend(points)

    def append(self, point: Point) -> bool:
        """Append a point. Returns False if it was rejected as out of order."""
        if self._points and point.timestamp_ms < self._points[-1].timestamp_ms:
            logger.warning(
                "Dropping out-of-order point at t=%d (last t=%d)",
                point.timestamp_ms, self._points[-1].timestamp_ms,
            )
            return False
        self._points.append(point)
        return True

    def extend(self, points: Iterable[Point]) -> int:
        """Append many points. Returns how many were accepted."""
        return sum(1 for p in points if self.append(p))

    def clear(self):
        self._points.clear()

    @property
    def points(self) -> tuple[Point, ...]:
        return tuple(self._points)

    def bounding_box(self) -> BoundingBox:
        return BoundingBox.of(self._points)

    def as_array(self) -> np.ndarray:
        return points_to_array(self._points)

    def path_length(self) -> float:
        if len(self._points) < 2:
            return 0.0
        arr = self.as_array()
        return float(np.sum(np.linalg.norm(np.diff(arr, axis=0), axis=1)))

    @property
    def duration_ms(self) -> int:
        if not self._points:
            return 0
        return self._points[-1].timestamp_ms - self._points[0].timestamp_ms

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    def __getitem__(self, index):
        return self._points[index]


def load_stroke(path: str | Path) -> list[Point]:
    """Load a stroke file.

    Accepts a JSON list of ``{"x", "y", "t"}`` objects or ``[x, y, t]``
    triples, or an object with a ``"points"`` key holding such a list.
    """
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict):
        data = data.get("points", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of points")

    points = []
    for i, entry in enumerate(data):
        if isinstance(entry, dict):
            points.append(Point.from_dict(entry))
        elif isinstance(entry, (list, tuple)) and len(entry) in (2, 3):
            t = int(entry[2]) if len(entry) == 3 else 0
            points.append(Point(float(entry[0]), float(entry[1]), t))
        else:
            raise ValueError(f"{path}: point {i} is malformed: {entry!r}")
    return points


def stroke_from_xy(
    xy: Sequence[Sequence[float]], start_ms: int = 0, step_ms: int = 16
) -> list[Point]:
    """Build evenly-timed points from bare coordinates."""
    return [
        Point(float(x), float(y), start_ms + i * step_ms)
        for i, (x, y) in enumerate(xy)
    ]

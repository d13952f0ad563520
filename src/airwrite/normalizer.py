"""Geometric normalization of strokes into a canonical 64-point form.

Pipeline: resample → rotate to indicative angle → scale → translate.

Scaling is anisotropic: each axis is stretched to the reference size on its
own, so aspect ratio is not preserved. Template distances are calibrated
against this, so do not switch to uniform scaling without recalibrating
the matcher.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

from airwrite.types import Point, points_to_array

NUM_POINTS = 64
REFERENCE_SIZE = 250.0
_EPS = 1e-8

StrokeLike = Union[Sequence[Point], np.ndarray]


def as_array(points: StrokeLike) -> np.ndarray:
    """Coerce points or an (N, 2) array into a float64 array."""
    if isinstance(points, np.ndarray):
        return points.astype(np.float64).reshape(-1, 2)
    return points_to_array(points)


def path_length(pts: np.ndarray) -> float:
    if len(pts) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def centroid(pts: np.ndarray) -> np.ndarray:
    return pts.mean(axis=0)


def resample(points: StrokeLike, n: int = NUM_POINTS) -> np.ndarray:
    """Resample a polyline to ``n`` points evenly spaced along its path.

    Interpolated points are inserted back into the walk so the next segment
    starts from them. Degenerate strokes (no length) become ``n`` copies of
    their first point.
    """
    pts = as_array(points)
    if len(pts) == 0:
        raise ValueError("cannot resample an empty stroke")

    total = path_length(pts)
    if len(pts) < 2 or total < _EPS:
        return np.tile(pts[0], (n, 1))

    interval = total / (n - 1)
    walk = [tuple(p) for p in pts]
    out = [walk[0]]
    acc = 0.0
    i = 1
    while i < len(walk):
        (x0, y0), (x1, y1) = walk[i - 1], walk[i]
        d = math.hypot(x1 - x0, y1 - y0)
        if d > 0 and acc + d >= interval:
            t = (interval - acc) / d
            q = (x0 + t * (x1 - x0), y0 + t * (y1 - y0))
            out.append(q)
            walk.insert(i, q)
            acc = 0.0
        else:
            acc += d
        i += 1

    # Rounding can leave the walk one slot short.
    if len(out) == n - 1:
        out.append(walk[-1])
    out = out[:n]
    while len(out) < n:
        out.append(walk[-1])
    return np.array(out, dtype=np.float64)


def indicative_angle(pts: np.ndarray) -> float:
    """Angle from the first point to the centroid."""
    c = centroid(pts)
    return math.atan2(c[1] - pts[0, 1], c[0] - pts[0, 0])


def rotate_by(pts: np.ndarray, angle: float) -> np.ndarray:
    """Rotate about the centroid by ``angle`` radians."""
    c = centroid(pts)
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    rel = pts - c
    rotated = np.empty_like(rel)
    rotated[:, 0] = rel[:, 0] * cos_a - rel[:, 1] * sin_a
    rotated[:, 1] = rel[:, 0] * sin_a + rel[:, 1] * cos_a
    return rotated + c


def scale_to(pts: np.ndarray, size: float = REFERENCE_SIZE) -> np.ndarray:
    """Stretch each axis independently to ``size``."""
    span = pts.max(axis=0) - pts.min(axis=0)
    factor = np.where(span < _EPS, 1.0, size / np.where(span < _EPS, 1.0, span))
    return pts * factor


def translate_to_origin(pts: np.ndarray) -> np.ndarray:
    return pts - centroid(pts)


def normalize(
    points: StrokeLike, n: int = NUM_POINTS, size: float = REFERENCE_SIZE
) -> np.ndarray:
    """Full normalization. Returns an (n, 2) array."""
    pts = resample(points, n)
    pts = rotate_by(pts, -indicative_angle(pts))
    pts = scale_to(pts, size)
    return translate_to_origin(pts)

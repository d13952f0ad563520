"""Rule-based letter detectors over raw stroke geometry.

Each detector looks at the un-normalized stroke (screen units, y grows
downward) and returns either 0 or a fixed confidence for its letter. The
constants are hand-calibrated; the blending thresholds are tuned against
them, so change them together.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from airwrite.types import (
    BoundingBox,
    ClassificationCandidate,
    Point,
    StrokeClassifier,
    points_to_array,
    rank_candidates,
)

MIN_POINTS = 5
CLOSED_DISTANCE = 40.0


@dataclass
class StrokeShape:
    """Raw stroke plus its bounding box, shared by all detectors."""
    xy: np.ndarray
    box: BoundingBox

    @classmethod
    def of(cls, xy: np.ndarray) -> StrokeShape:
        if len(xy) == 0:
            return cls(xy, BoundingBox(0.0, 0.0, 0.0, 0.0))
        lo, hi = xy.min(axis=0), xy.max(axis=0)
        return cls(xy, BoundingBox(float(lo[0]), float(hi[0]), float(lo[1]), float(hi[1])))

    @property
    def x(self) -> np.ndarray:
        return self.xy[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.xy[:, 1]

    @property
    def width(self) -> float:
        return self.box.width

    @property
    def height(self) -> float:
        return self.box.height

    @property
    def mid_x(self) -> float:
        return self.box.center[0]

    @property
    def mid_y(self) -> float:
        return self.box.center[1]


# --- Shape sensors --------------------------------------------------------

def _span(values: np.ndarray, default: float = 0.0) -> float:
    return float(np.ptp(values)) if len(values) else default


def vertical_deviation(xy: np.ndarray) -> float:
    """Mean horizontal wobble relative to the stroke width (0 = plumb)."""
    if len(xy) == 0:
        return 1.0
    xs = xy[:, 0]
    dev = float(np.mean(np.abs(xs - xs.mean())))
    return dev / (_span(xs) + 20.0)


def is_closed(xy: np.ndarray, threshold: float = CLOSED_DISTANCE) -> bool:
    if len(xy) < 8:
        return False
    return float(np.linalg.norm(xy[-1] - xy[0])) < threshold


def is_loop(xy: np.ndarray, box: BoundingBox) -> bool:
    """Stroke visits at least three quadrants around the box center."""
    if len(xy) < 5:
        return False
    cx, cy = box.center
    left, top = xy[:, 0] < cx, xy[:, 1] < cy
    quadrants = [
        np.any(left & top),
        np.any(~left & top),
        np.any(~left & ~top),
        np.any(left & ~top),
    ]
    return sum(bool(q) for q in quadrants) >= 3


def is_region_loop(xy: np.ndarray) -> bool:
    """Loop test for part of a stroke, against that part's own box."""
    return is_loop(xy, StrokeShape.of(xy).box)


def is_arc(xy: np.ndarray, box: BoundingBox) -> bool:
    """Mass is lopsided to one side of the vertical center line."""
    cx = box.center[0]
    left = int(np.sum(xy[:, 0] < cx))
    right = len(xy) - left
    return abs(left - right) > len(xy) * 0.2


def has_triangular_top(xy: np.ndarray, box: BoundingBox) -> bool:
    top = xy[xy[:, 1] < box.min_y + box.height / 3]
    if len(top) < 2:
        return False
    return abs(float(top[:, 0].mean()) - box.center[0]) < 30


def has_v_bottom(xy: np.ndarray, box: BoundingBox) -> bool:
    bottom = xy[xy[:, 1] > box.max_y - 25]
    if len(bottom) < 2:
        return False
    return abs(float(bottom[:, 0].mean()) - box.center[0]) < 35


def count_near_bottom(xy: np.ndarray, box: BoundingBox, band: float = 30.0) -> int:
    return int(np.sum(xy[:, 1] > box.max_y - band))


def count_reversals(values: np.ndarray, lag: int, min_delta: float) -> int:
    """Direction changes of ``values`` measured over ``lag`` samples."""
    reversals = 0
    last = 0
    for i in range(lag, len(values)):
        delta = values[i] - values[i - lag]
        if abs(delta) > min_delta:
            direction = 1 if delta > 0 else -1
            if last != 0 and direction != last:
                reversals += 1
            last = direction
    return reversals


def find_extrema(ys: np.ndarray, peaks: bool) -> list[int]:
    """Indices of local y minima (peaks) or maxima (valleys), ±4 samples apart."""
    found = []
    i = 5
    while i < len(ys) - 5:
        if peaks:
            hit = ys[i] < ys[i - 4] and ys[i] < ys[i + 4]
        else:
            hit = ys[i] > ys[i - 4] and ys[i] > ys[i + 4]
        if hit:
            found.append(i)
            i += 8
        i += 1
    return found


def count_valleys(xy: np.ndarray, threshold: float = 0.3) -> int:
    """Count valleys deeper than ``threshold`` times the stroke height."""
    if len(xy) == 0:
        return 0
    ys = xy[:, 1]
    height = _span(ys)
    valleys = 0
    i = 5
    while i < len(ys) - 5:
        if ys[i] > ys[i - 4] and ys[i] > ys[i + 4]:
            depth = ys[i] - max(float(ys[:i].min()), float(ys[i:].min()))
            if depth > height * threshold:
                valleys += 1
                i += 8
        i += 1
    return valleys


def linearity(xy: np.ndarray) -> float:
    """Chord-to-path ratio averaged over both halves (1 = straight)."""
    if len(xy) < 4:
        return 1.0
    mid = len(xy) // 2
    seg = np.linalg.norm(np.diff(xy, axis=0), axis=1)
    chord1 = float(np.linalg.norm(xy[mid] - xy[0]))
    chord2 = float(np.linalg.norm(xy[-1] - xy[mid]))
    path1 = float(seg[:mid].sum())
    path2 = float(seg[mid:].sum())
    return (chord1 / (path1 + 0.1) + chord2 / (path2 + 0.1)) / 2


# --- Detectors ------------------------------------------------------------

Detector = Callable[[StrokeShape], float]
DETECTORS: dict[str, Detector] = {}


def detector(label: str):
    """Register a detector for ``label``."""
    def decorator(fn: Detector) -> Detector:
        DETECTORS[label] = fn
        return fn
    return decorator


@detector("A")
def _detect_a(s: StrokeShape) -> float:
    top = s.xy[s.y < s.box.min_y + s.height / 3]
    bottom = s.xy[s.y > s.box.max_y - s.height / 3]
    top_w = _span(top[:, 0], default=s.width)
    bottom_w = _span(bottom[:, 0])
    if s.height > 50 and bottom_w > top_w * 1.5 and has_triangular_top(s.xy, s.box):
        if count_valleys(s.xy, 0.4) == 0 and linearity(s.xy) > 0.7:
            return 0.92
    return 0.0


@detector("B")
def _detect_b(s: StrokeShape) -> float:
    if s.height < 40:
        return 0.0
    upper = s.xy[s.y < s.mid_y]
    lower = s.xy[s.y > s.mid_y]
    if is_region_loop(upper) and is_region_loop(lower):
        return 0.81
    return 0.0


@detector("C")
def _detect_c(s: StrokeShape) -> float:
    if is_arc(s.xy, s.box) and not is_closed(s.xy):
        return 0.82
    return 0.0


@detector("D")
def _detect_d(s: StrokeShape) -> float:
    if is_closed(s.xy) and s.width > 30:
        return 0.79
    return 0.0


def _bar_counts(s: StrokeShape) -> tuple[int, int, int]:
    """Points right of center in the top, middle and bottom bands."""
    right = s.x > s.mid_x
    h, top = s.height, s.box.min_y
    top_bar = int(np.sum(right & (s.y < top + h * 0.2)))
    mid_bar = int(np.sum(right & (s.y > top + h * 0.4) & (s.y < top + h * 0.6)))
    bottom_bar = int(np.sum(right & (s.y > s.box.max_y - h * 0.2)))
    return top_bar, mid_bar, bottom_bar


@detector("E")
def _detect_e(s: StrokeShape) -> float:
    if s.height < 50 or s.width < 30:
        return 0.0
    top_bar, mid_bar, bottom_bar = _bar_counts(s)
    if top_bar > 2 and mid_bar > 1 and bottom_bar > 2:
        return 0.85
    return 0.0


@detector("F")
def _detect_f(s: StrokeShape) -> float:
    if s.height < 50 or s.width < 30:
        return 0.0
    top_bar, mid_bar, bottom_bar = _bar_counts(s)
    if top_bar > 2 and mid_bar > 1 and bottom_bar < 2:
        return 0.84
    return 0.0


@detector("G")
def _detect_g(s: StrokeShape) -> float:
    if is_arc(s.xy, s.box) and not is_closed(s.xy):
        tail = s.xy[-10:]
        inward = (tail[:, 0] < s.box.max_x - 10) & (tail[:, 1] < s.box.max_y - 10)
        if np.any(inward):
            return 0.82
    return 0.0


@detector("H")
def _detect_h(s: StrokeShape) -> float:
    if s.width < 40 or s.height < 50:
        return 0.0
    crossbar = s.xy[np.abs(s.y - s.mid_y) < 15]
    if len(crossbar) >= 3 and _span(crossbar[:, 0]) > s.width * 0.6:
        return 0.83
    return 0.0


@detector("I")
def _detect_i(s: StrokeShape) -> float:
    dev = vertical_deviation(s.xy)
    if s.height > 30 and s.height / (s.width + 1) > 2.0 and dev < 0.3:
        return min(0.96, max(0.75, 0.75 + s.height / 400 + (0.1 - dev)))
    return 0.0


@detector("J")
def _detect_j(s: StrokeShape) -> float:
    bottom = s.xy[s.y > s.box.max_y - 30]
    bottom_left = int(np.sum(bottom[:, 0] < s.box.min_x + s.width / 2))
    if bottom_left > 2 and s.height > 40:
        return 0.81
    return 0.0


@detector("K")
def _detect_k(s: StrokeShape) -> float:
    if s.height < 50 or s.width < 30:
        return 0.0
    spine = int(np.sum(s.x < s.box.min_x + 20))
    arms = int(np.sum(s.x > s.mid_x))
    if spine > 5 and arms > 4:
        return 0.80
    return 0.0


@detector("L")
def _detect_l(s: StrokeShape) -> float:
    if s.height > 50 and s.width > 30 and count_near_bottom(s.xy, s.box) > 3:
        return 0.83
    return 0.0


@detector("M")
def _detect_m(s: StrokeShape) -> float:
    peaks = find_extrema(s.y, peaks=True)
    if len(peaks) >= 2 and s.width > 40:
        spread = abs(float(s.x[peaks[-1]] - s.x[peaks[0]]))
        if count_valleys(s.xy) >= 1 and spread > s.width * 0.4:
            return 0.89
    return 0.0


@detector("N")
def _detect_n(s: StrokeShape) -> float:
    if s.height < 50 or s.width < 30:
        return 0.0
    if count_reversals(s.y, lag=2, min_delta=5) >= 1:
        return 0.82
    return 0.0


@detector("O")
def _detect_o(s: StrokeShape) -> float:
    short_side = min(s.width, s.height)
    if short_side <= 0:
        return 0.0
    aspect = max(s.width, s.height) / short_side
    if is_closed(s.xy) and is_loop(s.xy, s.box) and aspect < 1.6 and s.width > 40:
        return 0.88
    return 0.0


@detector("P")
def _detect_p(s: StrokeShape) -> float:
    if is_region_loop(s.xy[s.y < s.mid_y]) and s.height > 50:
        return 0.84
    return 0.0


@detector("Q")
def _detect_q(s: StrokeShape) -> float:
    if is_loop(s.xy, s.box):
        tail = s.xy[-10:]
        if np.any((tail[:, 1] > s.box.max_y - 15) & (tail[:, 0] > s.mid_x)):
            return 0.81
    return 0.0


@detector("R")
def _detect_r(s: StrokeShape) -> float:
    lower = s.xy[s.y >= s.mid_y]
    has_leg = bool(np.any(lower[:, 0] > s.mid_x))
    if is_region_loop(s.xy[s.y < s.mid_y]) and has_leg:
        return 0.83
    return 0.0


@detector("S")
def _detect_s(s: StrokeShape) -> float:
    if s.height < 50 or s.width < 30:
        return 0.0
    if count_reversals(s.x, lag=2, min_delta=5) >= 2 and s.height > s.width * 0.8:
        return 0.90
    return 0.0


@detector("T")
def _detect_t(s: StrokeShape) -> float:
    top = s.xy[s.y < s.box.min_y + s.height * 0.25]
    if len(top) < 5:
        return 0.0
    has_bar = int(np.sum(s.y < s.box.min_y + 25)) > 5
    if _span(top[:, 0]) > s.width * 0.6 and s.height > s.width * 0.7 and has_bar:
        return 0.84
    return 0.0


@detector("U")
def _detect_u(s: StrokeShape) -> float:
    if count_near_bottom(s.xy, s.box) > 5 and not is_closed(s.xy):
        return 0.80
    return 0.0


@detector("V")
def _detect_v(s: StrokeShape) -> float:
    if s.height < 40 or s.width < 30:
        return 0.0
    if has_v_bottom(s.xy, s.box):
        return 0.81
    return 0.0


@detector("W")
def _detect_w(s: StrokeShape) -> float:
    if len(find_extrema(s.y, peaks=False)) >= 2:
        return 0.85
    return 0.0


@detector("X")
def _detect_x(s: StrokeShape) -> float:
    if s.width < 40 or s.height < 40:
        return 0.0
    if count_reversals(s.x, lag=5, min_delta=10) >= 1:
        return 0.84
    return 0.0


@detector("Y")
def _detect_y(s: StrokeShape) -> float:
    upper = s.xy[s.y < s.mid_y]
    lower = s.xy[s.y > s.mid_y]
    if len(upper) == 0 or len(lower) == 0:
        return 0.0
    if _span(upper[:, 0]) > _span(lower[:, 0]) * 2 and s.height > 50:
        return 0.82
    return 0.0


@detector("Z")
def _detect_z(s: StrokeShape) -> float:
    if s.height < 40:
        return 0.0
    if count_reversals(s.x, lag=5, min_delta=10) >= 2:
        return 0.85
    return 0.0


class HeuristicClassifier(StrokeClassifier):
    """Runs every registered detector and ranks the ones that fire."""

    name = "heuristic"

    def __init__(
        self,
        detectors: Optional[dict[str, Detector]] = None,
        min_points: int = MIN_POINTS,
    ):
        self.detectors = dict(detectors if detectors is not None else DETECTORS)
        self.min_points = min_points

    def scores(self, points: Sequence[Point]) -> dict[str, float]:
        """Raw per-letter scores, including zeros."""
        shape = StrokeShape.of(points_to_array(points))
        results = {}
        for label, fn in self.detectors.items():
            score = fn(shape)
            results[label] = score if math.isfinite(score) else 0.0
        return results

    def classify(self, points: Sequence[Point]) -> list[ClassificationCandidate]:
        if len(points) < self.min_points:
            return []
        return rank_candidates([
            ClassificationCandidate(label, score)
            for label, score in self.scores(points).items()
        ])

"""Rotation-searching template matcher.

For each template the query is rotated within ±45° to minimize the average
pointwise distance, using golden-section search over the angle.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from airwrite.normalizer import REFERENCE_SIZE, normalize, rotate_by
from airwrite.templates import TemplateLibrary, default_library
from airwrite.types import ClassificationCandidate, Point, StrokeClassifier

PHI = 0.5 * (-1.0 + math.sqrt(5.0))
ANGLE_RANGE = math.radians(45.0)
ANGLE_PRECISION = math.radians(2.0)
MIN_POINTS = 5


def path_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Mean Euclidean distance between corresponding points."""
    return float(np.mean(np.linalg.norm(a - b, axis=1)))


def distance_at_angle(query: np.ndarray, template: np.ndarray, angle: float) -> float:
    return path_distance(rotate_by(query, angle), template)


def distance_at_best_angle(
    query: np.ndarray,
    template: np.ndarray,
    a: float = -ANGLE_RANGE,
    b: float = ANGLE_RANGE,
    threshold: float = ANGLE_PRECISION,
) -> float:
    """Golden-section search for the minimal distance over [a, b]."""
    x1 = PHI * a + (1.0 - PHI) * b
    f1 = distance_at_angle(query, template, x1)
    x2 = (1.0 - PHI) * a + PHI * b
    f2 = distance_at_angle(query, template, x2)

    while abs(b - a) > threshold:
        if f1 < f2:
            b = x2
            x2, f2 = x1, f1
            x1 = PHI * a + (1.0 - PHI) * b
            f1 = distance_at_angle(query, template, x1)
        else:
            a = x1
            x1, f1 = x2, f2
            x2 = (1.0 - PHI) * a + PHI * b
            f2 = distance_at_angle(query, template, x2)

    return min(f1, f2)


class TemplateMatcher(StrokeClassifier):
    """Scores a stroke against every template in a library.

    Only the best variant per label is reported. Labels are ranked by score;
    equal scores keep library order.
    """

    name = "template"

    def __init__(
        self,
        library: Optional[TemplateLibrary] = None,
        size: float = REFERENCE_SIZE,
        min_points: int = MIN_POINTS,
    ):
        self.library = library or default_library()
        self.size = size
        self.min_points = min_points
        self._half_diagonal = 0.5 * math.sqrt(2.0 * size * size)

    def score(self, distance: float) -> float:
        return max(0.0, 1.0 - distance / self._half_diagonal)

    def match_all(self, normalized: np.ndarray) -> list[ClassificationCandidate]:
        """Rank labels for an already-normalized (64, 2) query."""
        best: dict[str, float] = {}
        for template in self.library:
            d = distance_at_best_angle(normalized, template.points)
            s = self.score(d)
            if template.label not in best or best[template.label] < s:
                best[template.label] = s

        candidates = [ClassificationCandidate(label, s) for label, s in best.items()]
        candidates.sort(key=lambda c: c.confidence, reverse=True)
        return candidates

    def classify(self, points: Sequence[Point]) -> list[ClassificationCandidate]:
        if len(points) < self.min_points:
            return []
        return self.match_all(normalize(points, size=self.size))

    def recognize(self, points: Sequence[Point]) -> Optional[ClassificationCandidate]:
        """Best single candidate, or None for too-short strokes."""
        ranked = self.classify(points)
        return ranked[0] if ranked else None

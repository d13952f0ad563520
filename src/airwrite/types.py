"""Tagged records shared across the recognition engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class Point:
    """A single pointer sample."""
    x: float
    y: float
    timestamp_ms: int = 0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "t": self.timestamp_ms}

    @classmethod
    def from_dict(cls, data: dict) -> Point:
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            timestamp_ms=int(data.get("t", data.get("timestamp_ms", 0))),
        )


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return (self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2

    @classmethod
    def of(cls, points: Sequence[Point]) -> BoundingBox:
        """Bounding box of a point sequence (all zeros when empty)."""
        if not points:
            return cls(0.0, 0.0, 0.0, 0.0)
        xs = [p.x for p in points]
        ys = [p.y for p in points]
        return cls(min(xs), max(xs), min(ys), max(ys))


def points_to_array(points: Sequence[Point]) -> np.ndarray:
    """Stack points into an (N, 2) float64 array."""
    if not points:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array([[p.x, p.y] for p in points], dtype=np.float64)


@dataclass(frozen=True)
class ClassificationCandidate:
    """A labelled guess. Confidence is clamped to [0, 1]."""
    label: str
    confidence: float

    def __post_init__(self):
        conf = float(self.confidence)
        if not conf >= 0.0:  # also catches NaN
            conf = 0.0
        object.__setattr__(self, "confidence", min(1.0, conf))


UNKNOWN = ClassificationCandidate(label="?", confidence=0.0)


class ResultMode(Enum):
    LIVE = "live"
    FINAL = "final"


class SessionMode(Enum):
    IDLE = "idle"
    LIVE = "live"
    PAUSED = "paused"
    FINAL = "final"


@dataclass(frozen=True)
class ClassificationResult:
    """Ranked recognition output for one pass over the stroke."""
    primary: ClassificationCandidate = UNKNOWN
    alternatives: tuple[ClassificationCandidate, ...] = field(default_factory=tuple)
    mode: ResultMode = ResultMode.LIVE
    degraded: bool = False  # neural collaborator failed for this pass

    @property
    def label(self) -> str:
        return self.primary.label

    @property
    def confidence(self) -> float:
        return self.primary.confidence

    def with_mode(self, mode: ResultMode) -> ClassificationResult:
        return replace(self, mode=mode)

    def to_dict(self) -> dict:
        return {
            "letter": self.primary.label,
            "confidence": round(self.primary.confidence, 4),
            "mode": self.mode.value,
            "degraded": self.degraded,
            "alternatives": [
                {"letter": c.label, "confidence": round(c.confidence, 4)}
                for c in self.alternatives
            ],
        }


class StrokeClassifier(ABC):
    """A strategy that turns raw stroke points into ranked candidates.

    Implementations must return an empty list rather than raise when the
    stroke is too short or geometrically degenerate.
    """

    name: str = "classifier"

    @abstractmethod
    def classify(self, points: Sequence[Point]) -> list[ClassificationCandidate]:
        ...


def rank_candidates(
    candidates: list[ClassificationCandidate],
) -> list[ClassificationCandidate]:
    """Stable descending sort by confidence, dropping zero scores."""
    kept = [c for c in candidates if c.confidence > 0]
    return sorted(kept, key=lambda c: c.confidence, reverse=True)

"""Confidence blending between geometric and neural classifiers.

The geometric side (template matcher plus heuristic detectors) is trusted
when it is confident; otherwise the neural classifier decides. The neural
classifier is an injected collaborator: any callable taking the stroke
points and returning a :class:`NeuralPrediction`.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from airwrite.types import (
    UNKNOWN,
    ClassificationCandidate,
    ClassificationResult,
    Point,
    ResultMode,
)

logger = logging.getLogger("airwrite.blending")


@dataclass(frozen=True)
class NeuralPrediction:
    """Output of the external neural classifier."""
    primary: ClassificationCandidate
    alternatives: tuple[ClassificationCandidate, ...] = field(default_factory=tuple)

    @property
    def confidence(self) -> float:
        return self.primary.confidence


NeuralClassifier = Callable[[Sequence[Point]], Optional[NeuralPrediction]]


class NeuralGuard:
    """Calls the neural collaborator and absorbs its failures.

    Exceptions are logged and turned into ``None``. With ``timeout_s`` set,
    the call runs on a single worker thread and is abandoned (not killed)
    once the timeout passes, so a hung model costs at most one timeout per
    recognition pass. Calls still queued behind it are cancelled.
    """

    def __init__(self, classifier: NeuralClassifier, timeout_s: Optional[float] = None):
        self.classifier = classifier
        self.timeout_s = timeout_s
        self._executor: Optional[ThreadPoolExecutor] = None
        self.failures = 0

    def __call__(self, points: Sequence[Point]) -> tuple[Optional[NeuralPrediction], bool]:
        """Returns (prediction, failed)."""
        try:
            if self.timeout_s is None:
                prediction = self.classifier(points)
            else:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix="airwrite-neural"
                    )
                future = self._executor.submit(self.classifier, tuple(points))
                prediction = future.result(timeout=self.timeout_s)
        except FutureTimeout:
            future.cancel()
            self.failures += 1
            logger.warning("Neural classifier timed out after %.2fs", self.timeout_s)
            return None, True
        except Exception as e:
            self.failures += 1
            logger.error("Neural classifier failed: %s", e)
            return None, True

        if prediction is not None and not isinstance(prediction, NeuralPrediction):
            self.failures += 1
            logger.error(
                "Neural classifier returned %s, expected NeuralPrediction",
                type(prediction).__name__,
            )
            return None, True
        return prediction, False

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None


def merge_candidates(
    *ranked: Iterable[ClassificationCandidate],
) -> list[ClassificationCandidate]:
    """Combine ranked lists, keeping the highest confidence per label."""
    best: dict[str, ClassificationCandidate] = {}
    for candidates in ranked:
        for c in candidates:
            if c.label not in best or c.confidence > best[c.label].confidence:
                best[c.label] = c
    return sorted(best.values(), key=lambda c: c.confidence, reverse=True)


class BlendingPolicy:
    """Picks between the geometric and the neural top candidate.

    - geometric > ``high``: geometric wins.
    - geometric > ``moderate`` and neural < ``neural_doubt``: geometric wins.
    - otherwise the neural prediction wins.

    The alternatives always come from the neural classifier when it
    produced a result.
    """

    def __init__(
        self,
        high: float = 0.75,
        moderate: float = 0.5,
        neural_doubt: float = 0.6,
        max_alternatives: int = 3,
    ):
        if not 0.0 <= moderate <= high <= 1.0:
            raise ValueError("blending thresholds must satisfy 0 <= moderate <= high <= 1")
        self.high = high
        self.moderate = moderate
        self.neural_doubt = neural_doubt
        self.max_alternatives = max_alternatives

    def prefers_geometric(self, geometric: float, neural: float) -> bool:
        if geometric > self.high:
            return True
        return geometric > self.moderate and neural < self.neural_doubt

    def blend(
        self,
        geometric: Sequence[ClassificationCandidate],
        neural: Optional[NeuralPrediction],
        mode: ResultMode = ResultMode.LIVE,
        degraded: bool = False,
    ) -> ClassificationResult:
        """Blend a ranked geometric list with an optional neural prediction."""
        top = geometric[0] if geometric else None

        if neural is None:
            if top is None:
                return ClassificationResult(UNKNOWN, (), mode, degraded)
            alternatives = tuple(geometric[1:1 + self.max_alternatives])
            return ClassificationResult(top, alternatives, mode, degraded)

        alternatives = tuple(neural.alternatives[:self.max_alternatives])
        if top is not None and self.prefers_geometric(top.confidence, neural.confidence):
            return ClassificationResult(top, alternatives, mode, degraded)
        return ClassificationResult(neural.primary, alternatives, mode, degraded)

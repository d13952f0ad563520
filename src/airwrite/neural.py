"""Neural classifier adapter.

Renders a stroke into the small grayscale bitmap an EMNIST-style model
expects (white stroke on black, size-normalized and centered with padding)
and runs a TorchScript model over it. ``torch`` is imported lazily so the
rest of the package works without it.

The caller loads the model once and hands the classifier to the engine:

    neural = TorchLetterClassifier.load("emnist_letters.pt")
    engine = RecognitionEngine(neural=neural)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Sequence

import numpy as np

from airwrite.blending import NeuralPrediction
from airwrite.types import ClassificationCandidate, Point, points_to_array

logger = logging.getLogger("airwrite.neural")

EMNIST_ALPHABET = (
    "0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
)


def render_stroke(
    points: Sequence[Point],
    size: int = 28,
    padding: float = 30.0,
    line_width: Optional[float] = None,
    supersample: int = 4,
) -> np.ndarray:
    """Rasterize a stroke into a (size, size) float32 image in [0, 1].

    The stroke is centered in a square canvas of side ``max(w, h) + 2 *
    padding`` and drawn with round caps, then box-filtered down to ``size``.
    """
    xy = points_to_array(points)
    image = np.zeros((size, size), dtype=np.float32)
    if len(xy) == 0:
        return image

    lo, hi = xy.min(axis=0), xy.max(axis=0)
    extent = hi - lo
    side = float(max(extent.max(), 1.0)) + 2 * padding
    width = line_width if line_width is not None else max(12.0, side / 10.0)

    res = size * supersample
    scale = res / side
    offset = (side - extent) / 2 - lo
    pts = (xy + offset) * scale
    radius = width * scale / 2

    centers = (np.arange(res, dtype=np.float64) + 0.5)
    gx, gy = np.meshgrid(centers, centers)
    pixels = np.column_stack([gx.ravel(), gy.ravel()])

    if len(pts) == 1:
        dist = np.linalg.norm(pixels - pts[0], axis=1)
    else:
        dist = np.full(len(pixels), np.inf)
        for a, b in zip(pts[:-1], pts[1:]):
            ab = b - a
            denom = float(ab @ ab)
            if denom < 1e-12:
                d = np.linalg.norm(pixels - a, axis=1)
            else:
                t = np.clip((pixels - a) @ ab / denom, 0.0, 1.0)
                d = np.linalg.norm(pixels - (a + t[:, None] * ab), axis=1)
            np.minimum(dist, d, out=dist)

    hires = (dist <= radius).astype(np.float32).reshape(res, res)
    image = hires.reshape(size, supersample, size, supersample).mean(axis=(1, 3))
    return image.astype(np.float32)


def letter_scores(
    probs: np.ndarray, alphabet: str = EMNIST_ALPHABET, fold_case: bool = True
) -> list[ClassificationCandidate]:
    """Map class probabilities to ranked letter candidates (digits dropped)."""
    best: dict[str, float] = {}
    for char, p in zip(alphabet, np.asarray(probs, dtype=np.float64).ravel()):
        if not char.isalpha():
            continue
        label = char.upper() if fold_case else char
        if label not in best or p > best[label]:
            best[label] = float(p)
    ranked = [ClassificationCandidate(label, p) for label, p in best.items()]
    ranked.sort(key=lambda c: c.confidence, reverse=True)
    return ranked


def _softmax(logits: np.ndarray) -> np.ndarray:
    z = logits - logits.max()
    e = np.exp(z)
    return e / e.sum()


class TorchLetterClassifier:
    """Neural collaborator backed by a TorchScript image classifier.

    The model takes a (1, 1, size, size) float tensor and returns one score
    per character of ``alphabet``.
    """

    def __init__(
        self,
        model: Any,
        alphabet: str = EMNIST_ALPHABET,
        image_size: int = 28,
        max_alternatives: int = 3,
        fold_case: bool = True,
        apply_softmax: bool = True,
    ):
        self.model = model
        self.alphabet = alphabet
        self.image_size = image_size
        self.max_alternatives = max_alternatives
        self.fold_case = fold_case
        self.apply_softmax = apply_softmax

    @classmethod
    def load(cls, path: str | Path, **kwargs) -> TorchLetterClassifier:
        """Load a TorchScript model file."""
        import torch

        model = torch.jit.load(str(path), map_location="cpu")
        model.eval()
        logger.info("Loaded neural model from %s", path)
        return cls(model, **kwargs)

    def predict_proba(self, image: np.ndarray) -> np.ndarray:
        import torch

        tensor = torch.from_numpy(np.ascontiguousarray(image, dtype=np.float32))
        tensor = tensor.view(1, 1, self.image_size, self.image_size)
        with torch.no_grad():
            output = self.model(tensor)
        scores = output.detach().cpu().numpy().reshape(-1).astype(np.float64)
        if len(scores) != len(self.alphabet):
            raise ValueError(
                f"model produced {len(scores)} scores for a {len(self.alphabet)}-class alphabet"
            )
        return _softmax(scores) if self.apply_softmax else scores

    def __call__(self, points: Sequence[Point]) -> Optional[NeuralPrediction]:
        if len(points) < 2:
            return None
        image = render_stroke(points, size=self.image_size)
        ranked = letter_scores(self.predict_proba(image), self.alphabet, self.fold_case)
        if not ranked:
            return None
        return NeuralPrediction(
            primary=ranked[0],
            alternatives=tuple(ranked[1:1 + self.max_alternatives]),
        )

"""Reference stroke library for template matching.

Templates are idealized single-stroke paths in a 50x100 design box (y grows
downward). Letters with several common stroke orders ship one template per
variant; all variants compete independently during matching.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
import yaml

from airwrite.normalizer import NUM_POINTS, REFERENCE_SIZE, normalize

LIBRARY_VERSION = "1"


@dataclass(frozen=True)
class Template:
    """A labelled, normalized reference stroke."""
    label: str
    points: np.ndarray  # (64, 2), normalized
    variant: str = ""

    @classmethod
    def from_path(
        cls, label: str, path, variant: str = "", size: float = REFERENCE_SIZE
    ) -> Template:
        raw = np.asarray(path, dtype=np.float64)
        if raw.ndim != 2 or raw.shape[1] != 2 or len(raw) < 2:
            raise ValueError(f"template {label!r} needs at least 2 (x, y) points")
        pts = normalize(raw, NUM_POINTS, size)
        pts.setflags(write=False)
        return cls(label=label, points=pts, variant=variant)


# (label, variant, path)
DEFAULT_STROKES: list[tuple[str, str, list[tuple[float, float]]]] = [
    ("A", "standard", [(0, 100), (25, 0), (50, 100), (10, 75), (40, 75)]),
    ("A", "retrace", [(0, 100), (25, 0), (50, 100), (50, 75), (10, 75)]),
    ("A", "roof", [(25, 0), (0, 100), (25, 0), (50, 100), (10, 75), (40, 75)]),
    ("B", "standard", [(10, 100), (10, 0), (40, 0), (50, 25), (10, 50), (50, 75), (40, 100), (10, 100)]),
    ("C", "standard", [(50, 20), (20, 0), (0, 50), (20, 100), (50, 80)]),
    ("D", "standard", [(10, 100), (10, 0), (40, 0), (50, 50), (40, 100), (10, 100)]),
    ("E", "standard", [(50, 0), (0, 0), (0, 50), (40, 50), (0, 50), (0, 100), (50, 100)]),
    ("E", "short-bar", [(50, 0), (0, 0), (0, 50), (30, 50), (0, 50), (0, 100), (50, 100)]),
    ("F", "standard", [(50, 0), (0, 0), (0, 50), (40, 50), (0, 50), (0, 100)]),
    ("F", "continuous", [(50, 0), (0, 0), (0, 100), (0, 50), (40, 50)]),
    ("G", "standard", [(50, 20), (20, 0), (0, 50), (20, 100), (50, 100), (50, 60), (30, 60)]),
    ("H", "standard", [(10, 0), (10, 100), (10, 50), (40, 50), (40, 0), (40, 100)]),
    ("H", "lowercase", [(10, 0), (10, 100), (10, 50), (40, 50), (40, 100)]),
    ("H", "legs-first", [(0, 0), (0, 100), (50, 0), (50, 100), (0, 50), (50, 50)]),
    ("I", "standard", [(25, 0), (25, 100)]),
    ("J", "standard", [(40, 0), (40, 80), (20, 100), (0, 80)]),
    ("K", "standard", [(0, 0), (0, 100), (0, 50), (50, 0), (0, 50), (50, 100)]),
    ("K", "continuous", [(50, 0), (0, 50), (0, 100), (0, 0), (0, 50), (50, 100)]),
    ("L", "standard", [(10, 0), (10, 100), (50, 100)]),
    ("M", "standard", [(0, 100), (0, 0), (25, 50), (50, 0), (50, 100)]),
    ("M", "shallow", [(0, 100), (0, 0), (25, 35), (50, 0), (50, 100)]),
    ("N", "standard", [(0, 100), (0, 0), (50, 100), (50, 0)]),
    ("O", "standard", [(25, 0), (50, 50), (25, 100), (0, 50), (25, 0)]),
    ("P", "standard", [(0, 100), (0, 0), (50, 0), (50, 50), (0, 50)]),
    ("Q", "standard", [(25, 0), (50, 50), (25, 100), (0, 50), (25, 0), (25, 75), (50, 100)]),
    ("R", "standard", [(0, 100), (0, 0), (50, 0), (50, 50), (0, 50), (50, 100)]),
    ("S", "standard", [(50, 0), (0, 25), (50, 75), (0, 100)]),
    ("T", "standard", [(0, 0), (50, 0), (25, 0), (25, 100)]),
    ("U", "standard", [(0, 0), (0, 100), (50, 100), (50, 0)]),
    ("V", "standard", [(0, 0), (25, 100), (50, 0)]),
    ("W", "standard", [(0, 0), (0, 100), (25, 50), (50, 100), (50, 0)]),
    ("W", "shallow", [(0, 0), (0, 100), (25, 65), (50, 100), (50, 0)]),
    ("W", "sawtooth", [(0, 0), (10, 100), (25, 0), (40, 100), (50, 0)]),
    ("X", "cross", [(0, 0), (50, 100), (25, 50), (50, 0), (0, 100)]),
    ("X", "butterfly", [(0, 0), (50, 100), (50, 0), (0, 100)]),
    ("Y", "standard", [(0, 0), (25, 50), (50, 0), (25, 50), (25, 100)]),
    ("Y", "open", [(0, 0), (50, 0), (50, 100)]),
    ("Z", "standard", [(0, 0), (50, 0), (0, 100), (50, 100)]),
]


class TemplateLibrary:
    """Immutable, versioned collection of templates.

    Built once and then only read, so a single library can be shared by
    every engine in the process.
    """

    def __init__(self, templates: list[Template], version: str = LIBRARY_VERSION):
        if not templates:
            raise ValueError("template library is empty")
        self._templates = tuple(templates)
        self.version = version

    @property
    def labels(self) -> list[str]:
        """Distinct labels in first-seen order."""
        seen: dict[str, None] = {}
        for t in self._templates:
            seen.setdefault(t.label, None)
        return list(seen)

    def variants(self, label: str) -> list[Template]:
        return [t for t in self._templates if t.label == label]

    def __len__(self) -> int:
        return len(self._templates)

    def __iter__(self) -> Iterator[Template]:
        return iter(self._templates)

    @classmethod
    def from_strokes(
        cls,
        strokes: list[tuple[str, str, list]],
        version: str = LIBRARY_VERSION,
    ) -> TemplateLibrary:
        return cls(
            [Template.from_path(label, path, variant) for label, variant, path in strokes],
            version=version,
        )

    @classmethod
    def from_dict(cls, data: dict) -> TemplateLibrary:
        entries = data.get("templates")
        if not isinstance(entries, list):
            raise ValueError("template file must contain a 'templates' list")

        strokes = []
        for i, entry in enumerate(entries):
            try:
                strokes.append((str(entry["label"]), str(entry.get("variant", "")), entry["points"]))
            except (KeyError, TypeError) as e:
                raise ValueError(f"template entry {i} is malformed: {e}") from e
        return cls.from_strokes(strokes, version=str(data.get("version", LIBRARY_VERSION)))

    @classmethod
    def load(cls, path: str | Path) -> TemplateLibrary:
        """Load from a YAML (.yml/.yaml) or JSON file."""
        path = Path(path)
        text = path.read_text()
        if path.suffix.lower() in (".yml", ".yaml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        return cls.from_dict(data)

    @classmethod
    def with_defaults(cls) -> TemplateLibrary:
        """The built-in A-Z library."""
        return cls.from_strokes(DEFAULT_STROKES)


_default_library: Optional[TemplateLibrary] = None


def default_library() -> TemplateLibrary:
    """Process-wide default library, built on first use."""
    global _default_library
    if _default_library is None:
        _default_library = TemplateLibrary.with_defaults()
    return _default_library

"""Engine configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class EngineConfig:
    tick_interval_ms: int = 400
    pause_threshold_ms: int = 800
    auto_clear_ms: int = 2000
    min_points: int = 5  # below this the classifiers return nothing
    min_final_points: int = 5  # finalize requires strictly more points

    # Blending thresholds
    geometric_high: float = 0.75
    geometric_moderate: float = 0.5
    neural_doubt: float = 0.6
    max_alternatives: int = 3

    neural_timeout_s: Optional[float] = None
    templates_file: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self):
        for name in ("tick_interval_ms", "pause_threshold_ms", "auto_clear_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.min_points < 1 or self.min_final_points < 0:
            raise ValueError("point minimums must be non-negative")
        for name in ("geometric_high", "geometric_moderate", "neural_doubt"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if self.neural_timeout_s is not None and self.neural_timeout_s <= 0:
            raise ValueError("neural_timeout_s must be positive")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load from a YAML file; settings may sit under an ``engine`` key."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping")
        return cls.from_dict(data.get("engine", data))

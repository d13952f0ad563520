"""airwrite - air-writing letter recognition from pointer strokes."""

__version__ = "0.1.0"

from airwrite.types import (
    BoundingBox,
    ClassificationCandidate,
    ClassificationResult,
    Point,
    ResultMode,
    SessionMode,
    StrokeClassifier,
)
from airwrite.stroke import StrokeBuffer
from airwrite.normalizer import normalize
from airwrite.templates import Template, TemplateLibrary
from airwrite.matcher import TemplateMatcher
from airwrite.heuristics import HeuristicClassifier
from airwrite.blending import BlendingPolicy, NeuralGuard, NeuralPrediction
from airwrite.config import EngineConfig
from airwrite.scheduling import AsyncioScheduler, ManualScheduler
from airwrite.engine import GestureSession, RecognitionEngine
from airwrite.source import StrokeSmoother

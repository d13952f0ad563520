"""Prediction state machine driving live and final recognition.

A gesture session moves IDLE → LIVE → PAUSED → FINAL → IDLE:

- points arrive: LIVE, any pending finalize timer is cancelled
- every tick: if the stroke grew, classify it and emit a LIVE result
- a tick that sees no growth arms one debounce timer (PAUSED)
- the timer fires: classify once more, emit a FINAL result, schedule an
  auto-clear that starts a fresh session

Usage:
    engine = RecognitionEngine(neural=my_model)
    engine.on_result(lambda r: print(r.mode.value, r.label, r.confidence))
    engine.start()
    # from the point source:
    engine.submit_points([Point(x, y, t)])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from airwrite.blending import BlendingPolicy, NeuralClassifier, NeuralGuard, merge_candidates
from airwrite.config import EngineConfig
from airwrite.heuristics import HeuristicClassifier
from airwrite.matcher import TemplateMatcher
from airwrite.profiler import StageProfiler
from airwrite.scheduling import AsyncioScheduler, Scheduler, TimerHandle
from airwrite.stroke import StrokeBuffer
from airwrite.templates import TemplateLibrary, default_library
from airwrite.types import (
    ClassificationCandidate,
    ClassificationResult,
    Point,
    ResultMode,
    SessionMode,
    StrokeClassifier,
)

logger = logging.getLogger("airwrite.engine")


@dataclass
class GestureSession:
    """Mutable state for the gesture currently being drawn."""
    generation: int = 0
    buffer: StrokeBuffer = field(default_factory=StrokeBuffer)
    mode: SessionMode = SessionMode.IDLE
    last_processed_count: int = 0
    last_tick_count: int = 0
    pending_finalize_deadline: Optional[int] = None
    # point count at which a finalize was refused as too short
    short_pause_count: Optional[int] = None

    @property
    def point_count(self) -> int:
        return len(self.buffer)

    @property
    def points(self) -> tuple[Point, ...]:
        return self.buffer.points


class RecognitionEngine:
    """Owns one gesture session and decides when to recognize it.

    Classification strategies, the neural collaborator and the scheduler are
    injected. The template library is read-only and may be shared between
    engines.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        classifiers: Optional[list[StrokeClassifier]] = None,
        neural: Optional[NeuralClassifier] = None,
        scheduler: Optional[Scheduler] = None,
        library: Optional[TemplateLibrary] = None,
        policy: Optional[BlendingPolicy] = None,
        profiler: Optional[StageProfiler] = None,
    ):
        self.config = config or EngineConfig()
        cfg = self.config

        if classifiers is None:
            if library is None:
                library = (
                    TemplateLibrary.load(cfg.templates_file)
                    if cfg.templates_file else default_library()
                )
            classifiers = [
                TemplateMatcher(library, min_points=cfg.min_points),
                HeuristicClassifier(min_points=cfg.min_points),
            ]
        self.classifiers = classifiers
        self.policy = policy or BlendingPolicy(
            high=cfg.geometric_high,
            moderate=cfg.geometric_moderate,
            neural_doubt=cfg.neural_doubt,
            max_alternatives=cfg.max_alternatives,
        )
        self._neural = NeuralGuard(neural, cfg.neural_timeout_s) if neural else None
        self.scheduler = scheduler or AsyncioScheduler()
        self.profiler = profiler or StageProfiler()

        self._session = GestureSession()
        self._current = ClassificationResult()
        self._callbacks: list[Callable[[ClassificationResult], None]] = []
        self._busy = False
        self._tick_handle: Optional[TimerHandle] = None
        self._finalize_handle: Optional[TimerHandle] = None
        self._clear_handle: Optional[TimerHandle] = None
        self._live_pending = None
        self._final_pending = None
        self._live_count = 0
        self._final_count = 0

    # --- Control surface --------------------------------------------------

    def on_result(self, callback: Callable[[ClassificationResult], None]):
        """Register a callback fired for every LIVE and FINAL result."""
        self._callbacks.append(callback)

    def start(self):
        """Begin periodic ticks on the scheduler.

        A session left FINAL by :meth:`stop` gets a fresh auto-clear.
        """
        if self._tick_handle is None:
            self._tick_handle = self.scheduler.call_every(
                self.config.tick_interval_ms, self.tick
            )
        if self._session.mode is SessionMode.FINAL and self._clear_handle is None:
            self._schedule_auto_clear()

    def stop(self):
        """Stop ticking and cancel pending timers. Session state is kept."""
        for handle in (self._tick_handle, self._finalize_handle, self._clear_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = self._finalize_handle = self._clear_handle = None
        self._session.pending_finalize_deadline = None
        self._cancel_pending()

    def close(self):
        self.stop()
        if self._neural is not None:
            self._neural.close()

    def submit_points(self, points: Iterable[Point]) -> int:
        """Append points to the current gesture. Returns how many were kept.

        Points are ignored while the session is FINAL; call :meth:`clear`
        (or wait for the auto-clear) to start the next gesture.
        """
        session = self._session
        if session.mode is SessionMode.FINAL:
            logger.debug("Ignoring points: session %d is final", session.generation)
            return 0

        accepted = session.buffer.extend(points)
        if accepted:
            self._cancel_finalize()
            session.mode = SessionMode.LIVE
        return accepted

    def clear(self):
        """Drop the current gesture and start a fresh IDLE session."""
        self._cancel_finalize()
        self._cancel_pending()
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
        self._session = GestureSession(generation=self._session.generation + 1)
        self._current = ClassificationResult()

    def current_result(self) -> ClassificationResult:
        return self._current

    @property
    def session(self) -> GestureSession:
        return self._session

    @property
    def mode(self) -> SessionMode:
        return self._session.mode

    @property
    def is_finalizing(self) -> bool:
        return self._busy

    # --- Scheduling -------------------------------------------------------

    def tick(self):
        """One recognition tick: live recognition plus pause detection."""
        session = self._session
        if session.mode is SessionMode.FINAL or self._busy:
            return

        count = session.point_count
        previous_tick_count = session.last_tick_count
        session.last_tick_count = count

        if count != session.last_processed_count and self._live_pending is None:
            session.last_processed_count = count
            generation = session.generation
            self._live_pending = self._run_recognition(
                session.points,
                ResultMode.LIVE,
                lambda result: self._complete_live(generation, result),
            )

        if (
            count > 0
            and count == previous_tick_count
            and count != session.short_pause_count
            and self._finalize_handle is None
        ):
            self._arm_finalize()

    def _complete_live(self, generation: int, result: ClassificationResult):
        session = self._session
        if generation != session.generation:
            logger.debug("Dropping live result for session %d", generation)
            return
        self._live_pending = None
        if session.mode is SessionMode.FINAL or self._busy:
            return
        self._live_count += 1
        self._publish(result)

    def _arm_finalize(self):
        session = self._session
        delay = self.config.pause_threshold_ms
        generation = session.generation
        self._finalize_handle = self.scheduler.call_later(
            delay, lambda: self._finalize(generation)
        )
        session.pending_finalize_deadline = self.scheduler.now_ms() + delay
        session.mode = SessionMode.PAUSED
        logger.debug("Pause detected, finalizing in %dms", delay)

    def _cancel_finalize(self):
        if self._finalize_handle is not None:
            self._finalize_handle.cancel()
            self._finalize_handle = None
        self._session.pending_finalize_deadline = None

    def _cancel_pending(self):
        for pending in (self._live_pending, self._final_pending):
            if pending is not None:
                pending.cancel()
        self._live_pending = self._final_pending = None
        self._busy = False

    def _finalize(self, generation: int):
        session = self._session
        if generation != session.generation:
            logger.debug("Stale finalize for session %d ignored", generation)
            return
        self._finalize_handle = None
        session.pending_finalize_deadline = None
        if session.mode is SessionMode.FINAL or self._busy:
            return
        count = session.point_count
        if count <= self.config.min_final_points:
            # not re-armed until the stroke grows
            session.short_pause_count = count
            logger.debug("Not finalizing: only %d points", count)
            return

        self._busy = True
        try:
            self._final_pending = self._run_recognition(
                session.points,
                ResultMode.FINAL,
                lambda result: self._complete_final(generation, count, result),
            )
        except Exception:
            self._busy = False
            self._final_pending = None
            logger.exception("Final recognition failed")

    def _complete_final(self, generation: int, count: int, result: ClassificationResult):
        session = self._session
        if generation != session.generation:
            logger.debug("Dropping final result for session %d", generation)
            return
        self._busy = False
        self._final_pending = None
        if session.point_count != count:
            logger.debug("Dropping final result: stroke grew to %d points", session.point_count)
            return

        session.mode = SessionMode.FINAL
        self._final_count += 1
        self._schedule_auto_clear()
        logger.info("Final: %s (%.2f)", result.label, result.confidence)
        self._publish(result)

    def _schedule_auto_clear(self):
        generation = self._session.generation
        self._clear_handle = self.scheduler.call_later(
            self.config.auto_clear_ms, lambda: self._auto_clear(generation)
        )

    def _auto_clear(self, generation: int):
        if generation != self._session.generation:
            return
        self._clear_handle = None
        self.clear()

    # --- Recognition ------------------------------------------------------

    def geometric_candidates(
        self, points: Sequence[Point]
    ) -> list[ClassificationCandidate]:
        """Merged, ranked output of all classification strategies."""
        ranked = []
        for classifier in self.classifiers:
            with self.profiler.stage(classifier.name):
                try:
                    ranked.append(classifier.classify(points))
                except Exception as e:
                    logger.error("Classifier %s failed: %s", classifier.name, e)
        return merge_candidates(*ranked)

    def recognize(
        self, points: Sequence[Point], mode: ResultMode = ResultMode.LIVE
    ) -> ClassificationResult:
        """Run the full pipeline once on ``points``. Does not touch session state.

        Blocks on the neural collaborator; the engine's own ticks go through
        the scheduler instead.
        """
        geometric = self.geometric_candidates(points)
        neural, failed = None, False
        if self._neural is not None and points:
            neural, failed = self._call_neural(points)
        return self._blend(geometric, neural, mode, failed)

    def _run_recognition(
        self,
        points: Sequence[Point],
        mode: ResultMode,
        done: Callable[[ClassificationResult], None],
    ):
        """Recognize ``points`` and hand the result to ``done``.

        Geometric strategies run inline. The neural call goes through
        ``scheduler.run_blocking`` so a slow model never holds the event
        loop; the returned handle (None once already done) cancels it.
        """
        geometric = self.geometric_candidates(points)
        if self._neural is None or not points:
            done(self._blend(geometric, None, mode, False))
            return None

        def finish(outcome):
            neural, failed = outcome
            done(self._blend(geometric, neural, mode, failed))

        return self.scheduler.run_blocking(lambda: self._call_neural(points), finish)

    def _call_neural(self, points: Sequence[Point]):
        with self.profiler.stage("neural"):
            return self._neural(points)

    def _blend(self, geometric, neural, mode: ResultMode, failed: bool) -> ClassificationResult:
        with self.profiler.stage("blend"):
            return self.policy.blend(geometric, neural, mode=mode, degraded=failed)

    def _publish(self, result: ClassificationResult):
        self._current = result
        for cb in self._callbacks:
            try:
                cb(result)
            except Exception as e:
                logger.error("Result callback error: %s", e)

    @property
    def stats(self) -> dict:
        return {
            "live_results": self._live_count,
            "final_results": self._final_count,
            "neural_failures": self._neural.failures if self._neural else 0,
            "stages": self.profiler.summary(),
        }

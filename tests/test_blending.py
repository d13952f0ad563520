"""Tests for geometric/neural confidence blending."""

import logging
import time

import pytest

from airwrite.blending import BlendingPolicy, NeuralGuard, NeuralPrediction, merge_candidates
from airwrite.types import ClassificationCandidate as C
from airwrite.types import Point, ResultMode


def neural(label, confidence, *alts):
    return NeuralPrediction(C(label, confidence), tuple(C(l, p) for l, p in alts))


class TestBlendingPolicy:
    def setup_method(self):
        self.policy = BlendingPolicy()

    def test_confident_geometry_wins(self):
        result = self.policy.blend([C("G", 0.9)], neural("N", 0.5, ("A", 0.2)))
        assert result.label == "G"
        assert [c.label for c in result.alternatives] == ["A"]

    def test_weak_geometry_defers(self):
        result = self.policy.blend([C("G", 0.3)], neural("N", 0.9))
        assert result.label == "N"

    def test_moderate_geometry_defers_to_sure_neural(self):
        result = self.policy.blend([C("G", 0.6)], neural("N", 0.9))
        assert result.label == "N"

    def test_moderate_geometry_beats_doubtful_neural(self):
        result = self.policy.blend([C("G", 0.6)], neural("N", 0.5))
        assert result.label == "G"

    def test_thresholds_are_strict(self):
        assert self.policy.blend([C("G", 0.75)], neural("N", 0.7)).label == "N"
        assert self.policy.blend([C("G", 0.5)], neural("N", 0.1)).label == "N"
        assert self.policy.blend([C("G", 0.6)], neural("N", 0.6)).label == "N"

    def test_neural_only(self):
        result = self.policy.blend([], neural("X", 0.4, ("K", 0.3)))
        assert result.label == "X"
        assert result.alternatives == (C("K", 0.3),)

    def test_geometry_only(self):
        ranked = [C("O", 0.88), C("D", 0.79), C("Q", 0.5), C("C", 0.4), C("G", 0.3)]
        result = self.policy.blend(ranked, None)
        assert result.label == "O"
        assert [c.label for c in result.alternatives] == ["D", "Q", "C"]

    def test_nothing_is_unknown(self):
        result = self.policy.blend([], None)
        assert result.label == "?"
        assert result.confidence == 0.0
        assert result.alternatives == ()

    def test_alternatives_capped(self):
        pred = neural("A", 0.9, ("B", 0.05), ("C", 0.03), ("D", 0.01), ("E", 0.005))
        result = self.policy.blend([], pred)
        assert len(result.alternatives) == 3

    def test_mode_and_degraded_pass_through(self):
        result = self.policy.blend([C("L", 0.8)], None, mode=ResultMode.FINAL, degraded=True)
        assert result.mode is ResultMode.FINAL
        assert result.degraded

    def test_prefers_geometric(self):
        assert self.policy.prefers_geometric(0.8, 0.99)
        assert self.policy.prefers_geometric(0.55, 0.3)
        assert not self.policy.prefers_geometric(0.55, 0.7)
        assert not self.policy.prefers_geometric(0.2, 0.1)

    def test_invalid_thresholds(self):
        with pytest.raises(ValueError):
            BlendingPolicy(high=0.4, moderate=0.5)
        with pytest.raises(ValueError):
            BlendingPolicy(high=1.5)


class TestMergeCandidates:
    def test_keeps_best_per_label(self):
        merged = merge_candidates([C("O", 0.7), C("D", 0.6)], [C("O", 0.88), C("I", 0.2)])
        assert merged == [C("O", 0.88), C("D", 0.6), C("I", 0.2)]

    def test_empty(self):
        assert merge_candidates() == []
        assert merge_candidates([], []) == []


class TestNeuralGuard:
    POINTS = [Point(0, 0, 0), Point(10, 10, 16)]

    def test_passes_prediction_through(self):
        pred = neural("A", 0.9)
        guard = NeuralGuard(lambda pts: pred)
        assert guard(self.POINTS) == (pred, False)
        assert guard.failures == 0

    def test_none_is_not_a_failure(self):
        guard = NeuralGuard(lambda pts: None)
        assert guard(self.POINTS) == (None, False)

    def test_exception_absorbed(self, caplog):
        def broken(points):
            raise RuntimeError("model crashed")

        guard = NeuralGuard(broken)
        with caplog.at_level(logging.ERROR, logger="airwrite.blending"):
            assert guard(self.POINTS) == (None, True)
        assert guard.failures == 1
        assert "model crashed" in caplog.text

    def test_wrong_return_type(self):
        guard = NeuralGuard(lambda pts: ("A", 0.9))
        assert guard(self.POINTS) == (None, True)
        assert guard.failures == 1

    def test_timeout(self):
        def slow(points):
            time.sleep(0.5)
            return neural("A", 0.9)

        guard = NeuralGuard(slow, timeout_s=0.05)
        try:
            assert guard(self.POINTS) == (None, True)
            assert guard.failures == 1
        finally:
            guard.close()

    def test_within_timeout(self):
        pred = neural("B", 0.7)
        guard = NeuralGuard(lambda pts: pred, timeout_s=5.0)
        try:
            assert guard(self.POINTS) == (pred, False)
        finally:
            guard.close()

    def test_nothing_runs_after_close(self):
        started = []

        def slow(points):
            started.append(time.monotonic())
            time.sleep(0.3)
            return neural("A", 0.9)

        guard = NeuralGuard(slow, timeout_s=0.05)
        for _ in range(4):
            assert guard(self.POINTS) == (None, True)
        guard.close()
        time.sleep(0.6)

        assert guard.failures == 4
        assert len(started) == 1

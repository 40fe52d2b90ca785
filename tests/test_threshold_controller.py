"""Tests for the adaptive admission threshold."""

import math
import random
from statistics import NormalDist

import pytest

from src.admission_engine.threshold_controller import ThresholdController


# ── Helpers ──────────────────────────────────────────────────────────

COLD_MEDIAN = 1.6 + 0.01 * 29.5


def _make_controller(seed=0, **kwargs):
    return ThresholdController(seed=seed, **kwargs)


# ── Target rate ──────────────────────────────────────────────────────


class TestTargetRate:
    @pytest.mark.parametrize("used", [0.0, 0.4, 0.9])
    def test_flat_default_schedule(self, used):
        assert _make_controller().target_rate(used) == pytest.approx(0.22)

    def test_infeasible_risk_pulls_target_down(self):
        controller = _make_controller()
        assert controller.target_rate(0.5, risk=1.4) == pytest.approx(0.22 - 0.01)
        assert controller.target_rate(0.5, risk=10.0) == pytest.approx(0.18)

    def test_comfortable_risk_does_not_pull(self):
        assert _make_controller().target_rate(0.5, risk=0.5) == pytest.approx(0.22)


# ── Threshold ────────────────────────────────────────────────────────


class TestComputeThreshold:
    def test_cold_window_quantile(self):
        controller = _make_controller()
        assert len(controller.window) == 60
        expected = COLD_MEDIAN + NormalDist().inv_cdf(0.78) * 0.4
        assert controller.compute_threshold(0.0) == pytest.approx(expected)
        assert controller.last_debug["sigma"] == pytest.approx(0.4)

    def test_threshold_rises_with_admit_rate(self):
        low, high = _make_controller(), _make_controller()
        low.admit_rate_ema = 0.10
        high.admit_rate_ema = 0.40
        assert high.compute_threshold(0.2) > low.compute_threshold(0.2)

    def test_urgency_relief_lowers_late_threshold(self):
        calm, urgent = _make_controller(), _make_controller()
        assert urgent.compute_threshold(0.9, urgency=2.0) < calm.compute_threshold(0.9)

    def test_urgency_has_no_effect_early(self):
        calm, urgent = _make_controller(), _make_controller()
        assert urgent.compute_threshold(0.2, urgency=2.0) == pytest.approx(
            calm.compute_threshold(0.2)
        )

    def test_threshold_is_clipped_to_three_sigma(self):
        controller = _make_controller()
        controller.admit_rate_ema = 1.0
        controller.rate_error_integral = 10.0
        assert controller.compute_threshold(1.0) == pytest.approx(COLD_MEDIAN + 3 * 0.4)


# ── Decisions ────────────────────────────────────────────────────────


class TestDecide:
    def test_threshold_computed_before_value_is_added(self):
        controller, reference = _make_controller(), _make_controller()
        decision = controller.decide(100.0, 0.0)
        assert decision.threshold == pytest.approx(reference.compute_threshold(0.0))
        assert decision.admit
        assert len(controller.window) == 61

    def test_values_are_soft_clipped(self):
        controller = _make_controller()
        controller.decide(100.0, 0.0)
        assert controller.window[-1] == pytest.approx(8.0 * math.tanh(100.0 / 8.0))
        assert controller.window[-1] < 8.0

    def test_non_finite_value_is_rejected_and_not_recorded(self):
        controller = _make_controller()
        decision = controller.decide(float("nan"), 0.0)
        assert not decision.admit
        assert len(controller.window) == 60

    def test_noise_is_bounded_and_seeded(self):
        first, second = _make_controller(seed=5), _make_controller(seed=5)
        for _ in range(50):
            a = first.decide(1.0, 0.0)
            b = second.decide(1.0, 0.0)
            assert a.noise == b.noise
            assert abs(a.noise) <= 0.5 * 0.2 * 1.5

    def test_noise_fades(self):
        controller = _make_controller()
        for _ in range(500):
            decision = controller.decide(1.0, 0.0)
        assert abs(decision.noise) <= 0.5 * 0.2 * 0.5 + 1e-12

    def test_window_is_capped(self):
        controller = _make_controller()
        for i in range(600):
            controller.decide(float(i % 7), 0.0)
        assert len(controller.window) == 500


class TestRecordOutcome:
    def test_ema_update(self):
        controller = _make_controller()
        controller.record_outcome(True)
        assert controller.admit_rate_ema == pytest.approx(0.965 * 0.22 + 0.035)
        controller.record_outcome(False)
        assert controller.admit_rate_ema == pytest.approx(0.965 * (0.965 * 0.22 + 0.035))

    def test_restored_window_keeps_latest_values(self):
        controller = _make_controller(recent_values=[float(i) for i in range(600)])
        assert len(controller.window) == 500
        assert controller.window[0] == 100.0
        assert controller.recent_values()[-1] == 599.0


# ── Convergence ──────────────────────────────────────────────────────


class TestRateConvergence:
    def test_admit_rate_tracks_target(self):
        rng = random.Random(42)
        controller = _make_controller(seed=1)
        emas = []
        for step in range(4000):
            decision = controller.decide(rng.gauss(0.0, 1.0), 0.0)
            controller.record_outcome(decision.admit)
            if step >= 2000:
                emas.append(controller.admit_rate_ema)
        assert sum(emas) / len(emas) == pytest.approx(0.22, abs=0.03)

    def test_constant_values_still_reach_target(self):
        controller = _make_controller(seed=3, recent_values=[0.0] * 100)
        emas = []
        for step in range(3000):
            decision = controller.decide(0.0, 0.0)
            controller.record_outcome(decision.admit)
            if step >= 1500:
                emas.append(controller.admit_rate_ema)
        assert sum(emas) / len(emas) == pytest.approx(0.22, abs=0.03)


class TestRateIntegral:
    def test_sustained_under_admission_keeps_lowering_the_cutoff(self):
        controller = _make_controller(recent_values=[0.0] * 100)
        controller.admit_rate_ema = 0.0
        thresholds = [controller.compute_threshold(0.0) for _ in range(30)]
        assert all(later < earlier for earlier, later in zip(thresholds, thresholds[1:]))
        # the integral is not bounded by the size of a single error
        assert controller.rate_error_integral < -0.22

    def test_integral_is_clamped_and_threshold_clipped(self):
        controller = _make_controller(recent_values=[0.0] * 100)
        controller.admit_rate_ema = 0.0
        for _ in range(500):
            threshold = controller.compute_threshold(0.0)
        assert controller.rate_error_integral == pytest.approx(-2.0)
        assert threshold == pytest.approx(-3 * 0.4)

"""Tests for shadow prices."""

import math
import random

import pytest

from src.admission_engine.models import ConstraintSpec
from src.admission_engine.quota_tracker import QuotaTracker
from src.admission_engine.shadow_pricer import ShadowPricer


# ── Helpers ──────────────────────────────────────────────────────────


def _make_tracker(minimums, frequencies, capacity=100):
    return QuotaTracker(
        [ConstraintSpec(a, m) for a, m in minimums.items()], frequencies, capacity
    )


def _admit(tracker, attributes, count):
    for _ in range(count):
        tracker.update(attributes, admitted=True)


# ── Prices ───────────────────────────────────────────────────────────


class TestPrices:
    def test_satisfied_quota_prices_at_zero(self):
        tracker = _make_tracker({"a": 2, "b": 50}, {"a": 0.5, "b": 0.5})
        _admit(tracker, {"a": True}, 2)
        assert ShadowPricer().prices(tracker)["a"] == 0.0

    def test_prices_follow_attribute_order(self):
        tracker = _make_tracker({"b": 1, "a": 1}, {"a": 0.5, "b": 0.5})
        assert list(ShadowPricer().prices(tracker)) == ["a", "b"]

    def test_on_pace_abundant_quota_is_mid_priced(self):
        tracker = _make_tracker({"a": 10}, {"a": 0.5})
        # gap 0 -> sigmoid(0); no lag yet
        assert ShadowPricer().prices(tracker)["a"] == pytest.approx(0.5)

    def test_scarce_late_quota_prices_higher(self):
        tracker = _make_tracker({"a": 40, "b": 40}, {"a": 0.05, "b": 0.05})
        _admit(tracker, {"b": True}, 40)
        _admit(tracker, {}, 50)
        prices = ShadowPricer().prices(tracker)
        assert prices["b"] == 0.0
        assert prices["a"] == pytest.approx(1.0)

    def test_quota_running_ahead_is_braked(self):
        tracker = _make_tracker({"a": 10, "b": 100}, {"a": 0.5, "b": 0.5}, capacity=200)
        _admit(tracker, {"a": True}, 8)
        # used 0.04, a progress 0.8: far ahead of pace
        assert ShadowPricer().prices(tracker)["a"] == 0.0

    def test_prices_stay_in_unit_interval(self):
        rng = random.Random(7)
        pricer = ShadowPricer()
        tracker = _make_tracker(
            {"a": 30, "b": 60, "c": 5}, {"a": 0.1, "b": 0.6, "c": 0.01}, capacity=120
        )
        while tracker.remaining() > 0:
            attrs = {"a": rng.random() < 0.1, "b": rng.random() < 0.6, "c": rng.random() < 0.01}
            tracker.update(attrs, admitted=rng.random() < 0.5)
            for price in pricer.prices(tracker).values():
                assert math.isfinite(price)
                assert 0.0 <= price <= 1.0


# ── Components ───────────────────────────────────────────────────────


class TestUpperConfidence:
    def test_upper_bound_exceeds_mean(self):
        tracker = _make_tracker({"a": 10}, {"a": 0.2})
        q = tracker.quotas["a"]
        assert ShadowPricer().upper_confidence(q, 0.0) > 0.2

    def test_confidence_narrows_as_capacity_fills(self):
        tracker = _make_tracker({"a": 10}, {"a": 0.2})
        q = tracker.quotas["a"]
        pricer = ShadowPricer()
        assert pricer.upper_confidence(q, 1.0) < pricer.upper_confidence(q, 0.0)

    def test_never_exceeds_one(self):
        tracker = _make_tracker({"a": 10}, {"a": 1.0})
        assert ShadowPricer().upper_confidence(tracker.quotas["a"], 0.0) <= 1.0


class TestPacedShortfall:
    def test_early_uses_pro_rated_schedule(self):
        tracker = _make_tracker({"a": 100}, {"a": 0.5})
        q = tracker.quotas["a"]
        assert ShadowPricer().paced_shortfall(q, 0.5) == pytest.approx(50.0)

    def test_late_uses_absolute_shortfall(self):
        tracker = _make_tracker({"a": 100}, {"a": 0.5})
        q = tracker.quotas["a"]
        assert ShadowPricer().paced_shortfall(q, 0.96) == pytest.approx(100.0)

    def test_blend_is_between_the_two(self):
        tracker = _make_tracker({"a": 100}, {"a": 0.5})
        q = tracker.quotas["a"]
        value = ShadowPricer().paced_shortfall(q, 0.9)
        assert 90.0 < value < 100.0

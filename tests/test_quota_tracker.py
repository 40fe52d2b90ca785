"""Tests for quota bookkeeping and the frequency posterior."""

import pytest

from src.admission_engine.config import QuotaSettings
from src.admission_engine.errors import ConfigurationError
from src.admission_engine.models import ConstraintSpec
from src.admission_engine.quota_tracker import Quota, QuotaTracker


# ── Helpers ──────────────────────────────────────────────────────────


def _make_quota(min_required=10, prior_frequency=0.5):
    return Quota(
        attribute="a",
        min_required=min_required,
        prior_frequency=prior_frequency,
        settings=QuotaSettings(),
    )


def _make_tracker(minimums=None, frequencies=None, capacity=100):
    minimums = minimums or {"young": 10, "creative": 5}
    frequencies = frequencies if frequencies is not None else {a: 0.5 for a in minimums}
    constraints = [ConstraintSpec(a, m) for a, m in minimums.items()]
    return QuotaTracker(constraints, frequencies, capacity)


# ── Quota ────────────────────────────────────────────────────────────


class TestQuota:
    def test_update_counts_every_applicant(self):
        q = _make_quota()
        q.update(carries=False, admitted=True)
        q.update(carries=True, admitted=True)
        q.update(carries=True, admitted=False)
        assert q.seen_total == 3
        assert q.seen_true == 2
        assert q.admitted_count == 1
        assert q.rejected_seen_count == 1

    def test_posterior_starts_at_prior(self):
        assert _make_quota(prior_frequency=0.3).empirical_frequency() == pytest.approx(0.3)

    def test_posterior_moves_toward_observations(self):
        q = _make_quota(prior_frequency=0.1)
        for i in range(10):
            q.update(carries=i % 2 == 0, admitted=False)
        # (5 + 0.8) / (10 + 8)
        assert q.empirical_frequency() == pytest.approx(5.8 / 18)

    def test_unknown_prior_uses_default_pseudo_counts(self):
        assert _make_quota(prior_frequency=0.0).empirical_frequency() == pytest.approx(0.25)

    def test_progress_and_shortfall(self):
        q = _make_quota(min_required=4)
        for _ in range(3):
            q.update(carries=True, admitted=True)
        assert q.progress() == pytest.approx(0.75)
        assert q.shortfall() == 1
        assert not q.is_satisfied()

        q.update(carries=True, admitted=True)
        q.update(carries=True, admitted=True)
        assert q.progress() == 1.0
        assert q.shortfall() == 0
        assert q.overshoot() == 1
        assert q.is_satisfied()

    def test_zero_minimum_is_always_satisfied(self):
        q = _make_quota(min_required=0)
        assert q.progress() == 1.0
        assert q.is_satisfied()

    def test_scarcity(self):
        q = _make_quota(min_required=10, prior_frequency=0.5)
        assert q.scarcity(100) == pytest.approx(10 / 50)

    def test_scarcity_uses_supply_floor_when_no_seats_remain(self):
        q = _make_quota(min_required=10)
        assert q.scarcity(0) == pytest.approx(10 / 0.1)

    def test_satisfied_quota_has_no_scarcity(self):
        q = _make_quota(min_required=0)
        assert q.scarcity(5) == 0.0


# ── Validation ───────────────────────────────────────────────────────


class TestTrackerValidation:
    def test_requires_constraints(self):
        with pytest.raises(ConfigurationError):
            QuotaTracker([], {}, 100)

    def test_rejects_duplicate_attribute(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            QuotaTracker([ConstraintSpec("a", 1), ConstraintSpec("a", 2)], {}, 100)

    def test_rejects_negative_minimum(self):
        with pytest.raises(ConfigurationError, match="negative"):
            QuotaTracker([ConstraintSpec("a", -1)], {}, 100)

    @pytest.mark.parametrize("capacity", [0, -5])
    def test_rejects_non_positive_capacity(self, capacity):
        with pytest.raises(ConfigurationError, match="Capacity"):
            QuotaTracker([ConstraintSpec("a", 1)], {}, capacity)


# ── Tracker queries ──────────────────────────────────────────────────


class TestTrackerQueries:
    def test_attribute_order_is_sorted(self):
        tracker = _make_tracker({"young": 1, "creative": 1, "berlin_local": 1})
        assert tracker.attributes == ["berlin_local", "creative", "young"]

    def test_update_moves_totals(self):
        tracker = _make_tracker()
        tracker.update({"young": True}, admitted=True)
        tracker.update({"creative": True}, admitted=False)
        assert tracker.admitted_total == 1
        assert tracker.rejected_total == 1
        assert tracker.remaining() == 99
        assert tracker.used_fraction() == pytest.approx(0.01)
        assert tracker.quotas["young"].admitted_count == 1
        assert tracker.quotas["creative"].rejected_seen_count == 1
        assert tracker.quotas["creative"].seen_total == 2

    def test_unmet_and_helped(self):
        tracker = _make_tracker({"young": 1, "creative": 2})
        tracker.update({"young": True}, admitted=True)
        assert [q.attribute for q in tracker.unmet()] == ["creative"]
        assert tracker.helped_unmet({"young": True, "creative": True}) == ["creative"]
        assert tracker.helped_unmet({"young": True}) == []
        assert tracker.total_shortfall() == 2
        assert not tracker.all_satisfied()

    def test_pace_lag_and_most_lagging(self):
        tracker = _make_tracker({"young": 10, "creative": 5}, capacity=20)
        for _ in range(4):
            tracker.update({"young": True}, admitted=True)
        # used 0.2; young progress 0.4, creative progress 0
        assert tracker.pace_lag("young") == pytest.approx(-0.2)
        assert tracker.pace_lag("creative") == pytest.approx(0.2)
        assert tracker.most_lagging() == ("creative", pytest.approx(0.2))

    def test_smallest_shortfall(self):
        tracker = _make_tracker({"young": 10, "creative": 5})
        assert tracker.smallest_shortfall() == ("creative", 5)

    def test_no_lagging_or_shortfall_when_all_met(self):
        tracker = _make_tracker({"young": 0})
        assert tracker.most_lagging() is None
        assert tracker.smallest_shortfall() is None
        assert tracker.max_scarcity() == (None, 0.0)
        assert tracker.max_feasibility_ratio() == 0.0

    def test_feasibility_ratios(self):
        tracker = _make_tracker({"young": 10, "creative": 5}, capacity=100)
        ratios = tracker.feasibility_ratios()
        assert ratios["young"] == pytest.approx(10 / 50)
        assert ratios["creative"] == pytest.approx(5 / 50)
        assert tracker.max_feasibility_ratio() == pytest.approx(0.2)
        assert tracker.max_scarcity() == ("young", pytest.approx(0.2))

    def test_vectors_follow_attribute_order(self):
        tracker = _make_tracker({"young": 2, "creative": 4})
        tracker.update({"young": True, "creative": True}, admitted=True)
        assert tracker.progress_vector() == [pytest.approx(0.25), pytest.approx(0.5)]
        assert tracker.shortfall_vector() == [3, 1]

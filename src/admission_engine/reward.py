"""Scalar training signal for the value model."""

import logging
from itertools import combinations
from typing import Dict, Mapping, Optional

from src.admission_engine.config import RewardSettings
from src.admission_engine.models import AttributeStatistics
from src.admission_engine.quota_tracker import QuotaTracker

logger = logging.getLogger(__name__)


class RewardFunction:
    """Scores a decision given the quota state *before* it is applied.

    Admits are rewarded for the urgency they relieve and taxed for feeding
    quotas that are already satisfied or running ahead of schedule.
    Rejects cost a fraction of the highest outstanding price.
    """

    def __init__(
        self,
        statistics: Optional[AttributeStatistics] = None,
        settings: Optional[RewardSettings] = None,
    ):
        self.statistics = statistics or AttributeStatistics()
        self.settings = settings or RewardSettings()

    def compute(
        self,
        attributes: Mapping[str, bool],
        admitted: bool,
        tracker: QuotaTracker,
        prices: Dict[str, float],
    ) -> float:
        if admitted:
            reward = self.admit_reward(attributes, tracker, prices)
        else:
            reward = self.reject_reward(prices)
        lo, hi = self.settings.clamp
        return max(lo, min(hi, reward))

    def reject_reward(self, prices: Dict[str, float]) -> float:
        return self.settings.reject_penalty * max(prices.values(), default=0.0)

    def admit_reward(
        self,
        attributes: Mapping[str, bool],
        tracker: QuotaTracker,
        prices: Dict[str, float],
    ) -> float:
        s = self.settings
        used = tracker.used_fraction()
        helped = tracker.helped_unmet(attributes)

        reward = s.admit_scale * sum(prices.get(a, 0.0) for a in helped)
        reward += self.synergy_bonus(helped, prices)

        for attr in tracker.attributes:
            if not attributes.get(attr, False):
                continue
            quota = tracker.quotas[attr]
            if quota.is_satisfied():
                ratio = quota.overshoot() / max(1, quota.min_required)
                reward -= min(s.overshoot_tax_max, s.overshoot_tax_base + s.overshoot_tax_slope * ratio)
            else:
                ahead = quota.progress() - used - s.ahead_margin
                reward -= s.ahead_gain * max(0.0, ahead)

        if not helped:
            reward = min(reward, s.useless_admit_cap)
        return reward

    def synergy_bonus(self, helped, prices: Dict[str, float]) -> float:
        """Bonus for covering several urgent quotas with one admit.

        Pairs of negatively correlated attributes are rarer together, so
        their bonus is scaled up.
        """
        s = self.settings
        urgent = [a for a in helped if prices.get(a, 0.0) >= s.urgent_price]
        if len(urgent) < 2:
            return 0.0
        pair_values = []
        for first, second in combinations(urgent, 2):
            corr = self.statistics.correlation(first, second)
            pair_values.append(
                s.synergy_weight * prices[first] * prices[second] * (1.0 + max(0.0, -corr))
            )
        pair_values.sort(reverse=True)
        return sum(pair_values[: s.synergy_max_pairs])

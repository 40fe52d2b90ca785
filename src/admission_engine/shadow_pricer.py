"""Shadow prices: how urgently each unmet quota needs another admit.

A price blends two signals for each attribute:

* **Scarcity**: the share of the remaining seats that must still carry
  the attribute, compared with an optimistic (upper-confidence) estimate
  of how often it arrives.
* **Trajectory**: whether the quota runs ahead of or behind a uniform
  schedule over the capacity used so far.

Prices live in ``[0, 1]``; satisfied quotas always price at zero.
"""

import logging
import math
from typing import Dict, Optional

from src.admission_engine.config import PricingSettings
from src.admission_engine.quota_tracker import Quota, QuotaTracker

logger = logging.getLogger(__name__)


def _finite(value: float, fallback: float = 0.0) -> float:
    return value if math.isfinite(value) else fallback


def _sigmoid(x: float) -> float:
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


class ShadowPricer:
    """Stateless: prices are recomputed from the tracker on every call."""

    def __init__(self, settings: Optional[PricingSettings] = None):
        self.settings = settings or PricingSettings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def prices(self, tracker: QuotaTracker) -> Dict[str, float]:
        """Price every attribute in tracker order."""
        used = tracker.used_fraction()
        remaining = tracker.remaining()
        return {
            attr: self.price(tracker.quotas[attr], used, remaining)
            for attr in tracker.attributes
        }

    def price(self, quota: Quota, used: float, remaining: int) -> float:
        if quota.is_satisfied():
            return 0.0

        s = self.settings
        p_ucb = self.upper_confidence(quota, used)
        need = self.paced_shortfall(quota, used)
        gap = max(0.0, need / max(1, remaining) - p_ucb)

        lag = used - quota.progress()
        boost = s.boost_gain * max(0.0, lag - s.pace_margin)
        brake = s.brake_gain * max(0.0, -lag - s.pace_margin)

        raw = _sigmoid(s.sigmoid_slope * gap) - brake + boost
        return min(1.0, max(0.0, _finite(raw)))

    def upper_confidence(self, quota: Quota, used: float) -> float:
        """Optimistic arrival probability from a Beta posterior.

        The confidence multiplier shrinks linearly as capacity fills.
        """
        s = self.settings
        p0 = min(1.0, max(0.0, quota.prior_frequency))
        alpha = quota.seen_true + max(1e-6, p0 * s.beta_prior_strength)
        beta = (quota.seen_total - quota.seen_true) + max(
            1e-6, (1.0 - p0) * s.beta_prior_strength
        )
        total = alpha + beta
        mean = alpha / total
        std = math.sqrt(alpha * beta / (total * total * (total + 1.0)))
        k = s.ucb_k_early - (s.ucb_k_early - s.ucb_k_late) * min(1.0, max(0.0, used))
        return min(1.0, _finite(mean + k * std, fallback=mean))

    def paced_shortfall(self, quota: Quota, used: float) -> float:
        """Shortfall against the pro-rated schedule, handing over to the
        absolute shortfall as capacity runs out."""
        pace_short = max(0.0, quota.min_required * used - quota.admitted_count)
        weight = self._blend_weight(used)
        return (1.0 - weight) * pace_short + weight * quota.shortfall()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _blend_weight(self, used: float) -> float:
        start, end = self.settings.blend_start, self.settings.blend_end
        if used <= start:
            return 0.0
        if used >= end:
            return 1.0
        t = (used - start) / (end - start)
        return t * t * (3.0 - 2.0 * t)

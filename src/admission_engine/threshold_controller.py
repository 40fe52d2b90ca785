"""Adaptive admission cutoff.

The threshold is a robust quantile of recently predicted values (median
plus a normal z-score times a MAD-based spread), steered by a PI
controller that pulls the observed admit rate toward a target.
"""

import logging
import math
import random
from collections import deque
from dataclasses import dataclass
from statistics import NormalDist, median
from typing import Dict, Iterable, Optional

from src.admission_engine.config import ThresholdSettings

logger = logging.getLogger(__name__)

_STANDARD_NORMAL = NormalDist()


@dataclass
class ThresholdDecision:
    admit: bool
    value: float
    threshold: float
    noise: float


class ThresholdController:
    def __init__(
        self,
        settings: Optional[ThresholdSettings] = None,
        seed: int = 0,
        recent_values: Optional[Iterable[float]] = None,
    ):
        self.settings = settings or ThresholdSettings()
        s = self.settings
        self.window: deque = deque(maxlen=s.window_cap)
        values = list(recent_values or [])
        if values:
            self.window.extend(values[-s.window_cap:])
        else:
            self.window.extend(s.seed_start + s.seed_step * i for i in range(s.seed_count))

        self.admit_rate_ema = self.target_rate(0.0)
        self.rate_error_integral = 0.0
        self.decision_count = 0
        self.last_threshold = self.window[len(self.window) // 2]
        self.last_value = 0.0
        self.last_debug: Dict[str, float] = {}
        self._rng = random.Random(seed)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def target_rate(self, used: float, risk: float = 0.0) -> float:
        """Desired admit rate for the current capacity phase.

        Args:
            used: Fraction of capacity already filled.
            risk: Worst feasibility ratio among unmet quotas. Values above
                1.0 lower the target so the cutoff tightens.
        """
        s = self.settings
        if used < s.early_until:
            rate = s.rate_early
        elif used < s.mid_until:
            rate = s.rate_mid
        else:
            rate = s.rate_late
        pull = min(s.risk_pull_max, s.risk_pull_slope * max(0.0, risk - 1.0))
        return max(s.rate_min, rate - pull)

    def compute_threshold(self, used: float, urgency: float = 0.0, risk: float = 0.0) -> float:
        s = self.settings
        values = list(self.window) or [0.0]
        med = median(values)
        mad = median(abs(v - med) for v in values)
        sigma = max(s.mad_scale * mad, s.sigma_floor)

        target = self.target_rate(used, risk)
        err = self.admit_rate_ema - target
        tail = min(1.0 - 1e-9, max(1e-9, 1.0 - target))
        z = _STANDARD_NORMAL.inv_cdf(tail)
        quantile = med + z * sigma

        cap_k = s.capacity_bias_early if used < 0.5 else s.capacity_bias_late
        capacity_bias = cap_k * used * sigma

        urgency_scale = (max(0.0, used - 0.3) / 0.6) ** 1.2
        urgency_relief = min(s.urgency_max, max(0.0, urgency)) * urgency_scale

        integral = (1.0 - s.integral_beta) * self.rate_error_integral + s.integral_gain * err
        self.rate_error_integral = max(-s.integral_limit, min(s.integral_limit, integral))
        boost = s.boost_factor if err > s.boost_edge else 1.0
        rate_adjustment = boost * (s.k_p * err + s.k_i * self.rate_error_integral)

        threshold = quantile + capacity_bias + rate_adjustment - urgency_relief
        if not math.isfinite(threshold):
            threshold = med
        lo, hi = med - s.clip_sigmas * sigma, med + s.clip_sigmas * sigma
        threshold = max(lo, min(hi, threshold))

        self.last_debug = {
            "median": med,
            "mad": mad,
            "sigma": sigma,
            "z": z,
            "quantile": quantile,
            "capacity_bias": capacity_bias,
            "rate_adjustment": rate_adjustment,
            "urgency_relief": urgency_relief,
            "target": target,
            "error": err,
            "threshold": threshold,
        }
        return threshold

    def decide(
        self, value: float, used: float, urgency: float = 0.0, risk: float = 0.0
    ) -> ThresholdDecision:
        """Compare a predicted value with the cutoff and record the value.

        The cutoff is computed from the window before ``value`` is added.
        """
        self.decision_count += 1
        threshold = self.compute_threshold(used, urgency, risk)
        noise = self._noise()
        admit = value + noise > threshold
        self._push(value)
        self.last_threshold = threshold
        self.last_value = value
        logger.debug(
            "value=%.3f noise=%+.3f threshold=%.3f -> %s",
            value, noise, threshold, "admit" if admit else "reject",
        )
        return ThresholdDecision(admit=admit, value=value, threshold=threshold, noise=noise)

    def record_outcome(self, admitted: bool):
        beta = self.settings.ema_beta
        self.admit_rate_ema = (1.0 - beta) * self.admit_rate_ema + beta * (1.0 if admitted else 0.0)

    def recent_values(self):
        return list(self.window)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _push(self, value: float):
        clip = self.settings.soft_clip
        if math.isfinite(value):
            self.window.append(clip * math.tanh(value / clip))

    def _noise(self) -> float:
        s = self.settings
        decay = min(1.0, self.decision_count / s.noise_decay_decisions)
        boost = s.noise_boost if self.decision_count < s.noise_boost_decisions else 1.0
        amplitude = s.noise_amplitude * boost * (1.0 - (1.0 - s.noise_floor_fraction) * decay)
        return (self._rng.random() - 0.5) * amplitude

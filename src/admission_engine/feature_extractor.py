"""Feature vectors for the value model."""

import math
from typing import List, Mapping

from src.admission_engine.quota_tracker import QuotaTracker

CAPACITY_EXPONENT = 0.8
SCARCITY_SCALE = 0.5
SCARCITY_CAP = 3.0


class FeatureExtractor:
    """Builds ``[indicators..., capacity_used, scarcity]``.

    Indicators follow the tracker's attribute order and are 1.0 only when
    the applicant carries an attribute whose quota is still unmet.
    """

    def __init__(self, attributes: List[str]):
        self.attributes = list(attributes)

    @property
    def dimension(self) -> int:
        return len(self.attributes) + 2

    @property
    def capacity_index(self) -> int:
        return len(self.attributes)

    @property
    def scarcity_index(self) -> int:
        return len(self.attributes) + 1

    def extract(self, attributes: Mapping[str, bool], tracker: QuotaTracker) -> List[float]:
        remaining = tracker.remaining()
        features: List[float] = []
        worst = 0.0
        for attr in self.attributes:
            quota = tracker.quotas[attr]
            helps = bool(attributes.get(attr, False)) and not quota.is_satisfied()
            features.append(1.0 if helps else 0.0)
            if helps:
                worst = max(worst, quota.scarcity(remaining))

        features.append(tracker.used_fraction() ** CAPACITY_EXPONENT)
        scarcity = SCARCITY_SCALE * min(SCARCITY_CAP, worst)
        features.append(scarcity if math.isfinite(scarcity) else 0.0)
        return features

    def indicator_only(self, features: List[float]) -> List[float]:
        """Copy of ``features`` with the capacity and scarcity terms zeroed."""
        masked = list(features)
        masked[self.capacity_index] = 0.0
        masked[self.scarcity_index] = 0.0
        return masked

    def one_hot(self, attribute: str) -> List[float]:
        vec = [0.0] * self.dimension
        vec[self.attributes.index(attribute)] = 1.0
        return vec

"""Per-attribute quota bookkeeping with a Bayesian frequency estimate."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from src.admission_engine.config import QuotaSettings
from src.admission_engine.errors import ConfigurationError
from src.admission_engine.models import ConstraintSpec

logger = logging.getLogger(__name__)


@dataclass
class Quota:
    """State of one attribute quota.

    ``seen_total`` counts every applicant observed so the posterior
    frequency is a per-arrival rate; ``seen_true`` counts the ones that
    carried the attribute.
    """

    attribute: str
    min_required: int
    prior_frequency: float
    settings: QuotaSettings
    admitted_count: int = 0
    rejected_seen_count: int = 0
    seen_true: int = 0
    seen_total: int = 0

    def update(self, carries: bool, admitted: bool):
        """Record one observed applicant."""
        self.seen_total += 1
        if not carries:
            return
        self.seen_true += 1
        if admitted:
            self.admitted_count += 1
        else:
            self.rejected_seen_count += 1

    def empirical_frequency(self) -> float:
        """Beta-posterior mean of the arrival frequency."""
        prior_total = self.settings.prior_total_weight
        if self.prior_frequency > 0:
            prior_true = self.prior_frequency * prior_total
        else:
            prior_true = self.settings.default_prior_true
        estimate = (self.seen_true + prior_true) / max(1.0, self.seen_total + prior_total)
        return max(self.settings.frequency_floor, estimate)

    def progress(self) -> float:
        if self.min_required <= 0:
            return 1.0
        return min(1.0, self.admitted_count / self.min_required)

    def shortfall(self) -> int:
        return max(0, self.min_required - self.admitted_count)

    def overshoot(self) -> int:
        return max(0, self.admitted_count - self.min_required)

    def is_satisfied(self) -> bool:
        return self.admitted_count >= self.min_required

    def scarcity(self, remaining_slots: int) -> float:
        """Shortfall relative to the expected supply in the remaining seats."""
        if self.is_satisfied():
            return 0.0
        expected = remaining_slots * self.empirical_frequency()
        return self.shortfall() / max(self.settings.supply_floor, expected)


class QuotaTracker:
    """Owns every :class:`Quota` plus the admitted/rejected totals.

    Attribute order is the sorted list of constraint attributes; feature
    layout and weight indexing rely on it.
    """

    def __init__(
        self,
        constraints: List[ConstraintSpec],
        frequencies: Mapping[str, float],
        capacity: int,
        settings: Optional[QuotaSettings] = None,
    ):
        self._validate(constraints, capacity)
        self.settings = settings or QuotaSettings()
        self.capacity = capacity
        self.attributes: List[str] = sorted(c.attribute for c in constraints)
        by_name = {c.attribute: c for c in constraints}
        self.quotas: Dict[str, Quota] = {
            attr: Quota(
                attribute=attr,
                min_required=by_name[attr].min_count,
                prior_frequency=float(frequencies.get(attr, 0.0)),
                settings=self.settings,
            )
            for attr in self.attributes
        }
        self.admitted_total = 0
        self.rejected_total = 0

    @staticmethod
    def _validate(constraints: List[ConstraintSpec], capacity: int):
        if capacity <= 0:
            raise ConfigurationError(f"Capacity must be positive, got {capacity}")
        if not constraints:
            raise ConfigurationError("At least one constraint is required")
        seen = set()
        for c in constraints:
            if c.attribute in seen:
                raise ConfigurationError(f"Duplicate constraint for {c.attribute!r}")
            if c.min_count < 0:
                raise ConfigurationError(
                    f"Constraint {c.attribute!r} has negative minCount {c.min_count}"
                )
            seen.add(c.attribute)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update(self, attributes: Mapping[str, bool], admitted: bool):
        """Apply one decision to every quota and to the totals."""
        for attr, quota in self.quotas.items():
            quota.update(bool(attributes.get(attr, False)), admitted)
        if admitted:
            self.admitted_total += 1
        else:
            self.rejected_total += 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def remaining(self) -> int:
        return max(0, self.capacity - self.admitted_total)

    def used_fraction(self) -> float:
        return self.admitted_total / self.capacity

    def unmet(self) -> List[Quota]:
        return [self.quotas[a] for a in self.attributes if not self.quotas[a].is_satisfied()]

    def all_satisfied(self) -> bool:
        return not self.unmet()

    def total_shortfall(self) -> int:
        return sum(q.shortfall() for q in self.quotas.values())

    def helped_unmet(self, attributes: Mapping[str, bool]) -> List[str]:
        """Unmet attributes the applicant carries, in attribute order."""
        return [q.attribute for q in self.unmet() if attributes.get(q.attribute, False)]

    def pace_lag(self, attribute: str) -> float:
        """How far the quota trails a uniform admission schedule."""
        return self.used_fraction() - self.quotas[attribute].progress()

    def most_lagging(self) -> Optional[Tuple[str, float]]:
        """Unmet attribute with the largest pace lag, or None."""
        best: Optional[Tuple[str, float]] = None
        for quota in self.unmet():
            lag = self.pace_lag(quota.attribute)
            if best is None or lag > best[1]:
                best = (quota.attribute, lag)
        return best

    def smallest_shortfall(self) -> Optional[Tuple[str, int]]:
        best: Optional[Tuple[str, int]] = None
        for quota in self.unmet():
            if best is None or quota.shortfall() < best[1]:
                best = (quota.attribute, quota.shortfall())
        return best

    def feasibility_ratios(self) -> Dict[str, float]:
        """Shortfall over expected supply for every unmet attribute."""
        remaining = self.remaining()
        return {
            q.attribute: q.shortfall() / max(1e-6, remaining * q.empirical_frequency())
            for q in self.unmet()
        }

    def max_feasibility_ratio(self) -> float:
        return max(self.feasibility_ratios().values(), default=0.0)

    def max_scarcity(self) -> Tuple[Optional[str], float]:
        """Unmet attribute with the highest scarcity and that scarcity."""
        remaining = self.remaining()
        worst: Tuple[Optional[str], float] = (None, 0.0)
        for quota in self.unmet():
            s = quota.scarcity(remaining)
            if s > worst[1]:
                worst = (quota.attribute, s)
        return worst

    def progress_vector(self) -> List[float]:
        return [self.quotas[a].progress() for a in self.attributes]

    def shortfall_vector(self) -> List[int]:
        return [self.quotas[a].shortfall() for a in self.attributes]

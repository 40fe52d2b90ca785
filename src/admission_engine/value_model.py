"""Online linear value model (diagonal ridge-regression bandit)."""

import logging
from typing import Dict, List, Optional, Sequence

from src.admission_engine.config import BanditSettings
from src.admission_engine.errors import ConfigurationError, SnapshotMismatchError
from src.admission_engine.models import DecisionRecord, ModelSnapshot

logger = logging.getLogger(__name__)


class ValueModel:
    """Predicts how desirable admitting an applicant is.

    The layout is ``[indicator_0 .. indicator_{n-1}, capacity, scarcity]``.
    Only the diagonal of ``A`` is accumulated; the full matrix is kept so
    the snapshot format stays stable.
    """

    def __init__(self, indicator_count: int, settings: Optional[BanditSettings] = None):
        if indicator_count <= 0:
            raise ConfigurationError(f"indicator_count must be positive, got {indicator_count}")
        self.settings = settings or BanditSettings()
        self.indicator_count = indicator_count
        self.feature_dim = indicator_count + 2
        self.A: List[List[float]] = []
        self.b: List[float] = []
        self.weights: List[float] = []
        self.update_count = 0
        self.reset()

    @property
    def capacity_index(self) -> int:
        return self.indicator_count

    @property
    def scarcity_index(self) -> int:
        return self.indicator_count + 1

    def prior_weights(self) -> List[float]:
        s = self.settings
        return [s.indicator_prior] * self.indicator_count + [s.capacity_prior, s.scarcity_prior]

    def reset(self):
        lam = self.settings.ridge_lambda
        n = self.feature_dim
        self.A = [[lam if i == j else 0.0 for j in range(n)] for i in range(n)]
        prior = self.prior_weights()
        self.b = [lam * w for w in prior]
        self.weights = list(prior)
        self.update_count = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict(self, features: Sequence[float]) -> float:
        return sum(w * f for w, f in zip(self.weights, features))

    def update(self, features: Sequence[float], reward: float):
        """Accumulate one observation; weights change on the next recompute."""
        lo, hi = self.settings.reward_clamp
        r = max(lo, min(hi, reward))
        eta = self.settings.eta
        for i, f in enumerate(features[: self.feature_dim]):
            self.A[i][i] += eta * f * f
            self.b[i] += eta * r * f
        self.update_count += 1

    def recompute_weights(self, in_warmup: bool = False):
        """Solve the diagonal system, then apply the sign constraints.

        Args:
            in_warmup: Floor indicator weights at zero while too little
                signal exists to justify a negative bias.
        """
        s = self.settings
        for i in range(self.feature_dim):
            if self.A[i][i] > s.diagonal_epsilon:
                self.weights[i] = self.b[i] / self.A[i][i]

        lo, hi = s.weight_clamp
        self.weights = [max(lo, min(hi, w)) for w in self.weights]
        self.weights[self.capacity_index] = min(s.capacity_ceiling, self.weights[self.capacity_index])
        self.weights[self.scarcity_index] = max(s.scarcity_floor, self.weights[self.scarcity_index])
        if in_warmup:
            for i in range(self.indicator_count):
                self.weights[i] = max(0.0, self.weights[i])

    def warm_start(self, decisions: Sequence[DecisionRecord]) -> int:
        """Replay recent decisions from earlier games with recency decay.

        Returns:
            Number of decisions replayed.
        """
        valid = [d for d in decisions if len(d.features) == self.feature_dim]
        valid = valid[-self.settings.history_limit:]
        for idx, record in enumerate(valid):
            age = len(valid) - idx
            self.update(record.features, record.reward * self.settings.history_decay ** age)
        if valid:
            self.recompute_weights()
            logger.info("Warm-started value model from %d decisions", len(valid))
        return len(valid)

    def summary(self, attributes: Sequence[str]) -> Dict:
        indicator_weights = self.weights[: self.indicator_count]
        return {
            "indicators": {a: round(w, 3) for a, w in zip(attributes, indicator_weights)},
            "capacity": round(self.weights[self.capacity_index], 3),
            "scarcity": round(self.weights[self.scarcity_index], 3),
            "mean_abs": round(sum(abs(w) for w in self.weights) / len(self.weights), 3),
            "updates": self.update_count,
        }

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_snapshot(
        self, admit_rate_ema: float, recent_values: Sequence[float], max_capacity: int
    ) -> ModelSnapshot:
        return ModelSnapshot(
            A=[list(row) for row in self.A],
            b=list(self.b),
            weights=list(self.weights),
            admit_rate_ema=admit_rate_ema,
            recent_values=list(recent_values),
            feature_dim=self.feature_dim,
            max_capacity=max_capacity,
            indicator_count=self.indicator_count,
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ModelSnapshot,
        indicator_count: int,
        settings: Optional[BanditSettings] = None,
    ) -> "ValueModel":
        """Restore A, b and weights verbatim.

        Raises:
            SnapshotMismatchError: If the snapshot was taken for a
                different number of attributes or is internally
                inconsistent.
        """
        expected = indicator_count + 2
        if snapshot.feature_dim != expected:
            raise SnapshotMismatchError(
                f"Snapshot featureDim {snapshot.feature_dim} != {expected}"
            )
        if (
            len(snapshot.weights) != expected
            or len(snapshot.b) != expected
            or len(snapshot.A) != expected
            or any(len(row) != expected for row in snapshot.A)
        ):
            raise SnapshotMismatchError("Snapshot arrays do not match featureDim")

        model = cls(indicator_count, settings)
        model.A = [list(row) for row in snapshot.A]
        model.b = list(snapshot.b)
        model.weights = list(snapshot.weights)
        return model

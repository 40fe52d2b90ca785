"""Bouncer policies.

:class:`BanditBouncer` wraps a learned value model in a fixed sequence of
override gates. The gates handle the cases where a rule is clearly right
(reserving the last seats for quota carriers, forcing admits for lagging
quotas, filling up once every quota is met); everything else goes to the
value model and the adaptive threshold.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from src.admission_engine.config import DEFAULT_CAPACITY, DEFAULT_ENGINE_CONFIG, EngineConfig
from src.admission_engine.errors import SnapshotMismatchError
from src.admission_engine.feature_extractor import FeatureExtractor
from src.admission_engine.models import (
    DecisionContext,
    DecisionRecord,
    GameSetup,
    GameStatus,
    GameStatusRunning,
    ModelSnapshot,
    status_rejected_count,
)
from src.admission_engine.quota_tracker import QuotaTracker
from src.admission_engine.reward import RewardFunction
from src.admission_engine.shadow_pricer import ShadowPricer
from src.admission_engine.threshold_controller import ThresholdController
from src.admission_engine.value_model import ValueModel

logger = logging.getLogger(__name__)

# How a decision feeds the value model
LEARN_NONE = "none"
LEARN_ADMIT = "admit"
LEARN_POLICY = "policy"


class Bouncer(ABC):
    """Interface every door policy implements."""

    @abstractmethod
    def admit(self, status: GameStatusRunning) -> bool:
        """Decide on ``status.next_person``; the decision is final."""

    @abstractmethod
    def get_progress(self) -> Dict:
        pass

    @abstractmethod
    def get_output(self, final_status: Optional[GameStatus] = None) -> Dict:
        pass


@dataclass
class GateOutcome:
    admit: bool
    reason: str
    learning: str = LEARN_NONE
    predicted_value: Optional[float] = None
    in_warmup: bool = False


class BanditBouncer(Bouncer):
    """Gate-guarded linear bandit.

    Args:
        setup: Constraints and statistics of the current game.
        capacity: Number of seats in the venue.
        config: Engine tuning parameters.
        snapshot: Model state saved by an earlier game, if any.
        history: Decisions from earlier games, replayed when no usable
            snapshot is available.
    """

    def __init__(
        self,
        setup: GameSetup,
        capacity: int = DEFAULT_CAPACITY,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        snapshot: Optional[ModelSnapshot] = None,
        history: Sequence[DecisionRecord] = (),
    ):
        self.setup = setup
        self.config = config
        self.tracker = QuotaTracker(
            setup.constraints,
            setup.statistics.relative_frequencies,
            capacity,
            config.quota,
        )
        self.extractor = FeatureExtractor(self.tracker.attributes)
        self.pricer = ShadowPricer(config.pricing)
        self.reward_fn = RewardFunction(setup.statistics, config.reward)
        self.model, recent_values = self._build_model(snapshot, history)
        self.threshold = ThresholdController(config.threshold, config.seed, recent_values)
        self.decisions: List[DecisionRecord] = []
        self.last_reason = ""

        logger.info(
            "Bouncer ready for game %s: capacity=%d, constraints=%s, start=%s",
            setup.game_id,
            capacity,
            {c.attribute: c.min_count for c in setup.constraints},
            self.start_mode,
        )

    def _build_model(
        self, snapshot: Optional[ModelSnapshot], history: Sequence[DecisionRecord]
    ) -> Tuple[ValueModel, List[float]]:
        indicator_count = len(self.tracker.attributes)
        if snapshot is not None:
            try:
                model = ValueModel.from_snapshot(snapshot, indicator_count, self.config.bandit)
                self.start_mode = "snapshot"
                return model, list(snapshot.recent_values)
            except SnapshotMismatchError as e:
                logger.warning("Ignoring saved snapshot: %s", e)

        model = ValueModel(indicator_count, self.config.bandit)
        replayed = model.warm_start(history) if history else 0
        self.start_mode = "history" if replayed else "cold"
        return model, []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def admit(self, status: GameStatusRunning) -> bool:
        attributes = status.next_person.attributes
        context = self._context()
        prices = self.pricer.prices(self.tracker)
        features = self.extractor.extract(attributes, self.tracker)

        outcome = self._evaluate(attributes, features, prices)
        self._apply(attributes, features, prices, outcome, context)
        return outcome.admit

    def get_progress(self) -> Dict:
        t = self.tracker
        remaining = t.remaining()
        prices = self.pricer.prices(t)
        used = t.used_fraction()
        risk = t.max_feasibility_ratio()
        target = self.threshold.target_rate(used, risk)
        return {
            "attributes": [
                {
                    "attribute": q.attribute,
                    "admitted": q.admitted_count,
                    "required": q.min_required,
                    "satisfied": q.is_satisfied(),
                    "progress": q.progress(),
                    "shortfall": q.shortfall(),
                    "frequency": q.prior_frequency,
                    "empirical_frequency": q.empirical_frequency(),
                    "scarcity": q.scarcity(remaining),
                    "price": prices[q.attribute],
                }
                for q in (t.quotas[a] for a in t.attributes)
            ],
            "remaining_slots": remaining,
            "total_admitted": t.admitted_total,
            "total_rejected": t.rejected_total,
            "threshold": self.threshold.last_threshold,
            "last_value": self.threshold.last_value,
            "admit_rate_ema": round(self.threshold.admit_rate_ema, 3),
            "target_rate": round(target, 3),
            "rate_error": round(self.threshold.admit_rate_ema - target, 3),
            "max_feasibility_ratio": risk,
            "weights": self.model.summary(t.attributes),
            "last_reason": self.last_reason,
        }

    def get_output(self, final_status: Optional[GameStatus] = None) -> Dict:
        """Summarise the finished game.

        The final score counts real rejections plus an estimate of the
        rejections still needed to fill unmet quotas and a penalty for
        overshooting satisfied ones.
        """
        t = self.tracker
        rejected = (
            status_rejected_count(final_status, t.rejected_total)
            if final_status is not None
            else t.rejected_total
        )
        extra = self.estimated_extra_rejections()
        overshoot_penalty = 0.5 * sum(q.overshoot() for q in t.quotas.values())
        final_score = rejected + extra + overshoot_penalty

        status = final_status.status if final_status is not None else "running"
        reason = getattr(final_status, "reason", None)
        logger.info(
            "Game %s %s: admitted=%d rejected=%d score=%.1f",
            self.setup.game_id, status, t.admitted_total, rejected, final_score,
        )
        return {
            "game_id": self.setup.game_id,
            "status": status,
            "reason": reason,
            "final_score": final_score,
            "admitted_count": t.admitted_total,
            "rejected_count": rejected,
            "quotas_satisfied": t.all_satisfied(),
            "estimated_extra_rejections": extra,
            "overshoot_penalty": overshoot_penalty,
            "start_mode": self.start_mode,
            "progress": self.get_progress(),
            "snapshot": self.snapshot().to_dict(),
            "decisions": [d.to_dict() for d in self.decisions],
            "timestamp": datetime.now().isoformat(),
        }

    def snapshot(self) -> ModelSnapshot:
        return self.model.to_snapshot(
            self.threshold.admit_rate_ema,
            self.threshold.recent_values(),
            self.tracker.capacity,
        )

    def estimated_extra_rejections(self) -> float:
        """Expected non-carriers to turn away before each shortfall is met."""
        total = 0.0
        for quota in self.tracker.unmet():
            f = quota.empirical_frequency()
            total += quota.shortfall() * (1.0 - f) / f
        return total

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _evaluate(
        self, attributes: Mapping[str, bool], features: List[float], prices: Dict[str, float]
    ) -> GateOutcome:
        t = self.tracker
        g = self.config.gates
        used = t.used_fraction()
        remaining = t.remaining()
        helped = t.helped_unmet(attributes)
        unmet = t.unmet()

        if remaining <= 0:
            return GateOutcome(False, "capacity_full")

        if unmet:
            total_short = t.total_shortfall()
            if remaining <= total_short + g.reservation_buffer and not helped:
                return GateOutcome(False, "reservation")
            if remaining == total_short:
                return GateOutcome(bool(helped), "strict_finisher", LEARN_ADMIT)
            if used < g.anti_fill_until and not helped:
                return GateOutcome(False, "anti_fill")
            if self._overshoots(attributes, helped):
                return GateOutcome(False, "overshoot_guard")

        passed_pace = False
        pace = self._pace_gate(attributes, helped)
        if pace is not None:
            if not pace:
                return GateOutcome(False, "pace_gate")
            passed_pace = True

        if any(t.pace_lag(a) > g.lagger_min_lag for a in helped):
            return GateOutcome(True, "lagger_force", LEARN_ADMIT)

        worst_attr, worst_scarcity = t.max_scarcity()
        if (worst_attr in helped and worst_scarcity >= g.severe_scarcity) or len(
            helped
        ) >= g.multi_help_count:
            return GateOutcome(True, "severe_scarcity", LEARN_ADMIT)

        if helped:
            self._inject_hints(attributes, features, prices, helped)

        if not unmet and used >= g.fill_enable_at_used:
            return GateOutcome(True, "fill")

        smallest = t.smallest_shortfall()
        if (
            smallest is not None
            and used >= g.finish_enable_at_used
            and smallest[1] <= g.finish_max_shortfall
            and attributes.get(smallest[0], False)
            and remaining >= g.finish_comfort_factor * smallest[1]
        ):
            return GateOutcome(True, "finish_helper", LEARN_ADMIT)

        if remaining <= g.micro_finish_slots:
            lagging = t.most_lagging()
            targets = {x[0] for x in (lagging, smallest) if x is not None}
            if any(attributes.get(a, False) for a in targets):
                return GateOutcome(True, "micro_finish", LEARN_ADMIT)

        return self._bandit_decision(features, prices, helped, passed_pace)

    def _overshoots(self, attributes: Mapping[str, bool], helped: List[str]) -> bool:
        """Carries an overshot quota and helps no lagging one."""
        t = self.tracker
        g = self.config.gates
        overshot = any(
            attributes.get(q.attribute, False)
            and q.is_satisfied()
            and q.overshoot() >= max(g.overshoot_min_count, g.overshoot_min_ratio * q.min_required)
            for q in t.quotas.values()
        )
        if not overshot:
            return False
        return not any(t.pace_lag(a) > g.lagger_min_lag for a in helped)

    def _pace_gate(self, attributes: Mapping[str, bool], helped: List[str]) -> Optional[bool]:
        """None when the gate is inactive, else whether the applicant passes."""
        t = self.tracker
        g = self.config.gates
        lagging = t.most_lagging()
        if lagging is None or lagging[1] <= g.pace_min_lag:
            return None

        attr, lag = lagging
        scarcity = t.quotas[attr].scarcity(t.remaining())
        start = g.pace_starts[-1][1]
        for min_scarcity, start_at in g.pace_starts:
            if scarcity >= min_scarcity:
                start = start_at
                break

        used = t.used_fraction()
        if used < start:
            return None
        if used >= g.pace_hard_cutoff:
            return bool(attributes.get(attr, False))
        return any(t.pace_lag(a) >= g.pace_near_ratio * lag for a in helped)

    def _inject_hints(
        self,
        attributes: Mapping[str, bool],
        features: List[float],
        prices: Dict[str, float],
        helped: List[str],
    ):
        t = self.tracker
        g = self.config.gates
        hint = g.hint_gain * sum(prices.get(a, 0.0) for a in helped)
        if hint > 0:
            self.model.update(self.extractor.indicator_only(features), hint)

        remaining = t.remaining()
        for attr in helped:
            ahead = -t.pace_lag(attr) > g.pace_min_lag
            abundant = t.quotas[attr].scarcity(remaining) < g.abundance_scarcity
            if ahead or abundant:
                self.model.update(self.extractor.one_hot(attr), -g.anti_hint_gain)

    def _bandit_decision(
        self,
        features: List[float],
        prices: Dict[str, float],
        helped: List[str],
        passed_pace: bool,
    ) -> GateOutcome:
        t = self.tracker
        g = self.config.gates
        b = self.config.bandit
        used = t.used_fraction()
        in_warmup = used < b.warmup_used_max or self.threshold.admit_rate_ema < b.warmup_min_ema

        self.model.recompute_weights(in_warmup)
        value = self.model.predict(features)

        bias = 0.0
        if helped:
            max_price = max(prices.get(a, 0.0) for a in helped)
            max_lag = max(max(0.0, t.pace_lag(a)) for a in helped)
            bias = g.helper_price_bonus * max_price + g.helper_lag_gain * max_lag
        elif t.unmet() and used >= g.non_helper_cutover:
            bias = g.non_helper_penalty
        if passed_pace:
            bias = max(0.0, bias)

        risk = t.max_feasibility_ratio()
        urgency = min(self.config.threshold.urgency_max, math.log1p(math.e * risk))
        decision = self.threshold.decide(value + bias, used, urgency, risk)
        return GateOutcome(
            decision.admit,
            "bandit",
            LEARN_POLICY,
            predicted_value=value,
            in_warmup=in_warmup,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _apply(
        self,
        attributes: Mapping[str, bool],
        features: List[float],
        prices: Dict[str, float],
        outcome: GateOutcome,
        context: DecisionContext,
    ):
        if outcome.reason == "fill":
            reward = 0.0
        else:
            reward = self.reward_fn.compute(attributes, outcome.admit, self.tracker, prices)

        if outcome.learning == LEARN_ADMIT and outcome.admit:
            self.model.update(features, reward)
        elif outcome.learning == LEARN_POLICY:
            if outcome.admit:
                self.model.update(features, reward)
            elif not outcome.in_warmup:
                self.model.update(
                    features, max(self.config.gates.reject_learning_floor, reward)
                )

        predicted = outcome.predicted_value
        if predicted is None:
            predicted = self.model.predict(features)

        self.tracker.update(attributes, outcome.admit)
        self.threshold.record_outcome(outcome.admit)
        self.decisions.append(
            DecisionRecord(
                context=context,
                action="admit" if outcome.admit else "reject",
                attributes=dict(attributes),
                reward=reward,
                features=list(features),
                predicted_value=predicted,
                reason=outcome.reason,
            )
        )
        self.last_reason = outcome.reason
        logger.debug(
            "#%d %s via %s (reward=%.3f, remaining=%d)",
            len(self.decisions),
            "admit" if outcome.admit else "reject",
            outcome.reason,
            reward,
            self.tracker.remaining(),
        )

    def _context(self) -> DecisionContext:
        t = self.tracker
        return DecisionContext(
            admitted_count=t.admitted_total,
            remaining_slots=t.remaining(),
            progress=t.progress_vector(),
            shortfalls=t.shortfall_vector(),
        )

"""Tuning parameters for the admission engine.

Every knob lives in one immutable :class:`EngineConfig` that is built once
and handed to each component constructor. The gate thresholds are
empirically tuned defaults, not invariants; override them with
``dataclasses.replace`` when experimenting.
"""

from dataclasses import dataclass, field
from typing import Tuple

# Venue size used by the arena scenarios
DEFAULT_CAPACITY = 1000


@dataclass(frozen=True)
class QuotaSettings:
    """Beta prior used for the online attribute frequency estimate."""

    prior_total_weight: float = 8.0
    default_prior_true: float = 2.0  # used when no prior frequency is known
    frequency_floor: float = 1e-6
    supply_floor: float = 0.1  # min expected supply in the scarcity ratio


@dataclass(frozen=True)
class PricingSettings:
    beta_prior_strength: float = 20.0
    ucb_k_early: float = 1.5
    ucb_k_late: float = 0.25
    blend_start: float = 0.85  # pace shortfall -> absolute shortfall
    blend_end: float = 0.95
    sigmoid_slope: float = 6.0
    pace_margin: float = 0.03
    boost_gain: float = 1.5
    brake_gain: float = 1.5


@dataclass(frozen=True)
class BanditSettings:
    eta: float = 0.12
    ridge_lambda: float = 0.1
    indicator_prior: float = 1.0
    capacity_prior: float = -0.8
    scarcity_prior: float = 1.2
    weight_clamp: Tuple[float, float] = (-5.0, 5.0)
    capacity_ceiling: float = -0.1
    scarcity_floor: float = 0.0
    reward_clamp: Tuple[float, float] = (-50.0, 50.0)
    warmup_used_max: float = 0.15
    warmup_min_ema: float = 0.02
    history_limit: int = 100
    history_decay: float = 0.9
    diagonal_epsilon: float = 1e-6


@dataclass(frozen=True)
class ThresholdSettings:
    # Target admit rate by capacity phase
    rate_early: float = 0.22
    rate_mid: float = 0.22
    rate_late: float = 0.22
    rate_min: float = 0.08
    early_until: float = 0.33
    mid_until: float = 0.66
    risk_pull_slope: float = 0.025
    risk_pull_max: float = 0.04

    # Rolling window of soft-clipped values
    window_cap: int = 500
    seed_count: int = 60
    seed_start: float = 1.6
    seed_step: float = 0.01
    soft_clip: float = 8.0

    # Robust spread
    mad_scale: float = 1.4826
    sigma_floor: float = 0.4

    # PI controller
    ema_beta: float = 0.035
    integral_beta: float = 0.002  # leak per decision
    integral_gain: float = 0.2
    integral_limit: float = 2.0
    k_p: float = 1.6
    k_i: float = 0.6
    boost_edge: float = 0.2
    boost_factor: float = 1.35
    capacity_bias_early: float = 0.5
    capacity_bias_late: float = 0.9
    urgency_max: float = 2.5
    clip_sigmas: float = 3.0

    # Exploration noise
    noise_amplitude: float = 0.2
    noise_boost: float = 1.5
    noise_boost_decisions: int = 200
    noise_decay_decisions: int = 400
    noise_floor_fraction: float = 0.5


@dataclass(frozen=True)
class RewardSettings:
    reject_penalty: float = -0.5
    admit_scale: float = 2.0
    urgent_price: float = 0.6
    synergy_weight: float = 0.25
    synergy_max_pairs: int = 3
    overshoot_tax_base: float = 0.3
    overshoot_tax_slope: float = 1.0
    overshoot_tax_max: float = 2.2
    ahead_margin: float = 0.04
    ahead_gain: float = 1.0
    useless_admit_cap: float = -0.5
    clamp: Tuple[float, float] = (-2.0, 6.0)


@dataclass(frozen=True)
class GateSettings:
    reservation_buffer: int = 1
    anti_fill_until: float = 0.70

    overshoot_min_count: int = 2
    overshoot_min_ratio: float = 0.02

    # Pace gate start point keyed by scarcity of the most-lagging attribute,
    # checked in order: (min scarcity, start at used fraction)
    pace_starts: Tuple[Tuple[float, float], ...] = ((2.0, 0.30), (1.2, 0.45), (0.0, 0.60))
    pace_min_lag: float = 0.02
    pace_hard_cutoff: float = 0.95
    pace_near_ratio: float = 0.8

    lagger_min_lag: float = 0.10
    severe_scarcity: float = 2.5
    multi_help_count: int = 2

    hint_gain: float = 0.3
    anti_hint_gain: float = 0.5
    abundance_scarcity: float = 0.5

    fill_enable_at_used: float = 0.9
    finish_enable_at_used: float = 0.9
    finish_max_shortfall: int = 3
    finish_comfort_factor: float = 2.0
    micro_finish_slots: int = 5

    # Bandit fallback pacing bias
    helper_price_bonus: float = 0.5
    helper_lag_gain: float = 1.0
    non_helper_penalty: float = -1.5
    non_helper_cutover: float = 0.5
    reject_learning_floor: float = -0.3


@dataclass(frozen=True)
class EngineConfig:
    quota: QuotaSettings = field(default_factory=QuotaSettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)
    bandit: BanditSettings = field(default_factory=BanditSettings)
    threshold: ThresholdSettings = field(default_factory=ThresholdSettings)
    reward: RewardSettings = field(default_factory=RewardSettings)
    gates: GateSettings = field(default_factory=GateSettings)
    seed: int = 0


DEFAULT_ENGINE_CONFIG = EngineConfig()

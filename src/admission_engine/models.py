"""Data models shared by the admission engine and the arena boundary."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from src.admission_engine.errors import ConfigurationError


@dataclass
class ConstraintSpec:
    """A single quota: at least ``min_count`` admits carrying ``attribute``."""

    attribute: str
    min_count: int


@dataclass
class AttributeStatistics:
    """Offline estimates published by the arena at game start."""

    relative_frequencies: Dict[str, float] = field(default_factory=dict)
    correlations: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def correlation(self, first: str, second: str) -> float:
        return float(self.correlations.get(first, {}).get(second, 0.0))


@dataclass
class GameSetup:
    """Response of the arena's new-game endpoint."""

    game_id: str
    constraints: List[ConstraintSpec]
    statistics: AttributeStatistics

    @classmethod
    def from_dict(cls, data: Dict) -> "GameSetup":
        """Parse the camelCase arena payload.

        Raises:
            ConfigurationError: If the game id or constraint list is
                missing or malformed.
        """
        game_id = data.get("gameId")
        if not game_id:
            raise ConfigurationError(f"Game setup has no gameId: {data!r}")

        raw_constraints = data.get("constraints")
        if not isinstance(raw_constraints, list):
            raise ConfigurationError("Game setup has no constraint list")

        constraints = []
        for raw in raw_constraints:
            try:
                constraints.append(
                    ConstraintSpec(
                        attribute=str(raw["attribute"]),
                        min_count=int(raw["minCount"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Malformed constraint {raw!r}: {e}") from e

        stats = data.get("attributeStatistics") or {}
        statistics = AttributeStatistics(
            relative_frequencies={
                str(k): float(v)
                for k, v in (stats.get("relativeFrequencies") or {}).items()
            },
            correlations={
                str(k): {str(k2): float(v2) for k2, v2 in row.items()}
                for k, row in (stats.get("correlations") or {}).items()
            },
        )
        return cls(game_id=str(game_id), constraints=constraints, statistics=statistics)

    def to_dict(self) -> Dict:
        return {
            "gameId": self.game_id,
            "constraints": [
                {"attribute": c.attribute, "minCount": c.min_count}
                for c in self.constraints
            ],
            "attributeStatistics": {
                "relativeFrequencies": self.statistics.relative_frequencies,
                "correlations": self.statistics.correlations,
            },
        }


@dataclass
class Applicant:
    """The person currently at the door."""

    index: int
    attributes: Dict[str, bool]


@dataclass
class GameStatusRunning:
    admitted_count: int
    rejected_count: int
    next_person: Applicant
    status: str = "running"


@dataclass
class GameStatusCompleted:
    rejected_count: int
    status: str = "completed"


@dataclass
class GameStatusFailed:
    reason: str
    status: str = "failed"


GameStatus = Union[GameStatusRunning, GameStatusCompleted, GameStatusFailed]


def parse_game_status(data: Dict) -> GameStatus:
    """Convert a decide-and-next payload into a typed status.

    Raises:
        ConfigurationError: On an unknown status or a running status
            without a next person.
    """
    status = data.get("status")
    if status == "running":
        person = data.get("nextPerson")
        if not person:
            raise ConfigurationError("Running status without nextPerson")
        return GameStatusRunning(
            admitted_count=int(data.get("admittedCount", 0)),
            rejected_count=int(data.get("rejectedCount", 0)),
            next_person=Applicant(
                index=int(person.get("personIndex", 0)),
                attributes={
                    str(k): bool(v) for k, v in (person.get("attributes") or {}).items()
                },
            ),
        )
    if status == "completed":
        return GameStatusCompleted(rejected_count=int(data.get("rejectedCount", 0)))
    if status == "failed":
        return GameStatusFailed(reason=str(data.get("reason", "unknown")))
    raise ConfigurationError(f"Unknown game status: {status!r}")


@dataclass
class DecisionContext:
    """Quota state at the moment a decision was taken."""

    admitted_count: int
    remaining_slots: int
    progress: List[float]
    shortfalls: List[int]


@dataclass
class DecisionRecord:
    """Audit and training record for one applicant."""

    context: DecisionContext
    action: str  # "admit" or "reject"
    attributes: Dict[str, bool]
    reward: float
    features: List[float]
    predicted_value: float
    reason: str = ""

    def to_dict(self) -> Dict:
        return {
            "context": {
                "admittedCount": self.context.admitted_count,
                "remainingSlots": self.context.remaining_slots,
                "progress": self.context.progress,
                "shortfalls": self.context.shortfalls,
            },
            "action": self.action,
            "attributes": self.attributes,
            "reward": self.reward,
            "features": self.features,
            "predictedValue": self.predicted_value,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "DecisionRecord":
        ctx = data.get("context") or {}
        return cls(
            context=DecisionContext(
                admitted_count=int(ctx.get("admittedCount", 0)),
                remaining_slots=int(ctx.get("remainingSlots", 0)),
                progress=list(ctx.get("progress", [])),
                shortfalls=list(ctx.get("shortfalls", [])),
            ),
            action=data["action"],
            attributes=dict(data.get("attributes", {})),
            reward=float(data["reward"]),
            features=[float(x) for x in data["features"]],
            predicted_value=float(data.get("predictedValue", 0.0)),
            reason=data.get("reason", ""),
        )


@dataclass
class ModelSnapshot:
    """Cross-game warm-start state for the value model and threshold."""

    A: List[List[float]]
    b: List[float]
    weights: List[float]
    admit_rate_ema: float
    recent_values: List[float]
    feature_dim: int
    max_capacity: int
    indicator_count: int

    def to_dict(self) -> Dict:
        return {
            "A": self.A,
            "b": self.b,
            "weights": self.weights,
            "admitRateEma": self.admit_rate_ema,
            "recentValues": self.recent_values,
            "featureDim": self.feature_dim,
            "maxCapacity": self.max_capacity,
            "indicatorCount": self.indicator_count,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ModelSnapshot":
        feature_dim = int(data["featureDim"])
        return cls(
            A=[[float(x) for x in row] for row in data["A"]],
            b=[float(x) for x in data["b"]],
            weights=[float(x) for x in data["weights"]],
            admit_rate_ema=float(data.get("admitRateEma", 0.0)),
            recent_values=[float(x) for x in data.get("recentValues", [])],
            feature_dim=feature_dim,
            max_capacity=int(data.get("maxCapacity", 0)),
            indicator_count=int(data.get("indicatorCount", feature_dim - 2)),
        )


def status_rejected_count(status: GameStatus, default: int) -> int:
    """Rejections reported by a terminal status, or ``default``."""
    count: Optional[int] = getattr(status, "rejected_count", None)
    return default if count is None else count

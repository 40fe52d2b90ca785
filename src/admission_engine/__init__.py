from src.admission_engine.bouncer import BanditBouncer, Bouncer
from src.admission_engine.config import DEFAULT_CAPACITY, DEFAULT_ENGINE_CONFIG, EngineConfig
from src.admission_engine.errors import (
    AdmissionError,
    ConfigurationError,
    SnapshotMismatchError,
)
from src.admission_engine.models import (
    Applicant,
    DecisionRecord,
    GameSetup,
    GameStatusCompleted,
    GameStatusFailed,
    GameStatusRunning,
    ModelSnapshot,
    parse_game_status,
)
from src.admission_engine.quota_tracker import QuotaTracker

__all__ = [
    "AdmissionError",
    "Applicant",
    "BanditBouncer",
    "Bouncer",
    "ConfigurationError",
    "DEFAULT_CAPACITY",
    "DEFAULT_ENGINE_CONFIG",
    "DecisionRecord",
    "EngineConfig",
    "GameSetup",
    "GameStatusCompleted",
    "GameStatusFailed",
    "GameStatusRunning",
    "ModelSnapshot",
    "QuotaTracker",
    "SnapshotMismatchError",
    "parse_game_status",
]

from src.arena.client import ArenaClient, ArenaError, RequestOutcome
from src.arena.game_persistence import GamePersistence
from src.arena.game_runner import GameRunner
from src.arena.learning_data import LearningDataManager

__all__ = [
    "ArenaClient",
    "ArenaError",
    "GamePersistence",
    "GameRunner",
    "LearningDataManager",
    "RequestOutcome",
]

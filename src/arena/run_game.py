"""Play one arena game with the bandit bouncer.

Usage:
    python -m src.arena.run_game <scenario> [capacity]

Examples:
    ARENA_PLAYER_ID=<uuid> python -m src.arena.run_game 1
    ARENA_PLAYER_ID=<uuid> python -m src.arena.run_game 3 1000
"""

import logging
import sys

from src.admission_engine.config import DEFAULT_CAPACITY
from src.arena.client import ArenaClient
from src.arena.config import ARENA_BASE_URL, ARENA_PLAYER_ID, SCENARIOS
from src.arena.game_runner import GameRunner
from src.logging_config import setup_logging

logger = logging.getLogger(__name__)


def run_game(scenario: int, capacity: int = DEFAULT_CAPACITY) -> dict:
    """Play ``scenario`` against the configured arena.

    Raises:
        ValueError: If the scenario is unknown or no player id is set.
    """
    if scenario not in SCENARIOS:
        raise ValueError(f"Unknown scenario {scenario}; expected one of {SCENARIOS}")
    if not ARENA_PLAYER_ID:
        raise ValueError("ARENA_PLAYER_ID is not set")

    client = ArenaClient(ARENA_BASE_URL, ARENA_PLAYER_ID)
    runner = GameRunner(client, capacity=capacity)
    return runner.play(scenario)


if __name__ == "__main__":
    setup_logging()

    scenario = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    capacity = int(sys.argv[2]) if len(sys.argv) > 2 else DEFAULT_CAPACITY

    try:
        output = run_game(scenario, capacity)
        print(
            f"Game {output['game_id']} {output['status']}: "
            f"{output['rejected_count']} rejections, score {output['final_score']:.1f}"
        )
    except Exception:
        logger.exception("Game failed")
        sys.exit(1)

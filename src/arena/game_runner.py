"""Game runner - plays one arena game end to end."""

import logging
from typing import Dict, Optional

from src.admission_engine.bouncer import BanditBouncer
from src.admission_engine.config import DEFAULT_CAPACITY, DEFAULT_ENGINE_CONFIG, EngineConfig
from src.admission_engine.models import GameSetup, GameStatusRunning
from src.arena.client import ArenaClient
from src.arena.config import (
    PROGRESS_LOG_EVERY,
    WARM_START_MAX_GAMES,
    WARM_START_MAX_RECORDS,
    WARM_START_MIN_DECISIONS,
)
from src.arena.game_persistence import GamePersistence
from src.arena.learning_data import LearningDataManager

logger = logging.getLogger(__name__)


class GameRunner:
    """Connects a :class:`BanditBouncer` to the arena.

    Coordinates between ArenaClient (network), LearningDataManager
    (warm-start data) and GamePersistence (saving the finished game).
    """

    def __init__(
        self,
        client: ArenaClient,
        persistence: Optional[GamePersistence] = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
        capacity: int = DEFAULT_CAPACITY,
        progress_every: int = PROGRESS_LOG_EVERY,
    ):
        self.client = client
        self.persistence = persistence or GamePersistence()
        self.learning = LearningDataManager()
        self.config = config
        self.capacity = capacity
        self.progress_every = progress_every

    def build_bouncer(self, setup: GameSetup, scenario: Optional[int] = None) -> BanditBouncer:
        """Create a bouncer, warm-started from earlier games when possible."""
        feature_dim = len(setup.constraints) + 2
        previous = self.persistence.load_previous_results(
            min_decisions=WARM_START_MIN_DECISIONS,
            limit=WARM_START_MAX_GAMES,
            scenario=scenario,
        )
        snapshot = self.learning.select_snapshot(previous, feature_dim)
        history = self.learning.replay_records(previous, feature_dim, WARM_START_MAX_RECORDS)
        logger.info(
            "Warm-start data: %d previous games, snapshot=%s, %d replay records",
            len(previous), snapshot is not None, len(history),
        )
        return BanditBouncer(
            setup,
            capacity=self.capacity,
            config=self.config,
            snapshot=snapshot,
            history=history,
        )

    def play(self, scenario: int) -> Dict:
        """Play a full game and persist its output.

        Returns:
            The output of ``BanditBouncer.get_output`` for the finished game.

        Raises:
            ArenaError: If the arena stops responding mid-game.
        """
        setup = self.client.start_game(scenario)
        bouncer = self.build_bouncer(setup, scenario)

        status = self.client.decide_and_next(setup.game_id, 0)
        decisions = 0
        while isinstance(status, GameStatusRunning):
            accept = bouncer.admit(status)
            decisions += 1
            if decisions % self.progress_every == 0:
                self._log_progress(bouncer, status, decisions)
            status = self.client.decide_and_next(
                setup.game_id, status.next_person.index, accept
            )

        output = bouncer.get_output(status)
        self.persistence.save_game(scenario, output)
        if status.status == "failed":
            logger.warning("Game %s failed: %s", setup.game_id, output["reason"])
        else:
            logger.info(
                "Game %s completed with %d rejections (score %.1f)",
                setup.game_id, output["rejected_count"], output["final_score"],
            )
        return output

    def _log_progress(self, bouncer: BanditBouncer, status: GameStatusRunning, decisions: int):
        progress = bouncer.get_progress()
        logger.info(
            "Decision %d: admitted=%d rejected=%d threshold=%.2f ema=%.3f target=%.3f",
            decisions,
            status.admitted_count,
            status.rejected_count,
            progress["threshold"],
            progress["admit_rate_ema"],
            progress["target_rate"],
        )
        logger.info(
            "  Quotas: %s",
            ", ".join(
                f"{a['attribute']}={a['admitted']}/{a['required']}"
                for a in progress["attributes"]
            ),
        )

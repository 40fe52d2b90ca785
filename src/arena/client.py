"""HTTP client for the bouncer arena."""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from src.admission_engine.errors import ConfigurationError
from src.admission_engine.models import GameSetup, GameStatus, parse_game_status
from src.arena.config import (
    ARENA_BASE_URL,
    ARENA_PLAYER_ID,
    BACKOFF_SECONDS,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
)

logger = logging.getLogger(__name__)


class ArenaError(Exception):
    """Raised when the arena cannot be reached or answers nonsense."""

    pass


@dataclass
class RequestOutcome:
    """Result of one GET after retries."""

    ok: bool
    payload: Optional[Dict] = None
    attempts: int = 0
    error: Optional[str] = None


class ArenaClient:
    """Thin wrapper around the two arena endpoints.

    Args:
        base_url: Arena root URL.
        player_id: Player UUID registered with the arena.
        session: Object with a ``get(url, params=, timeout=)`` method;
            a ``requests.Session`` by default.
        max_retries: Attempts per request before giving up.
        backoff: Seconds to sleep before retry ``n`` is ``backoff * n``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = ARENA_BASE_URL,
        player_id: str = ARENA_PLAYER_ID,
        session=None,
        max_retries: int = MAX_RETRIES,
        backoff: float = BACKOFF_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.base_url = base_url.rstrip("/")
        self.player_id = player_id
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.backoff = backoff
        self.timeout = timeout

    def start_game(self, scenario: int) -> GameSetup:
        """Request a new game for ``scenario``.

        Raises:
            ArenaError: If the request fails after all retries or the
                payload is not a valid game setup.
        """
        outcome = self._get_with_retry(
            "/new-game", {"scenario": scenario, "playerId": self.player_id}
        )
        payload = self._require(outcome, "new-game")
        try:
            setup = GameSetup.from_dict(payload)
        except ConfigurationError as e:
            raise ArenaError(f"Invalid game setup: {e}") from e
        logger.info(
            "Started scenario %s game %s (%d constraints)",
            scenario, setup.game_id, len(setup.constraints),
        )
        return setup

    def decide_and_next(
        self, game_id: str, person_index: int, accept: Optional[bool] = None
    ) -> GameStatus:
        """Submit the decision for ``person_index`` and fetch the next person.

        ``accept`` is omitted on the very first call of a game.
        """
        params = {"gameId": game_id, "personIndex": person_index}
        if accept is not None:
            params["accept"] = "true" if accept else "false"
        outcome = self._get_with_retry("/decide-and-next", params)
        payload = self._require(outcome, "decide-and-next")
        try:
            return parse_game_status(payload)
        except ConfigurationError as e:
            raise ArenaError(f"Invalid game status: {e}") from e

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_with_retry(self, path: str, params: Dict) -> RequestOutcome:
        url = f"{self.base_url}{path}"
        last_error = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                return RequestOutcome(ok=True, payload=response.json(), attempts=attempt)
            except (requests.RequestException, ValueError) as e:
                last_error = str(e)
                logger.warning(
                    "GET %s failed (attempt %d/%d): %s", path, attempt, self.max_retries, e
                )
                if attempt < self.max_retries and self.backoff > 0:
                    time.sleep(self.backoff * attempt)
        return RequestOutcome(ok=False, attempts=self.max_retries, error=last_error)

    @staticmethod
    def _require(outcome: RequestOutcome, name: str) -> Dict:
        if not outcome.ok:
            raise ArenaError(
                f"{name} failed after {outcome.attempts} attempts: {outcome.error}"
            )
        if not isinstance(outcome.payload, dict):
            raise ArenaError(f"{name} returned a non-object payload: {outcome.payload!r}")
        return outcome.payload

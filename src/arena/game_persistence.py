"""Game persistence - save and load finished games as JSON files."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

from src.arena.config import GAMES_DIR

logger = logging.getLogger(__name__)


class GamePersistence:
    """Stores each finished game's output under ``game_<scenario>_<id>.json``."""

    def __init__(self, storage_dir: Optional[Path] = None):
        self.storage_dir = storage_dir or GAMES_DIR
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def save_game(self, scenario: int, output: Dict) -> Path:
        """Write a game output produced by ``Bouncer.get_output``.

        Args:
            scenario: Arena scenario number the game was played in.
            output: The output dict; must contain ``game_id``.

        Returns:
            Path to the saved file.
        """
        game_id = output["game_id"]
        filepath = self._path(scenario, game_id)
        record = dict(output, scenario=scenario)

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2)

        logger.info(
            "Saved game %s (scenario %s, %d decisions) to %s",
            game_id, scenario, len(output.get("decisions", [])), filepath,
        )
        return filepath

    def load_game(self, game_id: str) -> Optional[Dict]:
        """Load a saved game by id, whatever scenario it was played in.

        Returns:
            The stored output dict, or None if missing or unreadable.
        """
        matches = sorted(self.storage_dir.glob(f"game_*_{game_id}.json"))
        if not matches:
            logger.warning("Game file not found for %s in %s", game_id, self.storage_dir)
            return None

        try:
            with open(matches[0], "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Corrupt game file %s: %s", matches[0], e)
            return None

    def list_saved_games(self) -> List[Dict]:
        """Metadata for every saved game, most recent first."""
        games = []
        for filepath in self.storage_dir.glob("game_*.json"):
            try:
                data = self._read(filepath)
                games.append(
                    {
                        "game_id": data["game_id"],
                        "scenario": data.get("scenario"),
                        "status": data.get("status"),
                        "final_score": data.get("final_score"),
                        "rejected_count": data.get("rejected_count"),
                        "decision_count": len(data.get("decisions", [])),
                        "timestamp": data.get("timestamp", ""),
                        "path": str(filepath),
                    }
                )
            except (json.JSONDecodeError, OSError, KeyError, TypeError) as e:
                logger.warning("Skipping corrupt game file %s: %s", filepath, e)
                continue

        return sorted(games, key=lambda x: x["timestamp"], reverse=True)

    def load_previous_results(
        self,
        min_decisions: int = 0,
        limit: Optional[int] = None,
        scenario: Optional[int] = None,
    ) -> List[Dict]:
        """Full outputs of past games with enough decisions, newest first."""
        results = []
        for meta in self.list_saved_games():
            if meta["decision_count"] <= min_decisions:
                continue
            if scenario is not None and meta["scenario"] != scenario:
                continue
            try:
                results.append(self._read(Path(meta["path"])))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Skipping unreadable game file %s: %s", meta["path"], e)
                continue
            if limit is not None and len(results) >= limit:
                break
        return results

    def delete_game(self, game_id: str) -> bool:
        """Delete every saved file for ``game_id``.

        Returns:
            True if anything was deleted.
        """
        matches = list(self.storage_dir.glob(f"game_*_{game_id}.json"))
        for filepath in matches:
            filepath.unlink()
        if matches:
            logger.info("Deleted game %s", game_id)
        return bool(matches)

    def _path(self, scenario: int, game_id: str) -> Path:
        return self.storage_dir / f"game_{scenario}_{game_id}.json"

    @staticmethod
    def _read(filepath: Path) -> Dict:
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)

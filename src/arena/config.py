import os
from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Finished games (decision logs + model snapshots)
GAMES_DIR = PROJECT_ROOT / "data" / "games"

# Arena endpoint
ARENA_BASE_URL = os.environ.get("ARENA_BASE_URL", "https://berghain.challenges.listenlabs.ai")
ARENA_PLAYER_ID = os.environ.get("ARENA_PLAYER_ID", "")

# HTTP retry policy
MAX_RETRIES = 3
BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT = 60

# Cross-game warm start
WARM_START_MIN_DECISIONS = 50
WARM_START_MAX_GAMES = 3
WARM_START_MAX_RECORDS = 100

PROGRESS_LOG_EVERY = 500

SCENARIOS = (1, 2, 3)

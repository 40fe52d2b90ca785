"""Shared fixtures for the admission-controller test suite."""

import pytest

from src.admission_engine.models import AttributeStatistics, ConstraintSpec, GameSetup


# ------------------------------------------------------------------
# Lightweight factories, no I/O
# ------------------------------------------------------------------

@pytest.fixture
def two_attribute_setup():
    """Scenario-1-like game: two quotas with negatively correlated attributes."""
    return GameSetup(
        game_id="game-two",
        constraints=[ConstraintSpec("young", 40), ConstraintSpec("well_dressed", 30)],
        statistics=AttributeStatistics(
            relative_frequencies={"young": 0.3, "well_dressed": 0.25},
            correlations={
                "young": {"young": 1.0, "well_dressed": -0.2},
                "well_dressed": {"young": -0.2, "well_dressed": 1.0},
            },
        ),
    )


@pytest.fixture
def setup_payload():
    """Raw new-game payload as the arena sends it."""
    return {
        "gameId": "abc-123",
        "constraints": [
            {"attribute": "young", "minCount": 600},
            {"attribute": "well_dressed", "minCount": 600},
        ],
        "attributeStatistics": {
            "relativeFrequencies": {"young": 0.3225, "well_dressed": 0.3225},
            "correlations": {
                "young": {"young": 1, "well_dressed": 0.18304299322062992},
                "well_dressed": {"young": 0.18304299322062992, "well_dressed": 1},
            },
        },
    }

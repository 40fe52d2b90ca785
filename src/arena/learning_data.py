"""Learning data from past games for cross-game warm starts."""

import logging
from typing import Dict, List, Optional

import pandas as pd

from src.admission_engine.models import DecisionRecord, ModelSnapshot

logger = logging.getLogger(__name__)

DECISION_COLUMNS = [
    "game_id",
    "scenario",
    "timestamp",
    "step",
    "action",
    "reason",
    "reward",
    "predicted_value",
    "admitted_count",
    "remaining_slots",
    "feature_dim",
    "record",
]


class LearningDataManager:
    """Turns saved game outputs into warm-start inputs.

    ``results`` arguments are lists of dicts as returned by
    ``GamePersistence.load_previous_results``.
    """

    def decisions_frame(self, results: List[Dict]) -> pd.DataFrame:
        """One row per decision across all games."""
        rows = []
        for result in results:
            for step, decision in enumerate(result.get("decisions", [])):
                context = decision.get("context") or {}
                rows.append(
                    {
                        "game_id": result.get("game_id"),
                        "scenario": result.get("scenario"),
                        "timestamp": result.get("timestamp", ""),
                        "step": step,
                        "action": decision.get("action"),
                        "reason": decision.get("reason", ""),
                        "reward": decision.get("reward", 0.0),
                        "predicted_value": decision.get("predictedValue", 0.0),
                        "admitted_count": context.get("admittedCount", 0),
                        "remaining_slots": context.get("remainingSlots", 0),
                        "feature_dim": len(decision.get("features", [])),
                        "record": decision,
                    }
                )
        df = pd.DataFrame(rows, columns=DECISION_COLUMNS)
        df["reward"] = pd.to_numeric(df["reward"], errors="coerce").fillna(0.0)
        return df

    def select_snapshot(self, results: List[Dict], feature_dim: int) -> Optional[ModelSnapshot]:
        """Newest snapshot whose feature dimension matches, if any."""
        for result in sorted(results, key=lambda r: r.get("timestamp", ""), reverse=True):
            raw = result.get("snapshot")
            if not raw:
                continue
            try:
                snapshot = ModelSnapshot.from_dict(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed snapshot in game %s: %s", result.get("game_id"), e)
                continue
            if snapshot.feature_dim == feature_dim:
                logger.info("Using snapshot from game %s", result.get("game_id"))
                return snapshot
        return None

    def replay_records(
        self, results: List[Dict], feature_dim: int, limit: int = 100
    ) -> List[DecisionRecord]:
        """The most recent ``limit`` decisions of the right dimension, oldest first."""
        df = self.decisions_frame(results)
        df = df[df["feature_dim"] == feature_dim]
        if df.empty:
            return []
        df = df.sort_values(["timestamp", "step"]).tail(limit)

        records = []
        for raw in df["record"]:
            try:
                records.append(DecisionRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed decision record: %s", e)
        return records

    def summarize(self, results: List[Dict]) -> Dict:
        """Score statistics and gate usage across past games."""
        if not results:
            return {"games": 0}

        games = pd.DataFrame(
            [
                {
                    "game_id": r.get("game_id"),
                    "scenario": r.get("scenario"),
                    "status": r.get("status"),
                    "final_score": r.get("final_score"),
                    "rejected_count": r.get("rejected_count"),
                }
                for r in results
            ]
        )
        games["rejected_count"] = pd.to_numeric(games["rejected_count"], errors="coerce")
        scores = pd.to_numeric(games["final_score"], errors="coerce").dropna()
        decisions = self.decisions_frame(results)

        return {
            "games": len(games),
            "completed": int((games["status"] == "completed").sum()),
            "best_score": float(scores.min()) if not scores.empty else None,
            "mean_score": round(float(scores.mean()), 2) if not scores.empty else None,
            "by_scenario": (
                games.groupby("scenario", dropna=False)["rejected_count"].mean().round(1).to_dict()
            ),
            "reasons": decisions["reason"].value_counts().to_dict(),
            "admit_share": (
                round(float((decisions["action"] == "admit").mean()), 3)
                if not decisions.empty
                else 0.0
            ),
        }

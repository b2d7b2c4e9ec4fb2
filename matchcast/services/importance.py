"""Explanatory ranking over a curated subset of criteria."""

from __future__ import annotations

from matchcast.domain.models import FeatureImportance
from matchcast.services.criteria import NEUTRAL, CriteriaVector

# Declared order is the tie-break for equal |impact|.
CURATED_FEATURES: tuple[tuple[str, str], ...] = (
    ("home_team_form", "Recent home team performance and momentum"),
    ("away_team_form", "Recent away team performance and consistency"),
    ("key_player_availability", "Availability of star players and key personnel"),
    ("head_to_head_record", "Historical matchup results and patterns"),
    ("goal_scoring_form", "Current attacking efficiency and goal-scoring ability"),
    ("defensive_form", "Defensive solidity and clean sheet record"),
    ("home_advantage", "Home ground advantage and crowd support"),
    ("injury_impact", "Impact of injuries on team strength"),
    ("tactical_setup", "Tactical approach and formation effectiveness"),
    ("team_morale", "Team confidence and psychological state"),
)


def impact(value: float) -> float:
    return round((value - NEUTRAL) * 2, 2)


def rank(criteria: CriteriaVector) -> list[FeatureImportance]:
    items = [
        FeatureImportance(feature=key, impact=impact(criteria[key]), description=description)
        for key, description in CURATED_FEATURES
    ]
    return sorted(items, key=lambda fi: -abs(fi.impact))

"""Weighted-heuristic 1X2 model over the criteria vector."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from matchcast.core.config import CLAMP_POLICIES
from matchcast.domain.models import Probabilities
from matchcast.services.criteria import NEUTRAL, CriteriaVector

# Heavier weights for the headline criteria; they sum to 1.00.
FEATURE_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "home_team_form": 0.12,
        "away_team_form": 0.11,
        "home_advantage": 0.08,
        "head_to_head_record": 0.07,
        "goal_scoring_form": 0.09,
        "defensive_form": 0.08,
        "injury_impact": 0.06,
        "key_player_availability": 0.07,
        "team_morale": 0.05,
        "weather_conditions": 0.03,
        "betting_odds": 0.06,
        "recent_transfers": 0.04,
        "tactical_setup": 0.05,
        "motivation_level": 0.04,
        "physical_condition": 0.05,
    }
)
DEFAULT_WEIGHT = 0.01

BASE_HOME = 0.35
BASE_DRAW = 0.25
BASE_AWAY = 0.40
DRAW_FACTOR_SCALE = 0.5

HOME_AWAY_BOUNDS = (0.05, 0.85)
DRAW_BOUNDS = (0.05, 0.50)
_BOUNDS = {"home": HOME_AWAY_BOUNDS, "draw": DRAW_BOUNDS, "away": HOME_AWAY_BOUNDS}


def _clamp(value: float, lo: float, hi: float) -> float:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def weighted_scores(criteria: CriteriaVector, weights: Mapping[str, float] | None = None) -> tuple[float, float, float]:
    """(home_score, away_score, draw_factor) accumulated over every criterion."""
    table = FEATURE_WEIGHTS if weights is None else weights
    home_score = 0.0
    away_score = 0.0
    draw_factor = 0.0
    for key, value in criteria.items():
        w = float(table.get(key, DEFAULT_WEIGHT))
        if value > NEUTRAL:
            home_score += (value - NEUTRAL) * w * 2
        else:
            away_score += (NEUTRAL - value) * w * 2
        evenness = 1 - abs(value - NEUTRAL) * 2
        draw_factor += evenness * w
    return home_score, away_score, draw_factor


def normalized_probabilities(
    criteria: CriteriaVector, weights: Mapping[str, float] | None = None
) -> Probabilities:
    """Priors plus weighted scores, normalized to sum to 1 (no clamping)."""
    home_score, away_score, draw_factor = weighted_scores(criteria, weights)
    home = BASE_HOME + home_score
    draw = BASE_DRAW + draw_factor * DRAW_FACTOR_SCALE
    away = BASE_AWAY + away_score
    total = home + draw + away
    return Probabilities(home=home / total, draw=draw / total, away=away / total)


def clamp_reference(p: Probabilities) -> Probabilities:
    """Plain clamp to the outcome bounds; the sum may drift below 1."""
    return Probabilities(
        home=_clamp(p.home, *HOME_AWAY_BOUNDS),
        draw=_clamp(p.draw, *DRAW_BOUNDS),
        away=_clamp(p.away, *HOME_AWAY_BOUNDS),
    )


def clamp_redistribute(p: Probabilities) -> Probabilities:
    """Clamp to the outcome bounds while keeping the total at 1.

    An outcome outside its bound is pinned to it and the remaining mass is
    shared by the other outcomes in proportion to their current values;
    repeats until nothing violates a bound.
    """
    current = {"home": p.home, "draw": p.draw, "away": p.away}
    fixed: dict[str, float] = {}
    while len(fixed) < len(current):
        free = [k for k in current if k not in fixed]
        mass = 1.0 - sum(fixed.values())
        free_total = sum(current[k] for k in free)
        for k in free:
            current[k] = mass * current[k] / free_total if free_total > 0 else mass / len(free)
        violators = {
            k: _clamp(current[k], *_BOUNDS[k])
            for k in free
            if not (_BOUNDS[k][0] <= current[k] <= _BOUNDS[k][1])
        }
        if not violators:
            break
        fixed.update(violators)
        current.update(violators)
    return Probabilities(**current)


def predict(
    criteria: CriteriaVector,
    weights: Mapping[str, float] | None = None,
    clamp_policy: str = "redistribute",
) -> Probabilities:
    if clamp_policy not in CLAMP_POLICIES:
        raise ValueError(f"unknown clamp policy: {clamp_policy}")
    p = normalized_probabilities(criteria, weights)
    if clamp_policy == "reference":
        return clamp_reference(p)
    return clamp_redistribute(p)

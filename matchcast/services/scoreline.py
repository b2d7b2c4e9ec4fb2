"""Expected-goals heuristic turned into an integer scoreline."""

import math

from matchcast.services.criteria import NEUTRAL, CriteriaVector

BASE_GOALS = 1.2
ATTACK_FACTOR = 2.0
DEFENCE_FACTOR = 1.5
HOME_ADVANTAGE_FACTOR = 0.3
ADVERSE_WEATHER_THRESHOLD = 0.3
ADVERSE_WEATHER_FACTOR = 0.8

HOME = "home"
AWAY = "away"


def expected_goals(criteria: CriteriaVector, side: str) -> float:
    if side not in (HOME, AWAY):
        raise ValueError(f"side must be 'home' or 'away', got {side!r}")
    is_home = side == HOME
    scoring = criteria["goal_scoring_form"]
    defending = criteria["defensive_form"]

    attacking_form = scoring if is_home else 1 - scoring
    opponent_weakness = 1 - defending if is_home else defending

    xg = BASE_GOALS
    xg += (attacking_form - NEUTRAL) * ATTACK_FACTOR
    xg += (opponent_weakness - NEUTRAL) * DEFENCE_FACTOR
    if is_home:
        xg += criteria["home_advantage"] * HOME_ADVANTAGE_FACTOR
    if criteria["weather_conditions"] < ADVERSE_WEATHER_THRESHOLD:
        xg *= ADVERSE_WEATHER_FACTOR
    return xg


def predict_score(criteria: CriteriaVector, side: str) -> int:
    # half-up rounding: 1.5 -> 2, 2.5 -> 3
    return max(0, int(math.floor(expected_goals(criteria, side) + 0.5)))


def predict_scoreline(criteria: CriteriaVector) -> tuple[int, int]:
    return predict_score(criteria, HOME), predict_score(criteria, AWAY)

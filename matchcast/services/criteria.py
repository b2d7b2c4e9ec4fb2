"""Criteria gatherer: raw provider signals -> fixed-shape criteria vector.

Values live in [0, 1]. 0.5 is the neutral prior; above it leans to the home
side (or "favorable" for directionless criteria), below it leans away.
Every derivation returns None when its raw input is missing or malformed,
and the vector substitutes the neutral prior without flagging a signal.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import math
from typing import Awaitable, Callable, Iterable, Iterator, Mapping, Optional

from matchcast.core.config import settings
from matchcast.core.logger import get_logger
from matchcast.data.gateway import DataProvider
from matchcast.data.mappers import DRAW, LOSS, WIN, fixture_goals, fixture_outcome, fixture_team_ids
from matchcast.domain.models import Match
from matchcast.services.odds_utils import first_match_winner_odds, remove_overround_basic

log = get_logger("services.criteria")

NEUTRAL = 0.5

FORM_KEYS = (
    "home_team_form",
    "away_team_form",
    "home_form_specific",
    "away_form_specific",
    "goal_scoring_form",
    "defensive_form",
    "first_half_performance",
    "second_half_performance",
    "comeback_ability",
    "lead_protection",
)
HISTORY_KEYS = (
    "head_to_head_record",
    "previous_meeting_outcome",
    "scoring_trends",
    "conceding_trends",
    "home_advantage",
)
CONDITION_KEYS = (
    "injury_impact",
    "suspension_impact",
    "key_player_availability",
    "player_fatigue",
    "physical_condition",
    "age_profile",
    "experience_level",
    "team_chemistry",
    "disciplinary_record",
    "penalty_record",
)
TACTICAL_KEYS = (
    "tactical_setup",
    "possession_style",
    "counter_attack_threat",
    "set_piece_efficiency",
    "goalkeeping_form",
    "manager_experience",
    "recent_transfers",
    "season_objectives",
)
EXTERNAL_KEYS = (
    "weather_conditions",
    "venue_conditions",
    "crowd_support",
    "travel_distance",
    "time_zone_difference",
    "rest_days",
    "media_expectations",
    "social_media_sentiment",
)
MARKET_KEYS = (
    "betting_odds",
    "league_position",
    "points_gap",
    "european_competitions",
)
PSYCH_KEYS = (
    "team_morale",
    "motivation_level",
    "pressure_handling",
    "mental_strength",
)
COMPETITION_KEYS = ("cup_commitments",)

CRITERIA_KEYS: tuple[str, ...] = (
    FORM_KEYS
    + HISTORY_KEYS
    + CONDITION_KEYS
    + TACTICAL_KEYS
    + EXTERNAL_KEYS
    + MARKET_KEYS
    + PSYCH_KEYS
    + COMPETITION_KEYS
)

# No provider read feeds these; they stay at the neutral prior.
UNSOURCED_KEYS = frozenset(
    {
        "age_profile",
        "experience_level",
        "possession_style",
        "manager_experience",
        "recent_transfers",
        "season_objectives",
        "travel_distance",
        "time_zone_difference",
        "rest_days",
        "media_expectations",
        "social_media_sentiment",
        "european_competitions",
        "motivation_level",
        "cup_commitments",
    }
)

FIRST_HALF = ("0-15", "16-30", "31-45")
SECOND_HALF = ("46-60", "61-75", "76-90", "91-105")
LATE = ("76-90", "91-105")

FORM_POINTS = {WIN: 3, DRAW: 1, LOSS: 0}
MORALE_WEIGHTS = (5, 4, 3, 2, 1)
PREVIOUS_MEETING = {WIN: 0.75, DRAW: 0.5, LOSS: 0.25}
MISSING_FIXTURE = "missing fixture"


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class CriteriaVector(Mapping[str, float]):
    """Immutable mapping over CRITERIA_KEYS plus the set of keys backed by real data."""

    __slots__ = ("_values", "_signals")

    def __init__(self, values: Mapping[str, float] | None = None, signals: Iterable[str] = ()):
        merged = {key: NEUTRAL for key in CRITERIA_KEYS}
        for key, value in (values or {}).items():
            if key not in merged:
                raise KeyError(f"unknown criterion: {key}")
            merged[key] = clamp01(value)
        signal_set = frozenset(signals)
        unknown = signal_set.difference(merged)
        if unknown:
            raise KeyError(f"unknown criteria: {sorted(unknown)}")
        self._values = merged
        self._signals = signal_set

    @classmethod
    def neutral(cls) -> "CriteriaVector":
        return cls()

    def replace(self, **values: float) -> "CriteriaVector":
        """Copy with ``values`` overridden; overridden keys count as signal."""
        return CriteriaVector({**self._values, **values}, self._signals.union(values))

    def has_signal(self, key: str) -> bool:
        return key in self._signals

    @property
    def signal_count(self) -> int:
        return len(self._signals)

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(CRITERIA_KEYS)

    def __len__(self) -> int:
        return len(CRITERIA_KEYS)

    def __repr__(self) -> str:
        return f"CriteriaVector(signals={self.signal_count}/{len(self)})"


@dataclass(frozen=True)
class RawSignals:
    """Everything the provider returned for one fixture; None marks a failed or absent read."""

    home_team_id: Optional[int] = None
    away_team_id: Optional[int] = None
    home_stats: Optional[dict] = None
    away_stats: Optional[dict] = None
    home_form: Optional[list[str]] = None
    away_form: Optional[list[str]] = None
    head_to_head: Optional[list[dict]] = None
    home_injuries: Optional[list[dict]] = None
    away_injuries: Optional[list[dict]] = None
    weather: Optional[dict] = None
    odds: Optional[list[dict]] = None


# ---------- raw-data accessors ----------


def _get(data, *path):
    cur = data
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def _num(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(out):
        return None
    return out


def _ratio(home: Optional[float], away: Optional[float]) -> Optional[float]:
    """home / (home + away); neutral when both sides are zero."""
    if home is None or away is None or home < 0 or away < 0:
        return None
    total = home + away
    if total <= 0:
        return NEUTRAL
    return home / total


def _played(stats, venue: str = "total") -> Optional[float]:
    n = _num(_get(stats, "fixtures", "played", venue))
    return n if n and n > 0 else None


def _per_game(stats, path: tuple, venue: str = "total") -> Optional[float]:
    total = _num(_get(stats, *path))
    played = _played(stats, venue)
    if total is None or played is None:
        return None
    return total / played


def _minute_total(stats, side: str, buckets: tuple) -> Optional[float]:
    minutes = _get(stats, "goals", side, "minute")
    if not isinstance(minutes, dict):
        return None
    return sum(_num(_get(minutes, b, "total")) or 0.0 for b in buckets)


def _minute_per_game(stats, side: str, buckets: tuple) -> Optional[float]:
    total = _minute_total(stats, side, buckets)
    played = _played(stats)
    if total is None or played is None:
        return None
    return total / played


def _cards_per_game(stats, colour: str) -> Optional[float]:
    buckets = _get(stats, "cards", colour)
    played = _played(stats)
    if not isinstance(buckets, dict) or played is None:
        return None
    return sum(_num(_get(v, "total")) or 0.0 for v in buckets.values()) / played


def _win_rate(stats, venue: str) -> Optional[float]:
    wins = _num(_get(stats, "fixtures", "wins", venue))
    played = _played(stats, venue)
    if wins is None or played is None:
        return None
    return wins / played


def _points(stats) -> Optional[float]:
    wins = _num(_get(stats, "fixtures", "wins", "total"))
    draws = _num(_get(stats, "fixtures", "draws", "total"))
    if wins is None or draws is None:
        return None
    return wins * 3 + draws


def _formation_usage(stats) -> Optional[list[float]]:
    lineups = _get(stats, "lineups") if isinstance(stats, dict) else None
    if not isinstance(lineups, list):
        return None
    usage = [_num(row.get("played")) or 0.0 for row in lineups if isinstance(row, dict) and row.get("formation")]
    usage = [u for u in usage if u > 0]
    return usage or None


def _both(fn, home, away) -> Optional[float]:
    return _ratio(fn(home), fn(away))


# ---------- form ----------


def _results(form) -> Optional[list]:
    if not isinstance(form, (list, tuple)) or not form:
        return None
    return list(form)


def form_score(form: Optional[list[str]]) -> Optional[float]:
    form = _results(form)
    if form is None:
        return None
    return sum(1 for r in form if r == WIN) / len(form)


def venue_form(stats, venue: str) -> Optional[float]:
    return _win_rate(stats, venue)


def goal_scoring_form(home, away) -> Optional[float]:
    return _both(lambda s: _per_game(s, ("goals", "for", "total", "total")), home, away)


def defensive_form(home, away) -> Optional[float]:
    return _ratio(
        _per_game(away, ("goals", "against", "total", "total")),
        _per_game(home, ("goals", "against", "total", "total")),
    )


def _half_edge(home, away, buckets: tuple) -> Optional[float]:
    h_for = _minute_per_game(home, "for", buckets)
    h_against = _minute_per_game(home, "against", buckets)
    a_for = _minute_per_game(away, "for", buckets)
    a_against = _minute_per_game(away, "against", buckets)
    if None in (h_for, h_against, a_for, a_against):
        return None
    return _ratio(h_for + a_against, a_for + h_against)


def first_half_performance(home, away) -> Optional[float]:
    return _half_edge(home, away, FIRST_HALF)


def second_half_performance(home, away) -> Optional[float]:
    return _half_edge(home, away, SECOND_HALF)


def comeback_ability(home, away) -> Optional[float]:
    return _both(lambda s: _minute_per_game(s, "for", LATE), home, away)


def lead_protection(home, away) -> Optional[float]:
    return _ratio(_minute_per_game(away, "against", LATE), _minute_per_game(home, "against", LATE))


# ---------- head to head ----------


def _h2h_outcomes(h2h: Optional[list[dict]], home_id: Optional[int]) -> Optional[list[tuple[str, int, int]]]:
    """(outcome, home goals, away goals) per meeting, from the home side's point of view."""
    if not isinstance(h2h, list) or not h2h or home_id is None:
        return None
    rows = []
    for fixture in h2h:
        if not isinstance(fixture, dict):
            continue
        outcome = fixture_outcome(fixture, home_id)
        if outcome is None:
            continue
        goals_home, goals_away = fixture_goals(fixture)
        fixture_home, _ = fixture_team_ids(fixture)
        if fixture_home == home_id:
            rows.append((outcome, goals_home, goals_away))
        else:
            rows.append((outcome, goals_away, goals_home))
    return rows or None


def head_to_head_record(h2h, home_id) -> Optional[float]:
    rows = _h2h_outcomes(h2h, home_id)
    if rows is None:
        return None
    return sum(1 for outcome, _, _ in rows if outcome == WIN) / len(rows)


def previous_meeting_outcome(h2h, home_id) -> Optional[float]:
    rows = _h2h_outcomes(h2h, home_id)
    if rows is None:
        return None
    return PREVIOUS_MEETING[rows[0][0]]


def scoring_trends(h2h, home_id) -> Optional[float]:
    rows = _h2h_outcomes(h2h, home_id)
    if rows is None:
        return None
    return _ratio(sum(r[1] for r in rows), sum(r[2] for r in rows))


def conceding_trends(h2h, home_id) -> Optional[float]:
    rows = _h2h_outcomes(h2h, home_id)
    if rows is None:
        return None
    home_clean = sum(1 for _, _, against in rows if against == 0)
    away_clean = sum(1 for _, scored, _ in rows if scored == 0)
    return _ratio(home_clean, away_clean)


def home_advantage(home, away) -> Optional[float]:
    home_at_home = _win_rate(home, "home")
    away_on_road = _win_rate(away, "away")
    if home_at_home is None or away_on_road is None:
        return None
    return NEUTRAL + (home_at_home - away_on_road) / 2


# ---------- condition ----------


def current_absentees(injuries: Optional[list[dict]]) -> Optional[list[dict]]:
    """Player records of the latest fixture in an injury feed, one per player."""
    if not isinstance(injuries, list):
        return None
    records = [r for r in injuries if isinstance(r, dict)]
    if not records:
        return []
    latest = max(str(_get(r, "fixture", "date") or "") for r in records)
    seen: dict = {}
    for r in records:
        if str(_get(r, "fixture", "date") or "") != latest:
            continue
        player = r.get("player")
        if not isinstance(player, dict):
            player = {"name": player} if isinstance(player, str) else {}
        key = str(player.get("id") or player.get("name") or f"#{len(seen)}")
        seen.setdefault(key, player)
    return list(seen.values())


def injury_impact(home_injuries, away_injuries) -> Optional[float]:
    home_out = current_absentees(home_injuries)
    away_out = current_absentees(away_injuries)
    if home_out is None or away_out is None:
        return None
    return NEUTRAL + 0.1 * (len(away_out) - len(home_out))


def key_player_availability(home_injuries, away_injuries) -> Optional[float]:
    home_out = current_absentees(home_injuries)
    away_out = current_absentees(away_injuries)
    if home_out is None or away_out is None:
        return None

    def missing(players: list[dict]) -> int:
        return sum(1 for p in players if str(p.get("type") or "").strip().lower() == MISSING_FIXTURE)

    return _ratio(missing(away_out) + 1, missing(home_out) + 1)


def suspension_impact(home, away) -> Optional[float]:
    return _ratio(_cards_per_game(away, "red"), _cards_per_game(home, "red"))


def disciplinary_record(home, away) -> Optional[float]:
    return _ratio(_cards_per_game(away, "yellow"), _cards_per_game(home, "yellow"))


def player_fatigue(home, away) -> Optional[float]:
    return _ratio(_played(away), _played(home))


def physical_condition(home, away) -> Optional[float]:
    def late_share(stats) -> Optional[float]:
        late = _minute_total(stats, "against", LATE)
        total = _num(_get(stats, "goals", "against", "total", "total"))
        if late is None or total is None:
            return None
        return late / total if total > 0 else 0.0

    return _ratio(late_share(away), late_share(home))


def team_chemistry(home, away) -> Optional[float]:
    def stability(stats) -> Optional[float]:
        usage = _formation_usage(stats)
        return max(usage) / sum(usage) if usage else None

    return _both(stability, home, away)


def penalty_record(home, away) -> Optional[float]:
    def conversion(stats) -> Optional[float]:
        scored = _num(_get(stats, "penalty", "scored", "total"))
        taken = _num(_get(stats, "penalty", "total"))
        if scored is None or not taken:
            return None
        return scored / taken

    return _both(conversion, home, away)


# ---------- tactical ----------


def tactical_setup(home, away) -> Optional[float]:
    def distinct(stats) -> Optional[float]:
        usage = _formation_usage(stats)
        return float(len(usage)) if usage else None

    return _both(distinct, home, away)


def counter_attack_threat(home, away) -> Optional[float]:
    return _ratio(
        _per_game(home, ("goals", "for", "total", "home"), venue="home"),
        _per_game(away, ("goals", "for", "total", "away"), venue="away"),
    )


def set_piece_efficiency(home, away) -> Optional[float]:
    return _both(lambda s: _per_game(s, ("penalty", "scored", "total")), home, away)


def goalkeeping_form(home, away) -> Optional[float]:
    return _both(lambda s: _per_game(s, ("clean_sheet", "total")), home, away)


# ---------- external ----------


def weather_conditions(weather: Optional[dict]) -> Optional[float]:
    if not isinstance(weather, dict):
        return None
    temperature = _num(weather.get("temperature"))
    if temperature is None:
        return None
    impact = NEUTRAL
    if temperature < 0 or temperature > 30:
        impact -= 0.1
    if (_num(weather.get("precipitation")) or 0.0) > 5:
        impact -= 0.2
    if (_num(weather.get("wind_speed")) or 0.0) > 10:
        impact -= 0.1
    return max(0.1, min(0.9, impact))


def venue_conditions(weather: Optional[dict]) -> Optional[float]:
    """Pitch playability guessed from the weather at kick-off."""
    if not isinstance(weather, dict):
        return None
    temperature = _num(weather.get("temperature"))
    if temperature is None:
        return None
    precipitation = _num(weather.get("precipitation")) or 0.0
    score = NEUTRAL
    if precipitation == 0 and 5 <= temperature <= 25:
        score += 0.1
    if precipitation > 5:
        score -= 0.2
    if temperature < 0:
        score -= 0.1
    return score


def crowd_support(home) -> Optional[float]:
    at_home = _win_rate(home, "home")
    overall = _win_rate(home, "total")
    if at_home is None or overall is None:
        return None
    return NEUTRAL + (at_home - overall)


# ---------- market ----------


def betting_odds(odds: Optional[list[dict]]) -> Optional[float]:
    odd_home, odd_draw, odd_away = first_match_winner_odds(odds)
    if odd_home is None:
        return None
    p_home, _, p_away = remove_overround_basic(odd_home, odd_draw, odd_away)
    return _ratio(p_home, p_away)


def league_position(home, away) -> Optional[float]:
    def ppg(stats) -> Optional[float]:
        points = _points(stats)
        played = _played(stats)
        if points is None or played is None:
            return None
        return points / played

    return _both(ppg, home, away)


def points_gap(home, away) -> Optional[float]:
    hp = _points(home)
    ap = _points(away)
    if hp is None or ap is None:
        return None
    return NEUTRAL + max(-0.5, min(0.5, (hp - ap) / 60))


# ---------- psychological ----------


def _weighted_points(form: Optional[list[str]]) -> Optional[float]:
    form = _results(form)
    if form is None:
        return None
    recent = form[: len(MORALE_WEIGHTS)]
    return float(sum(FORM_POINTS.get(str(r), 0) * w for r, w in zip(recent, MORALE_WEIGHTS)))


def team_morale(home_form, away_form) -> Optional[float]:
    return _ratio(_weighted_points(home_form), _weighted_points(away_form))


def pressure_handling(home, away) -> Optional[float]:
    return _ratio(
        _per_game(away, ("failed_to_score", "total")),
        _per_game(home, ("failed_to_score", "total")),
    )


def mental_strength(home, away) -> Optional[float]:
    return _both(lambda s: _num(_get(s, "biggest", "streak", "wins")), home, away)


def _derive_one(key: str, fn: Callable[..., Optional[float]], *args) -> Optional[float]:
    try:
        return fn(*args)
    except (TypeError, ValueError, AttributeError, KeyError, ZeroDivisionError, OverflowError) as exc:
        log.warning("criterion_underivable key=%s err=%s", key, exc)
        return None


def derive(raw: RawSignals) -> CriteriaVector:
    """Pure mapping of raw provider data onto the full criteria vector."""
    hs, as_ = raw.home_stats, raw.away_stats
    table = {
        "home_team_form": (form_score, raw.home_form),
        "away_team_form": (form_score, raw.away_form),
        "home_form_specific": (venue_form, hs, "home"),
        "away_form_specific": (venue_form, as_, "away"),
        "goal_scoring_form": (goal_scoring_form, hs, as_),
        "defensive_form": (defensive_form, hs, as_),
        "first_half_performance": (first_half_performance, hs, as_),
        "second_half_performance": (second_half_performance, hs, as_),
        "comeback_ability": (comeback_ability, hs, as_),
        "lead_protection": (lead_protection, hs, as_),
        "head_to_head_record": (head_to_head_record, raw.head_to_head, raw.home_team_id),
        "previous_meeting_outcome": (previous_meeting_outcome, raw.head_to_head, raw.home_team_id),
        "scoring_trends": (scoring_trends, raw.head_to_head, raw.home_team_id),
        "conceding_trends": (conceding_trends, raw.head_to_head, raw.home_team_id),
        "home_advantage": (home_advantage, hs, as_),
        "injury_impact": (injury_impact, raw.home_injuries, raw.away_injuries),
        "suspension_impact": (suspension_impact, hs, as_),
        "key_player_availability": (key_player_availability, raw.home_injuries, raw.away_injuries),
        "player_fatigue": (player_fatigue, hs, as_),
        "physical_condition": (physical_condition, hs, as_),
        "team_chemistry": (team_chemistry, hs, as_),
        "disciplinary_record": (disciplinary_record, hs, as_),
        "penalty_record": (penalty_record, hs, as_),
        "tactical_setup": (tactical_setup, hs, as_),
        "counter_attack_threat": (counter_attack_threat, hs, as_),
        "set_piece_efficiency": (set_piece_efficiency, hs, as_),
        "goalkeeping_form": (goalkeeping_form, hs, as_),
        "weather_conditions": (weather_conditions, raw.weather),
        "venue_conditions": (venue_conditions, raw.weather),
        "crowd_support": (crowd_support, hs),
        "betting_odds": (betting_odds, raw.odds),
        "league_position": (league_position, hs, as_),
        "points_gap": (points_gap, hs, as_),
        "team_morale": (team_morale, raw.home_form, raw.away_form),
        "pressure_handling": (pressure_handling, hs, as_),
        "mental_strength": (mental_strength, hs, as_),
    }
    derived = {key: _derive_one(key, fn, *args) for key, (fn, *args) in table.items()}
    values = {k: v for k, v in derived.items() if v is not None}
    return CriteriaVector(values, signals=values.keys())


async def safe_read(name: str, awaitable: Awaitable, *, match_id: str):
    """Await one provider read; any failure degrades to None."""
    try:
        return await awaitable
    except Exception as exc:
        log.warning("provider_read_failed match_id=%s read=%s err=%s", match_id, name, exc)
        return None


def weather_location(match: Match, fallback: str | None = None) -> str:
    city = (match.venue or "").split(",")[0].strip()
    return city or (fallback if fallback is not None else settings.weather_fallback_city)


async def gather(
    match: Match,
    provider: DataProvider,
    *,
    form_last_n: int | None = None,
    h2h_last_n: int | None = None,
) -> CriteriaVector:
    home_id = match.home_team.api_team_id
    away_id = match.away_team.api_team_id
    form_n = int(form_last_n or settings.form_last_n)
    h2h_n = int(h2h_last_n or settings.h2h_last_n)

    reads = {
        "home_stats": provider.get_team_statistics(home_id),
        "away_stats": provider.get_team_statistics(away_id),
        "home_form": provider.get_team_form(home_id, form_n),
        "away_form": provider.get_team_form(away_id, form_n),
        "head_to_head": provider.get_head_to_head(home_id, away_id, h2h_n),
        "home_injuries": provider.get_injuries(home_id),
        "away_injuries": provider.get_injuries(away_id),
        "weather": provider.get_weather(weather_location(match)),
        "odds": provider.get_odds(match.api_fixture_id),
    }
    results = await asyncio.gather(*(safe_read(name, aw, match_id=match.id) for name, aw in reads.items()))
    raw = RawSignals(home_team_id=home_id, away_team_id=away_id, **dict(zip(reads.keys(), results)))
    criteria = derive(raw)
    log.info(
        "criteria_gathered match_id=%s signals=%s/%s",
        match.id,
        criteria.signal_count,
        len(criteria),
    )
    return criteria

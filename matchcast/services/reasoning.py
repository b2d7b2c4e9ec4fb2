"""Templated match narrative.

The text is built from ordered (predicate, template) rules. Rules are
additive: every rule whose predicate holds contributes its sentence, in
declared order. Templates may reference ``{home}`` and ``{away}``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from matchcast.domain.models import Match, Probabilities
from matchcast.services.criteria import CriteriaVector

STRONG = 0.6
WEAK = 0.4


@dataclass(frozen=True)
class Rule:
    applies: Callable[[CriteriaVector], bool]
    template: str

    def render(self, criteria: CriteriaVector, home: str, away: str) -> str | None:
        if not self.applies(criteria):
            return None
        return self.template.format(home=home, away=away)


FORM_RULES: tuple[Rule, ...] = (
    Rule(lambda c: c["home_team_form"] > STRONG, "{home} shows excellent recent form with strong momentum."),
    Rule(lambda c: c["home_team_form"] < WEAK, "{home} has struggled recently with inconsistent performances."),
    Rule(lambda c: c["away_team_form"] > STRONG, "{away} demonstrates solid away form and adaptability."),
    Rule(lambda c: c["away_team_form"] < WEAK, "{away} faces challenges in away fixtures."),
)

KEY_FACTOR_RULES: tuple[Rule, ...] = (
    Rule(lambda c: c["key_player_availability"] < 0.5, "Injury concerns may significantly impact team performance."),
    Rule(lambda c: c["head_to_head_record"] > STRONG, "Historical matchups favor {home}."),
    Rule(lambda c: c["head_to_head_record"] < WEAK, "{away} has dominated recent encounters."),
    Rule(lambda c: c["home_advantage"] > STRONG, "Strong home advantage expected with supportive crowd."),
    Rule(lambda c: c["weather_conditions"] < WEAK, "Weather conditions may favor defensive play."),
)

NO_KEY_FACTORS = "No single factor stands out; the available signals are closely balanced."

HEADER = "Comprehensive analysis of {home} vs {away} using 50+ performance criteria:\n\n"
CONCLUSION = (
    "Conclusion: Model predicts {winner} advantage with {pct:.1f}% probability, "
    "considering tactical matchups, current form, and situational factors."
)


def _apply(rules: tuple[Rule, ...], criteria: CriteriaVector, home: str, away: str) -> list[str]:
    out = []
    for rule in rules:
        sentence = rule.render(criteria, home, away)
        if sentence:
            out.append(sentence)
    return out


def conclusion(probabilities: Probabilities, home: str, away: str) -> str:
    # equal home/away probabilities name the away side
    winner = home if probabilities.home > probabilities.away else away
    top = max(probabilities.home, probabilities.away)
    return CONCLUSION.format(winner=winner, pct=top * 100)


def generate(criteria: CriteriaVector, probabilities: Probabilities, match: Match) -> str:
    home = (match.home_team.name or "").strip() or "Home Team"
    away = (match.away_team.name or "").strip() or "Away Team"

    form = _apply(FORM_RULES, criteria, home, away)
    factors = _apply(KEY_FACTOR_RULES, criteria, home, away)

    return (
        HEADER.format(home=home, away=away)
        + " ".join(form)
        + "\n\nKey factors: "
        + (" ".join(factors) or NO_KEY_FACTORS)
        + "\n\n"
        + conclusion(probabilities, home, away)
    )

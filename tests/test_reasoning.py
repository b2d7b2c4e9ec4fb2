from matchcast.domain.models import Probabilities
from matchcast.services import reasoning
from matchcast.services.criteria import CriteriaVector

EVEN = Probabilities(home=0.3, draw=0.4, away=0.3)
HOME_FAVOURED = Probabilities(home=0.55, draw=0.25, away=0.20)


def _text(match, **values):
    return reasoning.generate(CriteriaVector.neutral().replace(**values), HOME_FAVOURED, match)


def test_layout_for_neutral_vector(match):
    text = reasoning.generate(CriteriaVector.neutral(), HOME_FAVOURED, match)
    assert text.startswith("Comprehensive analysis of Home FC vs Away FC using 50+ performance criteria:\n\n")
    assert "\n\nKey factors: " + reasoning.NO_KEY_FACTORS in text
    assert text.endswith(
        "\n\nConclusion: Model predicts Home FC advantage with 55.0% probability, "
        "considering tactical matchups, current form, and situational factors."
    )


def test_home_form_rules(match):
    assert "Home FC shows excellent recent form with strong momentum." in _text(match, home_team_form=0.61)
    assert "Home FC has struggled recently with inconsistent performances." in _text(match, home_team_form=0.39)
    neutral = _text(match, home_team_form=0.6)
    assert "excellent recent form" not in neutral
    assert "struggled recently" not in neutral


def test_away_form_rules(match):
    assert "Away FC demonstrates solid away form and adaptability." in _text(match, away_team_form=0.8)
    assert "Away FC faces challenges in away fixtures." in _text(match, away_team_form=0.1)


def test_injury_rule_follows_key_player_availability(match):
    assert "Injury concerns may significantly impact team performance." in _text(match, key_player_availability=0.45)
    assert "Injury concerns" not in _text(match, injury_impact=0.1)


def test_head_to_head_rules(match):
    assert "Historical matchups favor Home FC." in _text(match, head_to_head_record=0.7)
    assert "Away FC has dominated recent encounters." in _text(match, head_to_head_record=0.2)


def test_home_advantage_and_weather_rules(match):
    assert "Strong home advantage expected with supportive crowd." in _text(match, home_advantage=0.65)
    assert "Weather conditions may favor defensive play." in _text(match, weather_conditions=0.3)
    assert "Weather conditions" not in _text(match, weather_conditions=0.4)


def test_rules_are_additive_and_ordered(match):
    text = _text(
        match,
        home_team_form=0.9,
        away_team_form=0.9,
        key_player_availability=0.2,
        head_to_head_record=0.9,
        home_advantage=0.9,
        weather_conditions=0.1,
    )
    order = [
        "shows excellent recent form",
        "demonstrates solid away form",
        "Injury concerns",
        "Historical matchups favor",
        "Strong home advantage",
        "Weather conditions",
    ]
    positions = [text.index(fragment) for fragment in order]
    assert positions == sorted(positions)
    assert reasoning.NO_KEY_FACTORS not in text


def test_conclusion_tie_names_away_side():
    assert reasoning.conclusion(EVEN, "Home FC", "Away FC").startswith(
        "Conclusion: Model predicts Away FC advantage with 30.0% probability"
    )


def test_conclusion_names_away_when_away_is_higher():
    p = Probabilities(home=0.2, draw=0.3, away=0.5)
    assert "Away FC advantage with 50.0%" in reasoning.conclusion(p, "Home FC", "Away FC")


def test_blank_team_names_use_placeholders(match):
    from matchcast.domain.models import Team

    anonymous = match.model_copy(
        update={"home_team": Team(id="h", name=" "), "away_team": Team(id="a", name="")}
    )
    text = reasoning.generate(CriteriaVector.neutral(), HOME_FAVOURED, anonymous)
    assert "Home Team vs Away Team" in text

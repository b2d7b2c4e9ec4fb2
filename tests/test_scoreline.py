import pytest

from matchcast.services.criteria import CriteriaVector
from matchcast.services.scoreline import expected_goals, predict_score, predict_scoreline


def test_neutral_vector_is_one_all():
    vector = CriteriaVector.neutral()
    assert expected_goals(vector, "home") == pytest.approx(1.35)
    assert expected_goals(vector, "away") == pytest.approx(1.2)
    assert predict_scoreline(vector) == (1, 1)


def test_strong_home_attack_against_leaky_defence():
    vector = CriteriaVector.neutral().replace(goal_scoring_form=0.8, defensive_form=0.3)
    assert expected_goals(vector, "home") == pytest.approx(2.25)
    assert expected_goals(vector, "away") == pytest.approx(0.3)
    assert predict_scoreline(vector) == (2, 0)


def test_adverse_weather_suppresses_scoring():
    clear = CriteriaVector.neutral().replace(goal_scoring_form=0.75)
    stormy = clear.replace(weather_conditions=0.2)
    assert predict_score(clear, "home") == 2
    assert expected_goals(stormy, "home") == pytest.approx(1.85 * 0.8)
    assert predict_score(stormy, "home") == 1


def test_weather_at_threshold_is_not_adverse():
    vector = CriteriaVector.neutral().replace(weather_conditions=0.3)
    assert expected_goals(vector, "home") == pytest.approx(1.35)


def test_negative_expectation_floors_at_zero():
    vector = CriteriaVector.neutral().replace(goal_scoring_form=1.0, defensive_form=0.0)
    assert expected_goals(vector, "away") < 0
    assert predict_score(vector, "away") == 0


def test_unknown_side_rejected():
    with pytest.raises(ValueError):
        predict_score(CriteriaVector.neutral(), "neutral")

from matchcast.services.criteria import CriteriaVector
from matchcast.services.importance import CURATED_FEATURES, impact, rank


def test_ranks_exactly_the_curated_features():
    ranked = rank(CriteriaVector.neutral())
    assert len(ranked) == 10
    assert {fi.feature for fi in ranked} == {key for key, _ in CURATED_FEATURES}


def test_neutral_vector_keeps_curated_order():
    ranked = rank(CriteriaVector.neutral())
    assert [fi.feature for fi in ranked] == [key for key, _ in CURATED_FEATURES]
    assert all(fi.impact == 0.0 for fi in ranked)


def test_lopsided_home_form_leads_with_plus_point_eight():
    ranked = rank(CriteriaVector.neutral().replace(home_team_form=0.9))
    assert ranked[0].feature == "home_team_form"
    assert ranked[0].impact == 0.8
    assert ranked[0].description == "Recent home team performance and momentum"


def test_sorted_by_absolute_impact_with_stable_ties():
    vector = CriteriaVector.neutral().replace(
        team_morale=0.95,
        key_player_availability=0.1,
        home_team_form=0.9,
        defensive_form=0.3,
    )
    ranked = rank(vector)
    assert [fi.feature for fi in ranked[:4]] == [
        "team_morale",
        "home_team_form",
        "key_player_availability",
        "defensive_form",
    ]
    assert ranked[1].impact == 0.8
    assert ranked[2].impact == -0.8
    magnitudes = [abs(fi.impact) for fi in ranked]
    assert magnitudes == sorted(magnitudes, reverse=True)


def test_impact_is_rounded_and_bounded():
    assert impact(0.0) == -1.0
    assert impact(1.0) == 1.0
    assert impact(0.5) == 0.0
    assert impact(0.6666) == 0.33

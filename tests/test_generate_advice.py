import pytest

from app.utils.assessment.generate_advice import (
    DIMENSION_ADVICE,
    LEVEL_CONTENT,
    determine_level,
    dimension_advice_for,
    generate_advice,
    weakest_dimension,
)


def _scores(tm=80, rc=80, rk=80, tc=80):
    return {
        "time_management": tm,
        "resource_coordination": rc,
        "risk_control": rk,
        "team_collaboration": tc,
    }


@pytest.mark.parametrize(
    "total, level",
    [(100, "advanced"), (85, "advanced"), (84.9, "intermediate"), (65, "intermediate"), (64.9, "beginner"), (0, "beginner")],
)
def test_level_thresholds(total, level):
    assert determine_level(total) == level


def test_dimension_advice_bands():
    weak, developing, strong = DIMENSION_ADVICE["risk_control"]

    assert dimension_advice_for("risk_control", 69) == weak
    assert dimension_advice_for("risk_control", 70) == developing
    assert dimension_advice_for("risk_control", 84) == developing
    assert dimension_advice_for("risk_control", 85) == strong


def test_weakest_dimension_prefers_canonical_order_on_ties():
    assert weakest_dimension(_scores(rc=40, tc=40)) == "resource_coordination"
    assert weakest_dimension(_scores()) == "time_management"


def test_focus_step_added_for_weak_dimension():
    advice = generate_advice(_scores(tm=60, rc=90, rk=90, tc=90), 82.5)

    assert advice["level"] == "intermediate"
    assert advice["levelDescription"] == "CCPM进阶级"
    assert advice["nextSteps"][:3] == LEVEL_CONTENT["intermediate"]["next_steps"]
    assert advice["nextSteps"][-1] == "🎯 重点提升时间管理能力"


def test_no_focus_step_when_every_dimension_is_strong_enough():
    advice = generate_advice(_scores(tm=70, rc=90, rk=90, tc=90), 85)

    assert advice["level"] == "advanced"
    assert len(advice["nextSteps"]) == 3


def test_missing_scores_count_as_zero():
    advice = generate_advice({}, 0)

    assert advice["level"] == "beginner"
    assert advice["dimensionAdvice"]["team_collaboration"] == DIMENSION_ADVICE["team_collaboration"][0]
    assert advice["nextSteps"][-1] == "🎯 重点提升时间管理能力"


def test_advice_depends_only_on_inputs():
    scores = _scores(tm=55, rc=72, rk=88, tc=64)

    assert generate_advice(scores, 70) == generate_advice(dict(scores), 70)

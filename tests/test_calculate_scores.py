import pytest

from app.utils.assessment.calculate_scores import calculate_scores
from app.utils.assessment.generate_advice import generate_advice
from app.utils.assessment.normalize_questions import normalize_question


def _question(id, dimension, options=("A", "B", "C", "D")):
    return normalize_question(
        {"id": id, "question_text": f"Q{id}", "dimension": dimension, "options": list(options)}
    )


def _scored(id, dimension, score):
    return _question(id, dimension, [{"text": "only", "score": score}])


def test_weighted_total_from_stored_option_scores():
    questions = [
        _scored(1, "time_management", 60),
        _scored(2, "resource_coordination", 90),
        _scored(3, "risk_control", 90),
        _scored(4, "team_collaboration", 90),
    ]

    result = calculate_scores({"1": 0, "2": 0, "3": 0, "4": 0}, questions)

    assert result.dimension_scores == {
        "time_management": 60,
        "resource_coordination": 90,
        "risk_control": 90,
        "team_collaboration": 90,
    }
    assert result.total_score == 82.5


def test_dimension_average_rounds_half_up():
    questions = [_question(1, "time_management"), _question(2, "time_management")]

    # 75 and 50 average to 62.5
    result = calculate_scores({"1": 1, "2": 2}, questions)

    assert result.dimension_scores["time_management"] == 63


def test_point_table_applies_when_option_has_no_score():
    questions = [_question(1, "risk_control")]

    result = calculate_scores({"1": 3}, questions, point_table=[10, 20, 30, 40])

    assert result.dimension_scores["risk_control"] == 40


def test_list_answers_are_positional_and_strings_accepted():
    questions = [_question(1, "time_management"), _question(2, "team_collaboration")]

    result = calculate_scores(["0", 3], questions)

    assert result.dimension_scores["time_management"] == 100
    assert result.dimension_scores["team_collaboration"] == 25
    assert result.answered["time_management"] == 1


def test_invalid_answers_are_skipped():
    questions = [
        _question(1, "time_management", ["A", "", "C"]),
        _question(2, "time_management"),
        _question(3, "unknown_dimension"),
    ]

    # index 1 was dropped as empty, 9 is out of range, True is not an index
    result = calculate_scores({"1": 1, "2": 9, "3": 0, "4": True}, questions)

    assert result.dimension_scores["time_management"] == 0
    assert result.answered["time_management"] == 0
    assert result.total_score == 0


def test_no_answers_scores_zero_everywhere():
    result = calculate_scores({}, [_question(1, "time_management")])

    assert set(result.dimension_scores.values()) == {0}
    assert result.total_score == 0


def test_weights_are_normalized():
    questions = [
        _scored(1, "time_management", 100),
        _scored(2, "resource_coordination", 50),
        _scored(3, "risk_control", 50),
        _scored(4, "team_collaboration", 50),
    ]
    weights = {"time_management": 2, "resource_coordination": 1, "risk_control": 1, "team_collaboration": 1}

    result = calculate_scores({"1": 0, "2": 0, "3": 0, "4": 0}, questions, weights=weights)

    assert result.total_score == pytest.approx(70)


def test_zero_weights_fall_back_to_equal_weights():
    questions = [_scored(1, "time_management", 100)]

    result = calculate_scores({"1": 0}, questions, weights={"time_management": 0})

    assert result.total_score == 25


def test_scores_are_clamped_to_scale():
    questions = [_scored(1, "time_management", 250)]

    result = calculate_scores({"1": 0}, questions)

    assert result.dimension_scores["time_management"] == 100


def test_strong_answers_reach_advanced_without_callout():
    dimensions = ["time_management", "resource_coordination", "risk_control", "team_collaboration"]
    questions = [_scored(i, dimensions[i % 4], 95 + i % 3) for i in range(1, 11)]

    result = calculate_scores({str(i): 0 for i in range(1, 11)}, questions)
    advice = generate_advice(result.dimension_scores, result.total_score)

    assert result.total_score >= 85
    assert advice["level"] == "advanced"
    assert len(advice["nextSteps"]) == 3

from app.utils.assessment.normalize_questions import (
    OptionsAsList,
    OptionsAsObject,
    classify_options,
    group_by_dimension,
    normalize_options,
    normalize_question,
)


def _row(id, dimension, options):
    return {"id": id, "question_text": f"Q{id}", "dimension": dimension, "options": options}


def test_list_options_keep_original_positions():
    options = normalize_options(classify_options(["甲", "", "  ", "丁"]))

    assert [(o.index, o.text) for o in options] == [(0, "甲"), (3, "丁")]


def test_object_options_follow_fixed_key_order():
    raw = {"C": "third", "A": "first", "E": "ignored", "B": ""}
    options = normalize_options(classify_options(raw))

    assert [(o.index, o.text) for o in options] == [(0, "first"), (2, "third")]


def test_dict_entries_carry_text_and_score():
    raw = [{"text": " 按计划 ", "score": 80}, {"text": "", "score": 10}, {"score": 5}, {"text": "其他"}]
    options = normalize_options(classify_options(raw))

    assert [(o.index, o.text, o.score) for o in options] == [(0, "按计划", 80.0), (3, "其他", None)]


def test_unrecognised_shapes_become_empty():
    assert isinstance(classify_options(None), OptionsAsList)
    assert isinstance(classify_options({"A": "x"}), OptionsAsObject)
    assert normalize_options(classify_options("A,B,C")) == []
    assert normalize_options(classify_options(42)) == []


def test_question_payload_never_exposes_scores():
    question = normalize_question(_row(7, "risk_control", [{"text": "监控缓冲", "score": 100}]))

    payload = question.to_dict()
    assert payload["options"] == [{"index": 0, "text": "监控缓冲"}]
    assert question.option_at(0).score == 100
    assert question.option_at(1) is None


def test_group_by_dimension_puts_canonical_dimensions_first():
    questions = [
        normalize_question(_row(1, "custom", ["a"])),
        normalize_question(_row(2, "team_collaboration", ["a"])),
        normalize_question(_row(3, "time_management", ["a"])),
        normalize_question(_row(4, "time_management", ["a"])),
    ]

    grouped = group_by_dimension(questions)

    assert list(grouped) == ["time_management", "team_collaboration", "custom"]
    assert [q.id for q in grouped["time_management"]] == [3, 4]

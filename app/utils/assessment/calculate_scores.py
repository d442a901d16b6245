import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from app.constants.constants import DIMENSION_ORDER, MAX_DIMENSION_SCORE, MAX_TOTAL_SCORE
from app.utils.assessment.normalize_questions import Question

Answers = Union[Mapping[str, Any], Sequence[Any]]

DEFAULT_OPTION_POINTS = (100, 75, 50, 25)
DEFAULT_DIMENSION_WEIGHTS = {dimension: 0.25 for dimension in DIMENSION_ORDER}


@dataclass(frozen=True)
class ScoreResult:
    dimension_scores: Dict[str, int]
    total_score: float
    answered: Dict[str, int]


def _clamp(value: float, upper: float) -> float:
    return max(0.0, min(float(upper), value))


def _answer_index(answers: Answers, question: Question, position: int) -> Optional[int]:
    """Chosen option index for ``question``; keyed answers win, lists are positional."""
    if isinstance(answers, Mapping):
        raw = answers.get(str(question.id), answers.get(question.id))
    elif position < len(answers):
        raw = answers[position]
    else:
        return None

    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw)
    return None


def _option_points(question: Question, index: int, point_table: Sequence[float]) -> Optional[float]:
    option = question.option_at(index)
    if option is None:
        return None
    if option.score is not None:
        return option.score
    if 0 <= index < len(point_table):
        return float(point_table[index])
    return None


def _normalized_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    picked = {d: max(0.0, float(weights.get(d, 0.0))) for d in DIMENSION_ORDER}
    total = sum(picked.values())
    if total <= 0:
        return dict(DEFAULT_DIMENSION_WEIGHTS)
    if total == 1:
        return picked
    return {d: w / total for d, w in picked.items()}


def calculate_scores(
    answers: Answers,
    questions: Sequence[Question],
    point_table: Sequence[float] = DEFAULT_OPTION_POINTS,
    weights: Optional[Mapping[str, float]] = None,
) -> ScoreResult:
    """
    Score a submission per dimension and overall.

    Each dimension scores the rounded average of the points of its answered
    questions (0 when nothing was answered). The total is the weighted sum of
    the dimension scores, with weights normalized to sum to one, so it stays
    on the same 0-100 scale.

    Args:
        answers: ``{question_id: option_index}`` or a list aligned with ``questions``
        questions: normalized question bank
        point_table: points by option index, used when an option has no stored score
        weights: dimension weights (defaults to equal weights)

    Returns:
        ScoreResult with scores in canonical dimension order
    """
    totals = {dimension: 0.0 for dimension in DIMENSION_ORDER}
    counts = {dimension: 0 for dimension in DIMENSION_ORDER}

    for position, question in enumerate(questions):
        if question.dimension not in totals:
            continue
        index = _answer_index(answers, question, position)
        if index is None:
            continue
        points = _option_points(question, index, point_table)
        if points is None:
            continue
        totals[question.dimension] += points
        counts[question.dimension] += 1

    dimension_scores = {}
    for dimension in DIMENSION_ORDER:
        if counts[dimension] == 0:
            dimension_scores[dimension] = 0
            continue
        average = totals[dimension] / counts[dimension]
        # Half-up rounding, not banker's rounding
        dimension_scores[dimension] = int(math.floor(_clamp(average, MAX_DIMENSION_SCORE) + 0.5))

    resolved_weights = _normalized_weights(weights or DEFAULT_DIMENSION_WEIGHTS)
    total = sum(resolved_weights[d] * dimension_scores[d] for d in DIMENSION_ORDER)

    return ScoreResult(
        dimension_scores=dimension_scores,
        total_score=_clamp(total, MAX_TOTAL_SCORE),
        answered=counts,
    )

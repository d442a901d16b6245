"""Normalization of stored question rows into a uniform option list.

Options reach us in two shapes: an ordered list, or an object keyed by the
canonical labels A-D. Both are turned into ``[NormalizedOption(index, text)]``
where ``index`` is the position in the original ordering and empty entries
are dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from app.constants.constants import DIMENSION_ORDER, OPTION_KEYS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionsAsList:
    items: Sequence[Any]


@dataclass(frozen=True)
class OptionsAsObject:
    mapping: Mapping[str, Any]


RawOptions = Union[OptionsAsList, OptionsAsObject]


@dataclass(frozen=True)
class NormalizedOption:
    index: int
    text: str
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "text": self.text}


@dataclass(frozen=True)
class Question:
    id: int
    question_text: str
    dimension: str
    options: List[NormalizedOption] = field(default_factory=list)
    explanation: Optional[str] = None
    correct_answer: Optional[str] = None

    def option_at(self, index: int) -> Optional[NormalizedOption]:
        for option in self.options:
            if option.index == index:
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question_text": self.question_text,
            "dimension": self.dimension,
            "options": [option.to_dict() for option in self.options],
        }


def classify_options(raw: Any) -> RawOptions:
    """Tag the stored ``options`` value with its shape.

    Anything that is neither a list nor an object is treated as an empty list.
    """
    if isinstance(raw, (list, tuple)):
        return OptionsAsList(items=list(raw))
    if isinstance(raw, Mapping):
        return OptionsAsObject(mapping=raw)
    return OptionsAsList(items=[])


def _entry_text(entry: Any) -> str:
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, Mapping) and entry.get("text"):
        return str(entry["text"]).strip()
    return ""


def _entry_score(entry: Any) -> Optional[float]:
    if not isinstance(entry, Mapping):
        return None
    score = entry.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return float(score)


def normalize_options(options: RawOptions) -> List[NormalizedOption]:
    """Convert either option shape into the uniform list form."""
    if isinstance(options, OptionsAsObject):
        entries = [options.mapping.get(key) for key in OPTION_KEYS]
    else:
        entries = list(options.items)

    normalized = []
    for index, entry in enumerate(entries):
        text = _entry_text(entry)
        if not text:
            continue
        normalized.append(NormalizedOption(index=index, text=text, score=_entry_score(entry)))
    return normalized


def normalize_question(row: Mapping[str, Any]) -> Question:
    """Build a ``Question`` from a raw row (a mapping of column values)."""
    raw_options = row.get("options")
    options = normalize_options(classify_options(raw_options))

    original_count = len(raw_options) if isinstance(raw_options, (list, tuple, Mapping)) else 0
    if len(options) != original_count:
        logger.debug(
            f"Question {row.get('id')}: filtered {original_count - len(options)} invalid options"
        )

    return Question(
        id=row["id"],
        question_text=row.get("question_text") or "",
        dimension=row.get("dimension") or "",
        options=options,
        explanation=row.get("explanation"),
        correct_answer=row.get("correct_answer"),
    )


def group_by_dimension(questions: Sequence[Question]) -> Dict[str, List[Question]]:
    """Group questions by dimension for quiz pagination.

    Canonical dimensions come first, in canonical order; any other dimension
    tag found in the data follows in order of first appearance.
    """
    grouped: Dict[str, List[Question]] = {}
    for dimension in DIMENSION_ORDER:
        members = [q for q in questions if q.dimension == dimension]
        if members:
            grouped[dimension] = members
    for question in questions:
        if question.dimension not in DIMENSION_ORDER:
            grouped.setdefault(question.dimension, []).append(question)
    return grouped

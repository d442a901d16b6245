from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.constants.constants import DIMENSION_ORDER, AssessmentLevel

SCORE_BUCKETS = (
    ("0-20", 20),
    ("21-40", 40),
    ("41-60", 60),
    ("61-80", 80),
    ("81-100", None),
)


def _bucket_for(score: float) -> str:
    for label, upper in SCORE_BUCKETS:
        if upper is None or score <= upper:
            return label
    return SCORE_BUCKETS[-1][0]


def _day_of(completed_at: Any) -> Optional[str]:
    if isinstance(completed_at, datetime):
        return completed_at.date().isoformat()
    if isinstance(completed_at, str) and completed_at:
        return completed_at.split("T")[0]
    return None


def summarize_assessments(
    records: Iterable[Mapping[str, Any]],
    email_counts: Optional[Mapping[str, int]] = None,
) -> Dict[str, Any]:
    """
    Aggregate assessment rows for the analytics dashboard.

    Args:
        records: rows with ``total_score``, ``scores``, ``assessment_level`` and ``completed_at``
        email_counts: ``{"sent", "opened", "clicked"}`` engagement totals, if available

    Returns:
        dict with summary, scoreDistribution, levelDistribution, dimensionScores,
        timeSeries and emailStats
    """
    distribution = OrderedDict((label, 0) for label, _ in SCORE_BUCKETS)
    levels = OrderedDict((level.value, 0) for level in AssessmentLevel)
    dimension_totals = {dimension: 0.0 for dimension in DIMENSION_ORDER}
    dimension_counts = {dimension: 0 for dimension in DIMENSION_ORDER}
    daily: Dict[str, Dict[str, float]] = OrderedDict()

    count = 0
    score_sum = 0.0
    for record in records:
        count += 1
        total = record.get("total_score") or 0
        score_sum += total
        distribution[_bucket_for(total)] += 1

        level = record.get("assessment_level")
        if level in levels:
            levels[level] += 1

        scores = record.get("scores") or {}
        for dimension in DIMENSION_ORDER:
            value = scores.get(dimension)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                dimension_totals[dimension] += value
                dimension_counts[dimension] += 1

        day = _day_of(record.get("completed_at"))
        if day:
            stats = daily.setdefault(day, {"count": 0, "total": 0.0})
            stats["count"] += 1
            stats["total"] += total

    time_series: List[Dict[str, Any]] = [
        {
            "date": day,
            "count": int(stats["count"]),
            "averageScore": round(stats["total"] / stats["count"]) if stats["count"] else 0,
        }
        for day, stats in sorted(daily.items())
    ]

    emails = dict(email_counts or {})
    sent = emails.get("sent", 0)
    opened = emails.get("opened", 0)
    clicked = emails.get("clicked", 0)
    open_rate = round(opened / sent * 100) if sent else 0
    click_rate = round(clicked / sent * 100) if sent else 0

    return {
        "summary": {
            "totalAssessments": count,
            "averageScore": round(score_sum / count) if count else 0,
            "emailsSent": sent,
            "openRate": open_rate,
            "clickRate": click_rate,
        },
        "scoreDistribution": dict(distribution),
        "levelDistribution": dict(levels),
        "dimensionScores": {
            dimension: (
                round(dimension_totals[dimension] / dimension_counts[dimension])
                if dimension_counts[dimension] else 0
            )
            for dimension in DIMENSION_ORDER
        },
        "timeSeries": time_series,
        "emailStats": {
            "sent": sent,
            "opened": opened,
            "clicked": clicked,
            "openRate": open_rate,
            "clickRate": click_rate,
        },
    }

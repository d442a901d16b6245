"""Tiered advice derived purely from assessment scores.

Advice is never stored; records keep only scores and the advice is rebuilt
from them on every read. The output must therefore depend on nothing but the
arguments.
"""

from typing import Any, Dict, List, Mapping

from app.constants.constants import (
    ADVANCED_THRESHOLD,
    DIMENSION_LABELS,
    DIMENSION_ORDER,
    DIMENSION_STRONG_THRESHOLD,
    DIMENSION_WEAK_THRESHOLD,
    INTERMEDIATE_THRESHOLD,
    AssessmentLevel,
)

LEVEL_CONTENT = {
    AssessmentLevel.advanced.value: {
        "description": "CCPM专家级",
        "overall": (
            "您对关键链项目管理有深入的理解！您已经掌握了CCPM的核心理念，"
            "建议您在实际项目中应用这些方法，并考虑成为团队的CCPM推广者。"
        ),
        "next_steps": [
            "🏆 成为团队的CCPM推广者和教练",
            "🚀 在组织中推广CCPM最佳实践",
            "🤝 与我们合作，帮助更多企业实施CCPM",
        ],
    },
    AssessmentLevel.intermediate.value: {
        "description": "CCPM进阶级",
        "overall": (
            "您对项目管理有良好的基础理解，但在CCPM的某些核心概念上还有提升空间。"
            "建议深入学习关键链理论，特别关注缓冲管理和资源约束。"
        ),
        "next_steps": [
            "🔧 在实际项目中尝试应用CCPM方法",
            "📊 学习使用CCPM项目管理工具",
            "👥 考虑参加CCPM认证培训",
        ],
    },
    AssessmentLevel.beginner.value: {
        "description": "CCPM入门级",
        "overall": (
            "您目前主要采用传统项目管理思维。CCPM能够显著提升项目成功率和效率，"
            "建议您系统学习关键链项目管理方法。"
        ),
        "next_steps": [
            "📚 阅读《关键链》一书，了解CCPM基础理论",
            "🎯 参加CCPM基础培训课程",
            "💼 联系我们获取免费的项目诊断服务",
        ],
    },
}

# (weak, developing, strong) per dimension
DIMENSION_ADVICE = {
    "time_management": (
        "建议学习三点估算法和缓冲管理，避免在每个任务上都加安全时间，而是集中管理项目缓冲。",
        "您对时间管理有一定理解，可以进一步学习如何识别关键链和设置项目缓冲。",
        "您在时间管理方面表现优秀！继续保持对关键链识别和缓冲管理的重视。",
    ),
    "resource_coordination": (
        "建议重点学习瓶颈资源管理和多项目资源协调，避免资源在多任务间的低效切换。",
        "您对资源管理有基本认识，可以深入学习如何识别和管理瓶颈资源。",
        "您在资源协调方面很有见解！继续关注瓶颈资源的识别和保护。",
    ),
    "risk_control": (
        "建议学习CCPM的缓冲监控方法，通过缓冲消耗率来科学监控项目风险。",
        "您对风险控制有一定理解，可以进一步学习缓冲管理和项目监控方法。",
        "您在风险控制方面表现出色！继续运用科学的缓冲监控方法。",
    ),
    "team_collaboration": (
        "建议学习如何消除学生综合症和帕金森定律，通过关键链管理提升团队协作效率。",
        "您对团队协作有良好认识，可以进一步学习关键链在跨部门协作中的应用。",
        "您在团队协作方面很有经验！继续推广关键链理念，提升团队整体效率。",
    ),
}


def _score(scores: Mapping[str, Any], dimension: str) -> float:
    value = scores.get(dimension) if scores else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def determine_level(total_score: float) -> str:
    """Map a total score to its tier."""
    if total_score >= ADVANCED_THRESHOLD:
        return AssessmentLevel.advanced.value
    if total_score >= INTERMEDIATE_THRESHOLD:
        return AssessmentLevel.intermediate.value
    return AssessmentLevel.beginner.value


def dimension_advice_for(dimension: str, score: float) -> str:
    weak, developing, strong = DIMENSION_ADVICE[dimension]
    if score < DIMENSION_WEAK_THRESHOLD:
        return weak
    if score < DIMENSION_STRONG_THRESHOLD:
        return developing
    return strong


def weakest_dimension(scores: Mapping[str, Any]) -> str:
    """Lowest-scoring dimension; ties keep the earliest in canonical order."""
    weakest = DIMENSION_ORDER[0]
    for dimension in DIMENSION_ORDER[1:]:
        if _score(scores, dimension) < _score(scores, weakest):
            weakest = dimension
    return weakest


def generate_next_steps(level: str, scores: Mapping[str, Any]) -> List[str]:
    steps = list(LEVEL_CONTENT[level]["next_steps"])
    weakest = weakest_dimension(scores)
    if _score(scores, weakest) < DIMENSION_WEAK_THRESHOLD:
        steps.append(f"🎯 重点提升{DIMENSION_LABELS[weakest]}能力")
    return steps


def generate_advice(scores: Mapping[str, Any], total_score: float) -> Dict[str, Any]:
    """
    Build the advice payload for a set of scores.

    Args:
        scores: dimension -> score; missing dimensions count as 0
        total_score: overall score on the 0-100 scale

    Returns:
        dict with level, levelDescription, overallAdvice, dimensionAdvice, nextSteps
    """
    level = determine_level(total_score or 0)
    content = LEVEL_CONTENT[level]

    return {
        "level": level,
        "levelDescription": content["description"],
        "overallAdvice": content["overall"],
        "dimensionAdvice": {
            dimension: dimension_advice_for(dimension, _score(scores, dimension))
            for dimension in DIMENSION_ORDER
        },
        "nextSteps": generate_next_steps(level, scores),
    }

"""Constants for assessment dimensions, levels, email types, statuses and alert levels."""

from enum import Enum


class Dimension(str, Enum):
    """Enumeration of the four assessment dimensions, in canonical order."""

    time_management = "time_management"
    resource_coordination = "resource_coordination"
    risk_control = "risk_control"
    team_collaboration = "team_collaboration"


class AssessmentLevel(str, Enum):
    """Enumeration of proficiency tiers derived from the total score."""

    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


class EmailType(str, Enum):
    """Enumeration of outbound email templates."""

    assessment_result = "assessment_result"
    follow_up_1 = "follow_up_1"
    follow_up_2 = "follow_up_2"


class EmailStatus(str, Enum):
    """Enumeration of email delivery statuses."""

    sent = "sent"
    failed = "failed"


class AlertLevel(str, Enum):
    """Enumeration of quota alert levels."""

    warning = "warning"
    critical = "critical"


DIMENSION_ORDER = [dimension.value for dimension in Dimension]

DIMENSION_LABELS = {
    Dimension.time_management.value: "时间管理",
    Dimension.resource_coordination.value: "资源协调",
    Dimension.risk_control.value: "风险控制",
    Dimension.team_collaboration.value: "团队协作",
}

# Fixed key order used when options are stored as an object
OPTION_KEYS = ("A", "B", "C", "D")

MAX_TOTAL_SCORE = 100
MAX_DIMENSION_SCORE = 100

# Level thresholds on the total score
ADVANCED_THRESHOLD = 85
INTERMEDIATE_THRESHOLD = 65

# Per-dimension advice bands
DIMENSION_WEAK_THRESHOLD = 70
DIMENSION_STRONG_THRESHOLD = 85

# Quota alerting
QUOTA_WARNING_PERCENTAGE = 80
QUOTA_CRITICAL_PERCENTAGE = 90

"""Quota usage alerts with per-metric de-duplication."""

import logging
import re
from dataclasses import dataclass
from html import escape
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from app.constants.constants import QUOTA_CRITICAL_PERCENTAGE, QUOTA_WARNING_PERCENTAGE, AlertLevel
from app.core.config import settings
from app.utils.alert_rate_limiter import AlertRateLimiter
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Metric names containing these are byte counts
BYTE_METRIC_HINTS = ("带宽", "存储", "数据库", "bandwidth", "storage", "database")


@dataclass(frozen=True)
class QuotaAlert:
    service: str
    metric: str
    percentage: float
    used: float
    limit: float
    level: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "metric": self.metric,
            "percentage": self.percentage,
            "level": self.level,
        }


alert_rate_limiter = AlertRateLimiter(
    window_seconds=settings.ALERT_COOLDOWN_SECONDS,
    max_keys=settings.ALERT_CACHE_MAX_KEYS,
)


_WHITESPACE = re.compile(r"\s+")


def alert_key(service: str, metric: str) -> str:
    return f"{service}-{_WHITESPACE.sub('-', metric).lower()}"


def alert_level(percentage: float) -> str:
    if percentage >= QUOTA_CRITICAL_PERCENTAGE:
        return AlertLevel.critical.value
    return AlertLevel.warning.value


def collect_alerts(
    quota_data: Mapping[str, Iterable[Mapping[str, Any]]],
    limiter: AlertRateLimiter,
) -> List[QuotaAlert]:
    """
    Pick the metrics that should alert now and record them in ``limiter``.

    Args:
        quota_data: service name -> list of ``{metric, percentage, used, limit}``
        limiter: de-duplication state, one key per service and metric
    """
    alerts = []
    for service, metrics in quota_data.items():
        for metric in metrics or []:
            percentage = metric.get("percentage") or 0
            if percentage < QUOTA_WARNING_PERCENTAGE:
                continue
            name = str(metric.get("metric") or "")
            if not limiter.try_acquire(alert_key(service, name)):
                logger.info(f"🔕 Alert for {service}/{name} suppressed, still in cooldown")
                continue
            alerts.append(
                QuotaAlert(
                    service=service,
                    metric=name,
                    percentage=percentage,
                    used=metric.get("used") or 0,
                    limit=metric.get("limit") or 0,
                    level=alert_level(percentage),
                )
            )
    return alerts


def format_value(value: float, metric: str) -> str:
    lowered = metric.lower()
    if any(hint in lowered for hint in BYTE_METRIC_HINTS):
        if value >= 1024 ** 3:
            return f"{value / 1024 ** 3:.2f} GB"
        if value >= 1024 ** 2:
            return f"{value / 1024 ** 2:.1f} MB"
        if value >= 1024:
            return f"{value / 1024:.1f} KB"
        return f"{value:g} B"
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,}"


def _alert_block(alert: QuotaAlert, color: str, background: str) -> str:
    return f"""
        <div style="margin: 15px 0; padding: 15px; border-radius: 6px; border-left: 4px solid {color}; background: {background};">
            <div style="font-weight: bold; color: #1f2937;">{escape(alert.service.upper())} - {escape(alert.metric)}</div>
            <div style="font-size: 1.2em; font-weight: bold; color: {color};">{alert.percentage:.1f}% 已使用</div>
            <div>已使用: {format_value(alert.used, alert.metric)} / 限制: {format_value(alert.limit, alert.metric)}</div>
        </div>
        """


def build_alert_email(alerts: List[QuotaAlert]) -> Tuple[str, str]:
    """Subject and HTML body of the summary alert email."""
    critical = [a for a in alerts if a.level == AlertLevel.critical.value]
    warning = [a for a in alerts if a.level == AlertLevel.warning.value]

    subject = "🚨 CCPM360 服务额度严重警告" if critical else "⚠️ CCPM360 服务额度警告"

    critical_section = ""
    if critical:
        critical_section = '<h3 style="color: #ef4444;">🚨 严重警告 (≥90%)</h3>' + "".join(
            _alert_block(a, "#ef4444", "#fef2f2") for a in critical
        )
    warning_section = ""
    if warning:
        warning_section = '<h3 style="color: #f59e0b;">⚠️ 警告 (≥80%)</h3>' + "".join(
            _alert_block(a, "#f59e0b", "#fffbeb") for a in warning
        )

    html = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>{subject}</title></head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <div style="background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 20px; border-radius: 8px 8px 0 0;">
                <h1>🏢 CCPM360 服务额度监控</h1>
                <p>检测到服务额度使用异常，请及时处理</p>
            </div>
            <div style="background: #f9f9f9; padding: 20px; border-radius: 0 0 8px 8px;">
                <p>您好，</p>
                <p>我们检测到以下服务的额度使用量已达到警告阈值：</p>
                {critical_section}
                {warning_section}
                <h3>建议操作：</h3>
                <ul>
                    <li>检查并优化数据库查询和存储使用</li>
                    <li>考虑升级到付费计划以获得更多额度</li>
                    <li>监控应用使用情况，避免不必要的资源消耗</li>
                    <li>设置更频繁的监控以及时发现问题</li>
                </ul>
            </div>
            <div style="margin-top: 20px; padding: 15px; background: #e5e7eb; border-radius: 6px; font-size: 0.9em; color: #6b7280;">
                <p>此邮件由 CCPM360 额度监控系统自动发送</p>
                <p>发送时间: {utcnow().strftime("%Y-%m-%d %H:%M:%S")} UTC</p>
            </div>
        </div>
    </body>
    </html>
    """
    return subject, html


async def process_quota_alert(
    quota_data: Mapping[str, Iterable[Mapping[str, Any]]],
    mailer,
    limiter: Optional[AlertRateLimiter] = None,
    recipient: Optional[str] = None,
) -> Dict[str, Any]:
    """Evaluate quota metrics and send one summary email when any alert fires."""
    alerts = collect_alerts(quota_data, limiter or alert_rate_limiter)
    if not alerts:
        return {"success": True, "alertsSent": 0, "message": "所有服务额度正常"}

    subject, html = build_alert_email(alerts)
    email_sent = await mailer.send_email(recipient or settings.ALERT_EMAIL, subject, html)
    logger.warning(f"🚨 {len(alerts)} quota alerts raised, email sent: {email_sent}")

    return {
        "success": True,
        "alertsSent": len(alerts),
        "emailSent": email_sent,
        "alerts": [alert.to_dict() for alert in alerts],
    }

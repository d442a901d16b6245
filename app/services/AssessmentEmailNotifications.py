"""
Email Service for Assessment Results and Follow-ups
Every message gets a tracking id, an open pixel and click-tracked links,
and is recorded in email_history.
"""

import logging
import uuid
from html import escape
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from app.constants.constants import DIMENSION_LABELS, DIMENSION_ORDER, EmailStatus, EmailType
from app.core.exceptions import AssessmentServiceError, InvalidInputError
from app.schemas.emailSchema import ResultEmailAdvice, ResultEmailData
from app.services.AssessmentStore import AssessmentStore
from app.services.DownloadTokenService import issue_download_token
from app.services.EmailTracking import inject_tracking

logger = logging.getLogger(__name__)

LEVEL_NAMES = {
    "beginner": "初学者",
    "intermediate": "进阶者",
    "advanced": "专家级",
}


def _bar_color(score: float) -> str:
    if score >= 80:
        return "#10b981"
    if score >= 60:
        return "#f59e0b"
    return "#ef4444"


def _format_score(score: float) -> str:
    if score.is_integer():
        return str(int(score))
    return str(round(score, 2))


def _parse_result_data(data: Mapping[str, Any]) -> ResultEmailData:
    try:
        return ResultEmailData.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "data"
        raise InvalidInputError(f"Invalid assessment result data: {field}: {first['msg']}") from e


def build_assessment_result_email(data: Mapping[str, Any]) -> str:
    """
    HTML body of the result email.

    Raises:
        InvalidInputError: scores are not numeric or advice is not an object
    """
    result = _parse_result_data(data)
    advice = result.advice or ResultEmailAdvice()

    greeting = ""
    if result.name:
        greeting = f'<p style="color: #374151; font-size: 16px;">{escape(result.name)}，您好！</p>'

    dimension_rows = ""
    for dimension in DIMENSION_ORDER:
        score = result.dimension_scores.get(dimension) or 0.0
        color = _bar_color(score)
        width = min(max(score, 0.0), 100.0)
        dimension_rows += f"""
            <div style="margin-bottom: 15px;">
                <div style="display: flex; justify-content: space-between; align-items: center; margin-bottom: 5px;">
                    <span style="color: #374151; font-weight: 500;">{DIMENSION_LABELS[dimension]}</span>
                    <span style="color: {color}; font-weight: bold;">{_format_score(score)}分</span>
                </div>
                <div style="background: #e5e7eb; height: 8px; border-radius: 4px; overflow: hidden;">
                    <div style="background: {color}; height: 100%; width: {_format_score(width)}%;"></div>
                </div>
            </div>
            """

    next_steps = "".join(
        f'<li style="margin-bottom: 8px;">{escape(step)}</li>' for step in advice.next_steps
    )

    download_section = ""
    if result.download_url:
        download_section = f"""
        <div style="text-align: center; margin-bottom: 25px;">
            <a href="{escape(result.download_url)}" style="display: inline-block; background: #2563eb; color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600;">下载完整PDF报告</a>
            <p style="color: #6b7280; font-size: 13px; margin-top: 8px;">下载链接7天内有效</p>
        </div>
        """

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
    </head>
    <body>
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="text-align: center; margin-bottom: 30px;">
            <h1 style="color: #2563eb; margin-bottom: 10px;">CCPM360 项目管理思维诊断报告</h1>
            <p style="color: #6b7280; font-size: 16px;">感谢您完成我们的项目管理思维诊断测试</p>
        </div>
        {greeting}
        <div style="background: linear-gradient(135deg, #3b82f6, #6366f1); color: white; padding: 30px; border-radius: 12px; text-align: center; margin-bottom: 30px;">
            <h2 style="margin: 0 0 10px 0; font-size: 24px;">您的项目管理水平：{LEVEL_NAMES.get(advice.level, "初学者")}</h2>
            <div style="font-size: 36px; font-weight: bold; margin: 15px 0;">{_format_score(result.total_score)}分</div>
            <p style="margin: 0; opacity: 0.9;">{escape(advice.level_description or "")}</p>
        </div>

        <div style="background: #f8fafc; padding: 25px; border-radius: 12px; margin-bottom: 25px;">
            <h3 style="color: #1f2937; margin-bottom: 15px;">整体评价</h3>
            <p style="color: #4b5563; line-height: 1.6; margin: 0;">{escape(advice.overall_advice or "")}</p>
        </div>

        <div style="margin-bottom: 25px;">
            <h3 style="color: #1f2937; margin-bottom: 15px;">各维度得分</h3>
            {dimension_rows}
        </div>

        <div style="background: #fef3c7; border: 1px solid #fbbf24; padding: 20px; border-radius: 12px; margin-bottom: 25px;">
            <h3 style="color: #92400e; margin-bottom: 15px;">提升建议</h3>
            <ul style="color: #92400e; margin: 0; padding-left: 20px;">
                {next_steps}
            </ul>
        </div>
        {download_section}
        <div style="background: linear-gradient(135deg, #6366f1, #8b5cf6); color: white; padding: 25px; border-radius: 12px; text-align: center; margin-bottom: 25px;">
            <h3 style="margin: 0 0 15px 0;">关键链项目管理（CCPM）</h3>
            <p style="margin: 0 0 20px 0; opacity: 0.9;">突破传统项目管理瓶颈，实现项目成功率提升30%+</p>
            <a href="https://ccpm360.com/contact" style="display: inline-block; background: white; color: #6366f1; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: 600;">免费咨询CCPM解决方案</a>
        </div>

        <div style="text-align: center; padding: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px;">
            <p>CCPM360 - 专业的关键链项目管理解决方案提供商</p>
            <p>如有疑问，请联系我们：info@ccpm360.com</p>
        </div>
    </div>
    </body>
    </html>
    """


def build_follow_up_1_email(data: Optional[Mapping[str, Any]] = None) -> str:
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body>
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #2563eb;">您好，朋友！</h1>

        <p>感谢您参与我们的项目管理思维诊断测试。基于您的测试结果，我们为您准备了一些有价值的CCPM学习资料。</p>

        <div style="background: #f0f9ff; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h3 style="color: #0369a1;">为什么选择CCPM？</h3>
            <ul style="color: #374151;">
                <li>平均项目周期缩短25%</li>
                <li>项目按时完成率达90%+</li>
                <li>资源利用率提升40%</li>
                <li>团队协作效率显著改善</li>
            </ul>
        </div>

        <div style="text-align: center; margin: 30px 0;">
            <a href="https://ccpm360.com/resources" style="display: inline-block; background: #2563eb; color: white; padding: 15px 30px; border-radius: 8px; text-decoration: none; font-weight: 600;">获取免费CCPM学习资料</a>
        </div>

        <p>最佳祝愿，<br>CCPM360团队</p>
    </div>
    </body>
    </html>
    """


def build_follow_up_2_email(data: Optional[Mapping[str, Any]] = None) -> str:
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body>
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #2563eb;">实战案例分享</h1>

        <p>您好！我们想与您分享一些CCPM在实际项目中的成功案例。</p>

        <div style="background: #f8fafc; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h3 style="color: #1f2937;">案例：某制造企业的CCPM转型</h3>
            <p><strong>挑战：</strong>项目延期率高达60%，资源冲突频繁</p>
            <p><strong>解决方案：</strong>实施CCPM方法论，重新设计项目流程</p>
            <p><strong>结果：</strong>项目按时完成率提升至95%，资源利用率提升35%</p>
        </div>

        <div style="text-align: center; margin: 30px 0;">
            <a href="https://ccpm360.com/cases" style="display: inline-block; background: #059669; color: white; padding: 15px 30px; border-radius: 8px; text-decoration: none; font-weight: 600;">查看更多成功案例</a>
        </div>

        <p>想了解CCPM如何帮助您的企业？我们提供免费的项目诊断服务。</p>

        <p>最佳祝愿，<br>CCPM360团队</p>
    </div>
    </body>
    </html>
    """


EMAIL_TEMPLATES = {
    EmailType.assessment_result.value: ("您的项目管理思维诊断报告 - CCPM360", build_assessment_result_email),
    EmailType.follow_up_1.value: ("深入了解CCPM：传统项目管理的突破之道", build_follow_up_1_email),
    EmailType.follow_up_2.value: ("CCPM实战案例：看看其他企业如何成功转型", build_follow_up_2_email),
}


async def send_templated_email(
    store: AssessmentStore,
    mailer,
    email_type: str,
    recipient_email: str,
    data: Optional[Mapping[str, Any]] = None,
    assessment_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Render, track, send and record one templated email.

    Raises:
        InvalidInputError: unknown template type or missing recipient

    Returns:
        dict with success, trackingId and message
    """
    if not recipient_email:
        raise InvalidInputError("Missing required fields")
    template = EMAIL_TEMPLATES.get(email_type)
    if not template:
        raise InvalidInputError("Invalid email template type")

    subject, builder = template
    tracking_id = uuid.uuid4().hex
    html = inject_tracking(builder(data or {}), tracking_id)

    sent = await mailer.send_email(recipient_email, subject, html)

    try:
        await store.create_email_history(
            tracking_id=tracking_id,
            recipient_email=recipient_email,
            email_type=email_type,
            subject=subject,
            assessment_id=assessment_id,
            status=EmailStatus.sent.value if sent else EmailStatus.failed.value,
        )
    except AssessmentServiceError as e:
        logger.error(f"❌ Failed to record email history for {recipient_email}: {e}")

    return {
        "success": sent,
        "trackingId": tracking_id,
        "message": "Email sent successfully" if sent else "Failed to send email",
    }


async def send_assessment_result_email(
    store: AssessmentStore,
    mailer,
    result: Mapping[str, Any],
    recipient_email: str,
) -> bool:
    """
    Send the result email for a completed assessment, with a fresh download link.
    Used as a background task, so failures are logged and never raised.
    """
    data = dict(result)
    assessment_id = result.get("id")
    try:
        if assessment_id:
            try:
                token = await issue_download_token(store, assessment_id, recipient_email)
                data["downloadUrl"] = token["downloadUrl"]
            except AssessmentServiceError as e:
                logger.error(f"❌ Could not issue download token for {assessment_id}: {e}")

        outcome = await send_templated_email(
            store,
            mailer,
            EmailType.assessment_result.value,
            recipient_email,
            data,
            assessment_id=assessment_id,
        )
        return outcome["success"]
    except Exception as e:
        logger.error(f"❌ Result email for assessment {assessment_id} failed: {e}")
        return False

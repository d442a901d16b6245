"""Assessment endpoints: question bank, submission, results, reports and emails."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request
from fastapi.responses import Response

from app.constants.constants import DIMENSION_LABELS
from app.core.config import settings
from app.core.exceptions import AssessmentServiceError, InvalidInputError, MailDeliveryError, NotFoundError
from app.core.limiter import limiter
from app.core.security import require_api_key
from app.schemas.assessmentSchema import (
    AssessmentSubmitRequest,
    DownloadTokenRequest,
    DownloadTokenResponse,
    PdfReportRequest,
    UserInfo,
)
from app.schemas.emailSchema import EmailSendRequest
from app.services.AssessmentEmailNotifications import send_assessment_result_email, send_templated_email
from app.services.AssessmentStore import AssessmentStore, assessment_store_scope, get_assessment_store
from app.services.DownloadTokenService import get_token_stats, issue_download_token
from app.services.MicrosoftGraphClientPublic import get_mailer
from app.services.PdfReportGenerator import (
    DimensionScore,
    PdfReportGenerator,
    ReportAdvice,
    ReportData,
    Respondent,
    get_pdf_generator,
)
from app.utils.assessment.calculate_scores import calculate_scores
from app.utils.assessment.generate_advice import generate_advice
from app.utils.assessment.normalize_questions import group_by_dimension
from app.utils.assessment.summarize_assessments import summarize_assessments
from app.utils.client_info import get_client_info
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/assessment",
    tags=["assessment"]
)


def _question_payload(question, include_answer_key: bool = False) -> dict:
    payload = question.to_dict()
    if include_answer_key:
        payload["explanation"] = question.explanation
        payload["correct_answer"] = question.correct_answer
    return payload


async def _send_result_email_in_background(result: dict, recipient: str, mailer) -> None:
    async with assessment_store_scope() as store:
        await send_assessment_result_email(store, mailer, result, recipient)


@router.get("/questions")
async def get_questions(store: AssessmentStore = Depends(get_assessment_store)):
    """
    Get the question bank with normalized options, grouped by dimension.
    Option scores are never exposed here.
    """
    questions = await store.list_questions()
    grouped = group_by_dimension(questions)

    return {
        "questions": [_question_payload(q) for q in questions],
        "dimensions": DIMENSION_LABELS,
        "questionsByDimension": {
            dimension: [_question_payload(q) for q in members]
            for dimension, members in grouped.items()
        },
        "totalQuestions": len(questions),
    }


@router.post("/submit")
@limiter.limit(settings.SUBMIT_RATE_LIMIT)
async def submit_assessment(
    request: Request,
    payload: AssessmentSubmitRequest,
    background_tasks: BackgroundTasks,
    store: AssessmentStore = Depends(get_assessment_store),
    mailer=Depends(get_mailer),
):
    """
    Score a submission, persist it and email the report when an address was given.

    A persistence failure is logged and the computed result is still returned,
    with ``id`` set to null.
    """
    answers = payload.answers
    if answers is None or not isinstance(answers, (dict, list)):
        logger.error(f"❌ Invalid answers format: {answers!r}")
        raise InvalidInputError("Invalid answers format")

    questions = await store.list_questions()
    scored = calculate_scores(
        answers,
        questions,
        point_table=settings.OPTION_POINTS,
        weights=settings.DIMENSION_WEIGHTS,
    )
    advice = generate_advice(scored.dimension_scores, scored.total_score)
    logger.info(f"📈 Scores calculated: {scored.dimension_scores}, total {scored.total_score}")

    user = payload.user_info or UserInfo()
    client = get_client_info(request)
    computer_name = payload.client_info.computer_name if payload.client_info else None

    record_id = None
    completed_at = utcnow()
    try:
        record = await store.create_assessment_record(
            user_name=user.name,
            user_email=user.email,
            user_company=user.company,
            answers=answers,
            scores=scored.dimension_scores,
            total_score=scored.total_score,
            assessment_level=advice["level"],
            ip_address=client["ip_address"],
            user_agent=client["user_agent"],
            computer_name=computer_name,
            completed_at=completed_at,
        )
        record_id = record["id"]
        logger.info(f"✅ Assessment record saved: {record_id}")
    except AssessmentServiceError as e:
        logger.error(f"❌ Error saving assessment record: {e}")

    result = {
        "id": record_id,
        "totalScore": scored.total_score,
        "dimensionScores": scored.dimension_scores,
        "advice": advice,
        "completedAt": completed_at.isoformat(),
        "name": user.name,
        "userAnswers": answers,
        "questions": [_question_payload(q, include_answer_key=True) for q in questions],
    }

    if user.email:
        background_tasks.add_task(_send_result_email_in_background, result, user.email, mailer)

    return result


@router.get("/result")
async def get_result(
    id: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    store: AssessmentStore = Depends(get_assessment_store),
):
    """Fetch one result by id, or a respondent's history by email. Advice is regenerated."""
    if not id and not email:
        raise InvalidInputError("Either id or email parameter is required")

    if id:
        record = await store.get_assessment_record(id)
        return {
            "id": record["id"],
            "totalScore": record["total_score"],
            "dimensionScores": record["scores"],
            "advice": generate_advice(record["scores"], record["total_score"]),
            "completedAt": record["completed_at"],
            "userInfo": {
                "name": record["user_name"],
                "email": record["user_email"],
                "company": record["user_company"],
            },
        }

    records = await store.list_assessment_records(email)
    if not records:
        raise NotFoundError("No assessment records found")

    records_list = [
        {
            "id": record["id"],
            "totalScore": record["total_score"],
            "assessmentLevel": record["assessment_level"],
            "completedAt": record["completed_at"],
            "dimensionScores": record["scores"],
        }
        for record in records
    ]
    return {"records": records_list, "total": len(records_list)}


@router.post("/pdf")
@limiter.limit(settings.PDF_RATE_LIMIT)
async def generate_pdf(
    request: Request,
    payload: PdfReportRequest,
    generator: PdfReportGenerator = Depends(get_pdf_generator),
):
    """Render a PDF report from result data held by the client."""
    logger.info(
        f"📄 PDF requested for {payload.user_info.email or 'anonymous'}, "
        f"{len(payload.dimension_scores)} dimensions"
    )
    data = ReportData(
        respondent=Respondent(
            name=payload.user_info.name,
            email=payload.user_info.email,
            company=payload.user_info.company or "",
        ),
        total_score=payload.total_score,
        max_total_score=payload.max_total_score,
        dimension_scores=[
            DimensionScore(dimension=d.dimension, score=d.score, max_score=d.max_score)
            for d in payload.dimension_scores
        ],
        advice=ReportAdvice(
            overall_level=payload.personalized_advice.overall_level,
            dimension_advice=payload.personalized_advice.dimension_advice,
            next_steps=payload.personalized_advice.next_steps,
        ),
        completed_at=payload.completed_at or utcnow(),
    )
    pdf = await generator.generate(data)

    filename = f"CCPM360-assessment-report-{utcnow().date().isoformat()}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{assessment_id}/download-token", response_model=DownloadTokenResponse)
async def create_download_token(
    assessment_id: str,
    payload: Optional[DownloadTokenRequest] = Body(None),
    store: AssessmentStore = Depends(get_assessment_store),
):
    """Mint an expiring download link for an existing assessment."""
    participant_email = payload.participant_email if payload else None
    if not participant_email:
        record = await store.get_assessment_record(assessment_id)
        participant_email = record["user_email"]
    if not participant_email:
        raise InvalidInputError("Participant email is required")

    return await issue_download_token(store, assessment_id, participant_email)


@router.get("/{assessment_id}/download-token/stats", dependencies=[Depends(require_api_key)])
async def download_token_stats(
    assessment_id: str,
    store: AssessmentStore = Depends(get_assessment_store),
):
    stats = await get_token_stats(store, assessment_id)
    if not stats:
        raise NotFoundError("No active download token")
    return stats


@router.get("/analytics", dependencies=[Depends(require_api_key)])
async def get_analytics(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    store: AssessmentStore = Depends(get_assessment_store),
):
    """Aggregate statistics over completed assessments and email engagement."""
    records = await store.list_assessment_summaries(start_date, end_date)
    email_counts = await store.count_email_engagement()
    return summarize_assessments(records, email_counts)


@router.post("/email")
async def send_assessment_email(
    payload: EmailSendRequest,
    store: AssessmentStore = Depends(get_assessment_store),
    mailer=Depends(get_mailer),
):
    """Send one of the templated emails, with tracking."""
    assessment_id = payload.data.get("id")
    outcome = await send_templated_email(
        store,
        mailer,
        payload.type,
        payload.recipient_email,
        payload.data,
        assessment_id=str(assessment_id) if assessment_id else None,
    )
    if not outcome["success"]:
        raise MailDeliveryError("send_email", payload.recipient_email)
    return outcome


@router.get("/email", dependencies=[Depends(require_api_key)])
async def get_email_history(
    email: Optional[str] = Query(None),
    assessment_id: Optional[str] = Query(None, alias="assessmentId"),
    store: AssessmentStore = Depends(get_assessment_store),
):
    """Latest 50 emails, optionally filtered by recipient or assessment."""
    emails = await store.list_email_history(email=email, assessment_id=assessment_id, limit=50)
    return {"emails": emails}

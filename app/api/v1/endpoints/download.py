import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.services.AssessmentStore import AssessmentStore, get_assessment_store
from app.services.DownloadTokenService import record_download, validate_download_token
from app.services.EmailTracking import NO_CACHE_HEADERS
from app.services.PdfReportGenerator import PdfReportGenerator, build_report_data, get_pdf_generator
from app.utils.assessment.generate_advice import generate_advice

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/download",
    tags=["download"]
)


def _content_disposition(participant_name: str) -> str:
    # Header values must be latin-1; the readable name goes in filename*
    filename = f"CCPM360-诊断报告-{participant_name or 'report'}.pdf"
    return f"attachment; filename=\"CCPM360-report.pdf\"; filename*=UTF-8''{quote(filename)}"


@router.get("/pdf/{token}")
async def download_pdf(
    token: str,
    store: AssessmentStore = Depends(get_assessment_store),
    generator: PdfReportGenerator = Depends(get_pdf_generator),
):
    """
    Render the report behind a download token.
    The download is only counted once the PDF has been produced.
    """
    token_row = await validate_download_token(store, token)
    record = await store.get_assessment_record(token_row["assessment_id"])

    advice = generate_advice(record["scores"], record["total_score"])
    pdf = await generator.generate(build_report_data(record, advice))

    await record_download(store, token)
    logger.info(f"⬇️ PDF downloaded for assessment {record['id']}")

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": _content_disposition(record.get("user_name") or ""),
            **NO_CACHE_HEADERS,
        },
    )

from fastapi import APIRouter, Depends

from app.schemas.quotaSchema import QuotaAlertRequest
from app.services.MicrosoftGraphClientPublic import get_mailer
from app.services.QuotaAlertService import process_quota_alert

router = APIRouter(
    prefix="/quota",
    tags=["quota"]
)


@router.post("/alert")
async def quota_alert(payload: QuotaAlertRequest, mailer=Depends(get_mailer)):
    """
    Evaluate reported quota usage; metrics at 80% or more raise an alert
    (90% is critical), at most once per metric per cooldown window.
    """
    quota_data = {
        service: [metric.model_dump() for metric in metrics]
        for service, metrics in payload.quota_data.items()
    }
    return await process_quota_alert(quota_data, mailer)

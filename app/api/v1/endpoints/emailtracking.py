"""Email open/click tracking. These endpoints never return an error to the mail client."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response

from app.services.AssessmentStore import AssessmentStore, get_assessment_store
from app.services.EmailTracking import NO_CACHE_HEADERS, TRACKING_PIXEL, track_click, track_open

router = APIRouter(
    prefix="/email/track",
    tags=["email tracking"]
)


@router.get("/open")
async def track_email_open(
    tracking_id: Optional[str] = Query(None, alias="trackingId"),
    store: AssessmentStore = Depends(get_assessment_store),
):
    await track_open(store, tracking_id)
    return Response(content=TRACKING_PIXEL, media_type="image/png", headers=NO_CACHE_HEADERS)


@router.get("/click")
async def track_email_click(
    tracking_id: Optional[str] = Query(None, alias="trackingId"),
    url: Optional[str] = Query(None),
    store: AssessmentStore = Depends(get_assessment_store),
):
    target = await track_click(store, tracking_id, url)
    return RedirectResponse(url=target)

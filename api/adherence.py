"""
Adherence API Router
Endpoints for medication adherence reports
"""

from fastapi import APIRouter, Depends

from api.deps import services
from api.schemas.adherence import AdherenceReportResponse
from services.adherence_service import AdherenceService


router = APIRouter(prefix="/trackers/{user_id}", tags=["adherence"])


@router.get("/adherence", response_model=AdherenceReportResponse)
async def get_adherence_report(
    user_id: str,
    adherence_service: AdherenceService = Depends(services.get_adherence_service)
):
    """
    Adherence report over the last 30 days (or since the first medicine started)
    """
    report = await adherence_service.get_report(user_id)
    return {"user_id": user_id, **report.to_dict()}

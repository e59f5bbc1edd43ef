"""
Trackers API Router
Endpoints for tracker views and platform-wide maintenance
"""

from fastapi import APIRouter, Depends

from api.deps import services
from api.schemas.medicine import TrackerResponse
from api.schemas.dose import SweepResponse
from api.schemas.adherence import PlatformAdherenceStats
from services.dose_service import DoseService
from services.medicine_service import MedicineService


router = APIRouter(prefix="/trackers", tags=["trackers"])


@router.get("/stats", response_model=PlatformAdherenceStats)
async def get_platform_stats(
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    Adherence totals across all users for the last 30 days
    """
    return dose_service.adherence_stats()


@router.post("/sweep", response_model=SweepResponse)
async def sweep_all_trackers(
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    Reconcile and sweep every tracker now, without waiting for the next tick
    """
    return dose_service.sweep_all().to_dict()


@router.get("/{user_id}", response_model=TrackerResponse)
async def get_tracker(
    user_id: str,
    medicine_service: MedicineService = Depends(services.get_medicine_service)
):
    """
    Get a user's medicines and dose instances
    """
    return await medicine_service.get_tracker_view(user_id)

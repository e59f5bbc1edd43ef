"""
Doses API Router
Endpoints for listing and resolving dose instances
"""

from typing import Optional
from datetime import date
from fastapi import APIRouter, Depends, Query

from api.deps import services
from api.schemas.dose import DoseUpdate, DoseResponse, DoseList, ReconcileResponse
from models import DoseStatus
from services.dose_service import DoseService


router = APIRouter(prefix="/trackers/{user_id}", tags=["doses"])


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_tracker(
    user_id: str,
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    Backfill days that have no dose instances
    """
    tracker_id = dose_service.tracker_id_for(user_id)
    created = dose_service.reconcile_tracker(tracker_id)
    return {
        "user_id": user_id,
        "created_doses": len(created),
        "doses": [d.to_dict() for d in created]
    }


@router.get("/doses", response_model=DoseList)
async def list_doses(
    user_id: str,
    start: Optional[date] = Query(None, description="First scheduled date"),
    end: Optional[date] = Query(None, description="Last scheduled date"),
    status: Optional[DoseStatus] = Query(None, description="Filter by status"),
    medicine_id: Optional[int] = Query(None),
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    List dose instances, refreshed so overdue doses show as missed
    """
    tracker_id = dose_service.tracker_id_for(user_id)
    dose_service.refresh_quietly(tracker_id)

    doses = dose_service.list_doses(
        tracker_id, start=start, end=end, status=status, medicine_id=medicine_id
    )
    return {
        "user_id": user_id,
        "total": len(doses),
        "doses": [d.to_dict() for d in doses]
    }


@router.patch("/doses/{dose_id}", response_model=DoseResponse)
async def update_dose(
    user_id: str,
    dose_id: int,
    payload: DoseUpdate,
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    Mark a due dose as taken or skipped
    """
    tracker_id = dose_service.tracker_id_for(user_id)
    dose_service.refresh_quietly(tracker_id)

    side_effects = None
    if payload.side_effects_experienced is not None:
        side_effects = [effect.value for effect in payload.side_effects_experienced]

    record = dose_service.record_outcome(
        tracker_id,
        dose_id,
        DoseStatus(payload.status.value),
        taken_at=payload.taken_at,
        actual_dosage=payload.actual_dosage,
        notes=payload.notes,
        side_effects=side_effects
    )
    return record.to_dict()

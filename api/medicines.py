"""
Medicines API Router
Endpoints for managing a tracker's medicines
"""

from fastapi import APIRouter, Depends, status

from api.deps import services
from api.schemas.medicine import (
    MedicineCreate,
    MedicineUpdate,
    MaterializeRequest,
    MedicineWithDoses,
)
from api.schemas.dose import ReconcileResponse
from services.dose_service import DoseService
from services.medicine_service import MedicineService


router = APIRouter(prefix="/trackers/{user_id}/medicines", tags=["medicines"])


def _with_doses(medicine, created) -> dict:
    return {
        "medicine": medicine.to_dict(),
        "created_doses": len(created),
        "doses": [d.to_dict() for d in created]
    }


@router.post("", response_model=MedicineWithDoses, status_code=status.HTTP_201_CREATED)
async def add_medicine(
    user_id: str,
    payload: MedicineCreate,
    medicine_service: MedicineService = Depends(services.get_medicine_service)
):
    """
    Add a medicine and create dose instances for its whole date span
    """
    medicine, created = await medicine_service.add_medicine(user_id, payload.to_record())
    return _with_doses(medicine, created)


@router.put("/{medicine_id}", response_model=MedicineWithDoses)
async def update_medicine(
    user_id: str,
    medicine_id: int,
    payload: MedicineUpdate,
    medicine_service: MedicineService = Depends(services.get_medicine_service)
):
    """
    Edit a medicine; new dates and schedule times get dose instances
    """
    medicine, created = await medicine_service.update_medicine(
        user_id, medicine_id, payload.to_changes()
    )
    return _with_doses(medicine, created)


@router.delete("/{medicine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medicine(
    user_id: str,
    medicine_id: int,
    medicine_service: MedicineService = Depends(services.get_medicine_service)
):
    """
    Delete a medicine and its dose instances
    """
    await medicine_service.remove_medicine(user_id, medicine_id)
    return None


@router.post("/{medicine_id}/materialize", response_model=ReconcileResponse)
async def materialize_doses(
    user_id: str,
    medicine_id: int,
    payload: MaterializeRequest,
    dose_service: DoseService = Depends(services.get_dose_service)
):
    """
    Create the missing dose instances of a medicine within a date range
    """
    tracker_id = dose_service.tracker_id_for(user_id)
    dose_service.refresh_quietly(tracker_id)
    created = dose_service.generate_for_range(
        tracker_id, medicine_id, payload.range_start, payload.range_end
    )
    return {
        "user_id": user_id,
        "created_doses": len(created),
        "doses": [d.to_dict() for d in created]
    }

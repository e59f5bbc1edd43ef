"""
Medicine Service
Business logic for medicine definitions and their dose instances
"""

import logging
from typing import Dict, List, Optional, Any, Tuple
from dataclasses import replace
from datetime import datetime

from exceptions import InvalidMedicineError, NotFoundError
from services.dose_service import DoseService
from tools.tracker_state import (
    DoseRecord,
    MedicineRecord,
    RemoveMedicine,
    TrackerSnapshot,
    UpsertMedicine,
    parse_slot_time,
)


logger = logging.getLogger(__name__)


NOTES_MAX_LENGTH = 500


def validate_medicine(medicine: MedicineRecord) -> None:
    """
    Check a medicine definition before it is stored

    Raises:
        InvalidMedicineError: describing the first problem found
    """
    if not medicine.name or not medicine.name.strip():
        raise InvalidMedicineError("Medicine name is required")

    if medicine.start_date > medicine.end_date:
        raise InvalidMedicineError(
            f"Start date {medicine.start_date} is after end date {medicine.end_date}"
        )

    if medicine.is_active and not medicine.schedule:
        raise InvalidMedicineError("An active medicine needs at least one schedule time")

    seen = set()
    for slot in medicine.schedule:
        try:
            parse_slot_time(slot.time)
        except ValueError as e:
            raise InvalidMedicineError(str(e)) from e
        if slot.time in seen:
            raise InvalidMedicineError(f"Schedule time {slot.time} appears more than once")
        seen.add(slot.time)

    if medicine.notes and len(medicine.notes) > NOTES_MAX_LENGTH:
        raise InvalidMedicineError(f"Notes must be at most {NOTES_MAX_LENGTH} characters")


class MedicineService:
    """
    Service for medicine management
    """

    def __init__(self, dose_service: DoseService):
        self.dose_service = dose_service
        self.repository = dose_service.repository

    async def add_medicine(
        self,
        user_id: str,
        medicine: MedicineRecord,
        now: Optional[datetime] = None
    ) -> Tuple[MedicineRecord, List[DoseRecord]]:
        """
        Add a medicine and materialize its whole date span

        Args:
            user_id: Owning user; the tracker is created on first use
            medicine: New medicine definition (its id is ignored)
            now: Current local time

        Returns:
            Stored medicine and the dose instances created for it
        """
        validate_medicine(medicine)
        tracker_id = self.repository.get_or_create_tracker(user_id)
        self.dose_service.refresh_quietly(tracker_id, now)

        result = self.dose_service.mutate(
            tracker_id, lambda snapshot: [UpsertMedicine(replace(medicine, id=None))]
        )
        stored = result.medicines[0]
        logger.info(f"Added medicine {stored.id} ({stored.name}) for user {user_id}")

        created = self.dose_service.generate_for_range(
            tracker_id, stored.id, stored.start_date, stored.end_date
        )
        return stored, created

    async def update_medicine(
        self,
        user_id: str,
        medicine_id: int,
        changes: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> Tuple[MedicineRecord, List[DoseRecord]]:
        """
        Edit a medicine and resynchronize its dose instances.
        Due instances the edit no longer covers are retired in the same
        batch; new dates and slots are then materialized.
        """
        tracker_id = self.dose_service.tracker_id_for(user_id)
        self.dose_service.refresh_quietly(tracker_id, now)

        def _plan(snapshot: TrackerSnapshot):
            existing = snapshot.medicine(medicine_id)
            if existing is None:
                raise NotFoundError("Medicine", medicine_id)
            updated = replace(existing, **changes)
            validate_medicine(updated)
            retired = self.dose_service.materializer.retire(updated, snapshot.doses_for(medicine_id))
            return [UpsertMedicine(updated)] + retired

        result = self.dose_service.mutate(tracker_id, _plan)
        stored = result.medicines[0]
        logger.info(f"Updated medicine {medicine_id} for user {user_id}")

        created = self.dose_service.generate_for_range(
            tracker_id, stored.id, stored.start_date, stored.end_date
        )
        return stored, created

    async def remove_medicine(self, user_id: str, medicine_id: int) -> None:
        """Delete a medicine together with its dose instances"""
        tracker_id = self.dose_service.tracker_id_for(user_id)

        def _plan(snapshot: TrackerSnapshot):
            if snapshot.medicine(medicine_id) is None:
                raise NotFoundError("Medicine", medicine_id)
            return [RemoveMedicine(medicine_id)]

        self.dose_service.mutate(tracker_id, _plan)
        logger.info(f"Removed medicine {medicine_id} for user {user_id}")

    async def get_tracker_view(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Tracker with its medicines and dose instances; empty for unknown users"""
        tracker_id = self.repository.find_tracker_id(user_id)
        if tracker_id is None:
            return {
                "user_id": user_id,
                "tracker_id": None,
                "version": 0,
                "medicines": [],
                "doses": []
            }

        self.dose_service.refresh_quietly(tracker_id, now)
        snapshot = self.repository.load(tracker_id)
        return {
            "user_id": snapshot.user_id,
            "tracker_id": snapshot.tracker_id,
            "version": snapshot.version,
            "medicines": [m.to_dict() for m in snapshot.medicines],
            "doses": [d.to_dict() for d in snapshot.doses]
        }

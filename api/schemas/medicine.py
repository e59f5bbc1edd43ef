"""
Medicine Schemas
Pydantic models for medicine-related API requests and responses
"""

from typing import Optional, List, Dict, Any
from datetime import date
from pydantic import BaseModel, Field, ConfigDict, field_validator

from models import MedicineType, SideEffect
from tools.tracker_state import MedicineRecord, ScheduleSlot, SLOT_TIME_PATTERN
from api.schemas.dose import DoseResponse


# ==================== BASE SCHEMAS ====================

class ScheduleSlotSchema(BaseModel):
    """One daily intake time"""
    time: str = Field(..., description="Local time of day, HH:MM")
    dosage: str = Field(..., min_length=1, max_length=100)
    instructions: Optional[str] = Field(None, max_length=255)

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str) -> str:
        if not SLOT_TIME_PATTERN.match(value):
            raise ValueError("time must be HH:MM between 00:00 and 23:59")
        return value

    def to_slot(self) -> ScheduleSlot:
        return ScheduleSlot(time=self.time, dosage=self.dosage, instructions=self.instructions or "")


# ==================== REQUEST SCHEMAS ====================

class MedicineCreate(BaseModel):
    """Schema for adding a medicine to a tracker"""
    name: str = Field(..., min_length=1, max_length=255)
    medicine_type: MedicineType = MedicineType.TABLET
    purpose: Optional[str] = Field(None, max_length=255)
    start_date: date
    end_date: date
    schedule: List[ScheduleSlotSchema] = []
    is_active: bool = True
    prescribed_by: Optional[str] = Field(None, max_length=255)
    side_effects_catalog: List[SideEffect] = []
    notes: Optional[str] = Field(None, max_length=500)

    def to_record(self) -> MedicineRecord:
        return MedicineRecord(
            id=None,
            name=self.name,
            medicine_type=self.medicine_type,
            purpose=self.purpose or "",
            start_date=self.start_date,
            end_date=self.end_date,
            schedule=[slot.to_slot() for slot in self.schedule],
            is_active=self.is_active,
            prescribed_by=self.prescribed_by or "",
            side_effects_catalog=[effect.value for effect in self.side_effects_catalog],
            notes=self.notes or ""
        )


class MedicineUpdate(BaseModel):
    """Schema for editing a medicine; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    medicine_type: Optional[MedicineType] = None
    purpose: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    schedule: Optional[List[ScheduleSlotSchema]] = None
    is_active: Optional[bool] = None
    prescribed_by: Optional[str] = Field(None, max_length=255)
    side_effects_catalog: Optional[List[SideEffect]] = None
    notes: Optional[str] = Field(None, max_length=500)

    def to_changes(self) -> Dict[str, Any]:
        """Fields that were sent, converted to record values"""
        changes = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if value is None:
                continue
            if key == "schedule":
                value = [slot.to_slot() for slot in value]
            elif key == "side_effects_catalog":
                value = [effect.value for effect in value]
            changes[key] = value
        return changes


class MaterializeRequest(BaseModel):
    """Date range to expand into dose instances"""
    range_start: date
    range_end: date


# ==================== RESPONSE SCHEMAS ====================

class ScheduleSlotResponse(BaseModel):
    time: str
    dosage: str
    instructions: str = ""


class MedicineResponse(BaseModel):
    """Schema for medicine response"""
    id: int
    name: str
    medicine_type: str
    purpose: str = ""
    start_date: date
    end_date: date
    total_duration_days: int
    schedule: List[ScheduleSlotResponse]
    is_active: bool
    prescribed_by: str = ""
    side_effects_catalog: List[str] = []
    notes: str = ""

    model_config = ConfigDict(from_attributes=True)


class MedicineWithDoses(BaseModel):
    """Medicine together with the dose instances an operation created"""
    medicine: MedicineResponse
    created_doses: int
    doses: List[DoseResponse] = []


class TrackerResponse(BaseModel):
    """A user's tracker with medicines and dose instances"""
    user_id: str
    tracker_id: Optional[int] = None
    version: int = 0
    medicines: List[MedicineResponse] = []
    doses: List[DoseResponse] = []

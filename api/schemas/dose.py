"""
Dose Schemas
Pydantic models for dose instance API requests and responses
"""

from typing import Optional, List
from datetime import datetime, date
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum

from models import SideEffect


class DoseOutcomeEnum(str, Enum):
    """Statuses a user may set on a due dose"""
    TAKEN = "taken"
    SKIPPED = "skipped"


# ==================== REQUEST SCHEMAS ====================

class DoseUpdate(BaseModel):
    """Schema for marking a dose taken or skipped"""
    status: DoseOutcomeEnum
    taken_at: Optional[datetime] = None
    actual_dosage: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    side_effects_experienced: Optional[List[SideEffect]] = None


# ==================== RESPONSE SCHEMAS ====================

class DoseResponse(BaseModel):
    """Schema for dose instance response"""
    id: int
    medicine_id: int
    scheduled_date: date
    scheduled_time: str
    status: str
    taken_at: Optional[datetime] = None
    actual_dosage: str = ""
    notes: str = ""
    side_effects_experienced: List[str] = []

    model_config = ConfigDict(from_attributes=True)


class DoseList(BaseModel):
    """Dose instances of a tracker"""
    user_id: str
    total: int
    doses: List[DoseResponse]


class ReconcileResponse(BaseModel):
    """Result of a reconciliation pass"""
    user_id: str
    created_doses: int
    doses: List[DoseResponse] = []


class SweepResponse(BaseModel):
    """Result of a sweep over every tracker"""
    trackers: int
    processed: int
    backfilled: int
    marked_missed: int
    failed: List[int] = []
    timestamp: Optional[str] = None

"""
Adherence Schemas
Pydantic models for adherence API responses
"""

from typing import List, Dict
from pydantic import BaseModel, Field


class AdherenceReportResponse(BaseModel):
    """Adherence report for one user"""
    user_id: str
    risk_level: str
    adherence_rate: int = Field(..., ge=0, le=100)
    on_time_rate: int = Field(..., ge=0, le=100)
    total_scheduled: int
    taken: int
    missed: int
    skipped: int
    active_medicine_count: int
    expiring_soon_count: int
    recommendations: List[str] = []
    warnings: List[str] = []
    side_effect_counts: Dict[str, int] = {}
    days_analyzed: int = Field(..., ge=1)


class PlatformAdherenceStats(BaseModel):
    """Adherence totals across all trackers for the last 30 days"""
    total_users: int
    total_medicines: int
    total_doses: int
    taken_doses: int
    missed_doses: int
    skipped_doses: int
    adherence_rate: int
    timestamp: str

"""
Services Module
Business logic layer for the MedTrack application
"""

from services.tracker_repository import (
    TrackerRepository,
    SqlTrackerRepository,
    InMemoryTrackerRepository,
)
from services.dose_service import DoseService, RefreshResult, SweepSummary, run_scheduled_refresh
from services.medicine_service import MedicineService, validate_medicine
from services.adherence_service import AdherenceService


__all__ = [
    # Repositories
    "TrackerRepository",
    "SqlTrackerRepository",
    "InMemoryTrackerRepository",
    # Service classes
    "DoseService",
    "MedicineService",
    "AdherenceService",
    # Results
    "RefreshResult",
    "SweepSummary",
    # Helpers
    "validate_medicine",
    "run_scheduled_refresh",
]

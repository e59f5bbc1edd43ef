"""
API Dependencies
Common dependencies for FastAPI endpoints
"""

from typing import Generator
from fastapi import Depends
from sqlalchemy.orm import Session

from database import SessionLocal
from services.tracker_repository import TrackerRepository, SqlTrackerRepository
from services.dose_service import DoseService
from services.medicine_service import MedicineService
from services.adherence_service import AdherenceService


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency
    Yields a SQLAlchemy session and ensures cleanup
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> TrackerRepository:
    """Tracker repository bound to the request's session"""
    return SqlTrackerRepository(db)


class ServiceDependency:
    """
    Dependency injection for services
    """

    @staticmethod
    def get_dose_service(repository: TrackerRepository = Depends(get_repository)) -> DoseService:
        return DoseService(repository)

    @staticmethod
    def get_medicine_service(repository: TrackerRepository = Depends(get_repository)) -> MedicineService:
        return MedicineService(DoseService(repository))

    @staticmethod
    def get_adherence_service(repository: TrackerRepository = Depends(get_repository)) -> AdherenceService:
        return AdherenceService(DoseService(repository))


# Service dependency instances
services = ServiceDependency()

"""
Pytest Configuration and Shared Fixtures
========================================

This module provides shared fixtures for all MedTrack tests.
Fixtures include database sessions, test clients, repositories and sample data.
"""

import os
import sys
from datetime import datetime, date, timedelta
from typing import Callable, Generator, Dict, Any

# Keep the app off the on-disk database and the background timer
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_MODE", "on_demand")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, create_db_engine
from api.deps import get_db
from models import MedicineType
from services.tracker_repository import InMemoryTrackerRepository, SqlTrackerRepository
from services.dose_service import DoseService
from tools.tracker_state import MedicineRecord, ScheduleSlot, DoseRecord
from app import app


# ==================== DATABASE FIXTURES ====================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine with in-memory SQLite"""
    engine = create_db_engine("sqlite:///:memory:")

    # Create all tables
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a test database session"""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine
    )

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database override"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ==================== REPOSITORY FIXTURES ====================

@pytest.fixture
def repository() -> InMemoryTrackerRepository:
    """Empty in-memory tracker repository"""
    return InMemoryTrackerRepository()


@pytest.fixture
def sql_repository(db_session: Session) -> SqlTrackerRepository:
    """Tracker repository over the test database"""
    return SqlTrackerRepository(db_session)


@pytest.fixture
def dose_service(repository: InMemoryTrackerRepository) -> DoseService:
    """Dose service over the in-memory repository"""
    return DoseService(repository)


# ==================== SAMPLE DATA FIXTURES ====================

@pytest.fixture
def now() -> datetime:
    """Fixed local 'current time' for deterministic tests"""
    return datetime(2024, 3, 10, 23, 0)


@pytest.fixture
def make_medicine() -> Callable[..., MedicineRecord]:
    """Factory for medicine records; defaults to a twice-daily tablet"""

    def _make(**overrides) -> MedicineRecord:
        data = {
            "id": None,
            "name": "Amoxicillin",
            "medicine_type": MedicineType.CAPSULE,
            "purpose": "Bacterial infection",
            "start_date": date(2024, 3, 6),
            "end_date": date(2024, 3, 10),
            "schedule": [
                ScheduleSlot(time="08:00", dosage="500mg", instructions="After breakfast"),
                ScheduleSlot(time="20:00", dosage="500mg", instructions="After dinner"),
            ],
            "is_active": True,
        }
        data.update(overrides)
        return MedicineRecord(**data)

    return _make


@pytest.fixture
def make_dose() -> Callable[..., DoseRecord]:
    """Factory for dose records"""
    counter = {"next": 1}

    def _make(**overrides) -> DoseRecord:
        data = {
            "id": counter["next"],
            "medicine_id": 1,
            "scheduled_date": date(2024, 3, 10),
            "scheduled_time": "08:00",
        }
        data.update(overrides)
        counter["next"] += 1
        return DoseRecord(**data)

    return _make


@pytest.fixture
def medicine_payload() -> Dict[str, Any]:
    """Request body for adding a medicine that runs from two days ago to three days ahead"""
    today = date.today()
    return {
        "name": "Metformin",
        "medicine_type": "tablet",
        "purpose": "Blood sugar control",
        "start_date": (today - timedelta(days=2)).isoformat(),
        "end_date": (today + timedelta(days=3)).isoformat(),
        "schedule": [
            {"time": "08:00", "dosage": "500mg", "instructions": "With breakfast"},
            {"time": "20:00", "dosage": "500mg", "instructions": "With dinner"},
        ],
        "prescribed_by": "Dr. Smith",
        "side_effects_catalog": ["nausea", "diarrhea"],
    }


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "database: mark test as requiring database")

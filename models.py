"""
Database Models
SQLAlchemy ORM models for MedTrack
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Date, Index, UniqueConstraint, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum

from database import Base
from config import TableNames


# ==================== ENUMS ====================

class DoseStatus(str, PyEnum):
    """Status of a single dose instance"""
    DUE = "due"
    TAKEN = "taken"
    MISSED = "missed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not DoseStatus.DUE


TERMINAL_STATUSES = frozenset({DoseStatus.TAKEN, DoseStatus.MISSED, DoseStatus.SKIPPED})


class MedicineType(str, PyEnum):
    """Form of a medicine"""
    TABLET = "tablet"
    CAPSULE = "capsule"
    SYRUP = "syrup"
    INJECTION = "injection"
    DROPS = "drops"
    CREAM = "cream"
    INHALER = "inhaler"
    OTHER = "other"


class SideEffect(str, PyEnum):
    """Side effects a patient can report against a dose"""
    NAUSEA = "nausea"
    DIZZINESS = "dizziness"
    HEADACHE = "headache"
    DROWSINESS = "drowsiness"
    STOMACH_UPSET = "stomach_upset"
    RASH = "rash"
    FATIGUE = "fatigue"
    INSOMNIA = "insomnia"
    DRY_MOUTH = "dry_mouth"
    CONSTIPATION = "constipation"
    DIARRHEA = "diarrhea"
    LOSS_OF_APPETITE = "loss_of_appetite"
    WEIGHT_GAIN = "weight_gain"
    WEIGHT_LOSS = "weight_loss"
    OTHER = "other"


# ==================== MODELS ====================

class MedicineTracker(Base):
    """Per-user container for medicines and their dose history"""
    __tablename__ = TableNames.TRACKERS

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), unique=True, index=True, nullable=False)  # From the identity provider

    # Bumped on every persisted batch; guards read-modify-write cycles
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    medicines = relationship("Medicine", back_populates="tracker", cascade="all, delete-orphan")
    dose_instances = relationship("DoseInstance", back_populates="tracker", cascade="all, delete-orphan")


class Medicine(Base):
    """Medication definition with its daily schedule"""
    __tablename__ = TableNames.MEDICINES

    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, ForeignKey(f"{TableNames.TRACKERS}.id"), nullable=False)

    name = Column(String(255), nullable=False)
    medicine_type = Column(String(20), nullable=False, default=MedicineType.TABLET.value)
    purpose = Column(String(255), nullable=False)

    # Active span (inclusive)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_duration_days = Column(Integer, nullable=False)

    # Ordered list of {"time": "HH:MM", "dosage": str, "instructions": str}
    schedule = Column(JSON, default=list)

    is_active = Column(Boolean, default=True)
    prescribed_by = Column(String(255), default="")
    side_effects_catalog = Column(JSON, default=list)
    notes = Column(String(500), default="")

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    tracker = relationship("MedicineTracker", back_populates="medicines")

    __table_args__ = (
        Index("ix_medicines_tracker_active", "tracker_id", "is_active"),
    )


class DoseInstance(Base):
    """One concrete occurrence of a schedule slot on a calendar date"""
    __tablename__ = TableNames.DOSE_INSTANCES

    id = Column(Integer, primary_key=True, index=True)
    tracker_id = Column(Integer, ForeignKey(f"{TableNames.TRACKERS}.id"), nullable=False)
    medicine_id = Column(Integer, nullable=False, index=True)  # Weak reference, no FK

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(String(5), nullable=False)  # "08:00", "20:00"

    status = Column(String(10), nullable=False, default=DoseStatus.DUE.value)
    taken_at = Column(DateTime)
    actual_dosage = Column(String(100), default="")
    notes = Column(Text, default="")
    side_effects_experienced = Column(JSON, default=list)

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    tracker = relationship("MedicineTracker", back_populates="dose_instances")

    __table_args__ = (
        UniqueConstraint("medicine_id", "scheduled_date", "scheduled_time", name="uq_dose_slot"),
        Index("ix_dose_instances_tracker_status", "tracker_id", "status"),
        Index("ix_dose_instances_tracker_date", "tracker_id", "scheduled_date"),
    )

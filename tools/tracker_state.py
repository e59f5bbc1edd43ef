"""
Tracker State
Plain dataclasses describing a tracker's medicines and dose instances,
plus the named commands used to change them.
"""

import re
from typing import Dict, List, Optional, Any, Tuple, FrozenSet, Union
from dataclasses import dataclass, field, replace
from datetime import datetime, date, time

from models import DoseStatus, MedicineType, TERMINAL_STATUSES


SLOT_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# (medicine_id, scheduled_date, scheduled_time)
DoseKey = Tuple[int, date, str]


def parse_slot_time(value: str) -> time:
    """Parse an "HH:MM" schedule time"""
    match = SLOT_TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Schedule time must be HH:MM, got {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def scheduled_moment(scheduled_date: date, scheduled_time: str) -> datetime:
    """Combine a dose's date and "HH:MM" time into a local datetime"""
    return datetime.combine(scheduled_date, parse_slot_time(scheduled_time))


@dataclass(frozen=True)
class ScheduleSlot:
    """A recurring time-of-day, dosage and instruction triplet"""
    time: str
    dosage: str
    instructions: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"time": self.time, "dosage": self.dosage, "instructions": self.instructions}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleSlot":
        return cls(
            time=data["time"],
            dosage=data.get("dosage", ""),
            instructions=data.get("instructions") or ""
        )


@dataclass
class MedicineRecord:
    """Medicine definition as seen by the dose tools"""
    id: Optional[int]
    name: str
    start_date: date
    end_date: date
    schedule: List[ScheduleSlot] = field(default_factory=list)
    medicine_type: MedicineType = MedicineType.TABLET
    purpose: str = ""
    is_active: bool = True
    prescribed_by: str = ""
    side_effects_catalog: List[str] = field(default_factory=list)
    notes: str = ""

    @property
    def total_duration_days(self) -> int:
        """Inclusive number of calendar days the medicine runs"""
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "medicine_type": self.medicine_type.value,
            "purpose": self.purpose,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_duration_days": self.total_duration_days,
            "schedule": [slot.to_dict() for slot in self.schedule],
            "is_active": self.is_active,
            "prescribed_by": self.prescribed_by,
            "side_effects_catalog": list(self.side_effects_catalog),
            "notes": self.notes
        }


@dataclass
class DoseRecord:
    """A single dose instance"""
    id: Optional[int]
    medicine_id: int
    scheduled_date: date
    scheduled_time: str
    status: DoseStatus = DoseStatus.DUE
    taken_at: Optional[datetime] = None
    actual_dosage: str = ""
    notes: str = ""
    side_effects_experienced: FrozenSet[str] = frozenset()

    @property
    def key(self) -> DoseKey:
        return (self.medicine_id, self.scheduled_date, self.scheduled_time)

    @property
    def scheduled_at(self) -> datetime:
        return scheduled_moment(self.scheduled_date, self.scheduled_time)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medicine_id": self.medicine_id,
            "scheduled_date": self.scheduled_date.isoformat(),
            "scheduled_time": self.scheduled_time,
            "status": self.status.value,
            "taken_at": self.taken_at.isoformat() if self.taken_at else None,
            "actual_dosage": self.actual_dosage,
            "notes": self.notes,
            "side_effects_experienced": sorted(self.side_effects_experienced)
        }


@dataclass
class TrackerSnapshot:
    """Consistent read of one tracker at a given version"""
    tracker_id: int
    user_id: str
    version: int
    medicines: List[MedicineRecord] = field(default_factory=list)
    doses: List[DoseRecord] = field(default_factory=list)

    def medicine(self, medicine_id: int) -> Optional[MedicineRecord]:
        for medicine in self.medicines:
            if medicine.id == medicine_id:
                return medicine
        return None

    def dose(self, dose_id: int) -> Optional[DoseRecord]:
        for dose in self.doses:
            if dose.id == dose_id:
                return dose
        return None

    def doses_for(self, medicine_id: int) -> List[DoseRecord]:
        return [d for d in self.doses if d.medicine_id == medicine_id]


def append_note(existing: Optional[str], note: str) -> str:
    """Append an audit note, keeping what was already there"""
    if existing:
        return f"{existing} | {note}"
    return note


# ==================== COMMANDS ====================

@dataclass(frozen=True)
class CreateDose:
    """Materialize a new "due" dose instance"""
    medicine_id: int
    scheduled_date: date
    scheduled_time: str
    actual_dosage: str = ""
    notes: str = ""

    @property
    def key(self) -> DoseKey:
        return (self.medicine_id, self.scheduled_date, self.scheduled_time)

    def to_record(self, dose_id: Optional[int] = None) -> DoseRecord:
        return DoseRecord(
            id=dose_id,
            medicine_id=self.medicine_id,
            scheduled_date=self.scheduled_date,
            scheduled_time=self.scheduled_time,
            status=DoseStatus.DUE,
            actual_dosage=self.actual_dosage,
            notes=self.notes
        )


@dataclass(frozen=True)
class TransitionToMissed:
    """Move an overdue "due" instance to "missed" with an audit note"""
    dose_id: int
    timestamp: datetime
    note: str

    def apply_to(self, dose: DoseRecord) -> DoseRecord:
        return replace(dose, status=DoseStatus.MISSED, notes=append_note(dose.notes, self.note))


@dataclass(frozen=True)
class RecordDoseOutcome:
    """Resolve a "due" instance as taken or skipped"""
    dose_id: int
    status: DoseStatus
    taken_at: Optional[datetime] = None
    actual_dosage: Optional[str] = None
    notes: Optional[str] = None
    side_effects: Optional[FrozenSet[str]] = None

    def apply_to(self, dose: DoseRecord) -> DoseRecord:
        return replace(
            dose,
            status=self.status,
            taken_at=self.taken_at if self.taken_at is not None else dose.taken_at,
            actual_dosage=self.actual_dosage if self.actual_dosage else dose.actual_dosage,
            notes=self.notes if self.notes else dose.notes,
            side_effects_experienced=(
                self.side_effects if self.side_effects is not None else dose.side_effects_experienced
            )
        )


@dataclass(frozen=True)
class RetireDose:
    """Drop a "due" instance that its medicine no longer prescribes"""
    dose_id: int


@dataclass(frozen=True)
class UpsertMedicine:
    """Insert a new medicine (id is None) or replace an existing definition"""
    medicine: MedicineRecord


@dataclass(frozen=True)
class RemoveMedicine:
    """Delete a medicine together with its dose instances"""
    medicine_id: int


TrackerCommand = Union[
    CreateDose, TransitionToMissed, RecordDoseOutcome, RetireDose, UpsertMedicine, RemoveMedicine
]


@dataclass
class ApplyResult:
    """What a persisted batch produced"""
    version: int
    created_doses: List[DoseRecord] = field(default_factory=list)
    updated_doses: List[DoseRecord] = field(default_factory=list)
    medicines: List[MedicineRecord] = field(default_factory=list)

"""
Tracker Repository
Persistence for medicine trackers. Every write is a batch of named
commands applied atomically against an expected tracker version.
"""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence
from dataclasses import replace
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
from models import DoseStatus, MedicineType
from exceptions import ConcurrentModificationError, NotFoundError, PersistenceFailure
from tools.tracker_state import (
    ApplyResult,
    CreateDose,
    DoseRecord,
    MedicineRecord,
    RecordDoseOutcome,
    RemoveMedicine,
    RetireDose,
    ScheduleSlot,
    TrackerCommand,
    TrackerSnapshot,
    TransitionToMissed,
    UpsertMedicine,
)


logger = logging.getLogger(__name__)


class TrackerRepository(ABC):
    """Storage contract used by the dose services"""

    @abstractmethod
    def find_tracker_id(self, user_id: str) -> Optional[int]:
        """Return the tracker id for a user, or None"""

    @abstractmethod
    def get_or_create_tracker(self, user_id: str) -> int:
        """Return the tracker id for a user, creating the tracker if needed"""

    @abstractmethod
    def list_tracker_ids(self) -> List[int]:
        """All tracker ids"""

    @abstractmethod
    def load(self, tracker_id: int) -> TrackerSnapshot:
        """Read a tracker with its medicines and dose instances"""

    @abstractmethod
    def apply(
        self,
        tracker_id: int,
        expected_version: int,
        commands: Sequence[TrackerCommand]
    ) -> ApplyResult:
        """
        Apply a batch of commands atomically.

        Raises ConcurrentModificationError when the tracker is no longer at
        `expected_version`; nothing from the batch is kept in that case.
        """


# ==================== SQLALCHEMY ====================

def medicine_to_record(row: models.Medicine) -> MedicineRecord:
    return MedicineRecord(
        id=row.id,
        name=row.name,
        medicine_type=MedicineType(row.medicine_type),
        purpose=row.purpose or "",
        start_date=row.start_date,
        end_date=row.end_date,
        schedule=[ScheduleSlot.from_dict(slot) for slot in (row.schedule or [])],
        is_active=bool(row.is_active),
        prescribed_by=row.prescribed_by or "",
        side_effects_catalog=list(row.side_effects_catalog or []),
        notes=row.notes or ""
    )


def dose_to_record(row: models.DoseInstance) -> DoseRecord:
    return DoseRecord(
        id=row.id,
        medicine_id=row.medicine_id,
        scheduled_date=row.scheduled_date,
        scheduled_time=row.scheduled_time,
        status=DoseStatus(row.status),
        taken_at=row.taken_at,
        actual_dosage=row.actual_dosage or "",
        notes=row.notes or "",
        side_effects_experienced=frozenset(row.side_effects_experienced or [])
    )


class SqlTrackerRepository(TrackerRepository):
    """Tracker storage backed by a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def find_tracker_id(self, user_id: str) -> Optional[int]:
        try:
            tracker = self.db.query(models.MedicineTracker).filter(
                models.MedicineTracker.user_id == user_id
            ).first()
        except SQLAlchemyError as e:
            raise PersistenceFailure(None, e) from e
        return tracker.id if tracker else None

    def get_or_create_tracker(self, user_id: str) -> int:
        tracker_id = self.find_tracker_id(user_id)
        if tracker_id is not None:
            return tracker_id

        try:
            tracker = models.MedicineTracker(user_id=user_id, version=0)
            self.db.add(tracker)
            self.db.commit()
            self.db.refresh(tracker)
        except IntegrityError:
            # Another request created it first
            self.db.rollback()
            tracker_id = self.find_tracker_id(user_id)
            if tracker_id is None:
                raise
            return tracker_id
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure(None, e) from e

        logger.info(f"Created medicine tracker {tracker.id} for user {user_id}")
        return tracker.id

    def list_tracker_ids(self) -> List[int]:
        try:
            rows = self.db.query(models.MedicineTracker.id).order_by(models.MedicineTracker.id).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure(None, e) from e
        return [row[0] for row in rows]

    def load(self, tracker_id: int) -> TrackerSnapshot:
        try:
            # Drop anything cached from an earlier attempt
            self.db.expire_all()
            tracker = self.db.query(models.MedicineTracker).filter(
                models.MedicineTracker.id == tracker_id
            ).first()
            if not tracker:
                raise NotFoundError("Tracker", tracker_id)

            medicines = self.db.query(models.Medicine).filter(
                models.Medicine.tracker_id == tracker_id
            ).order_by(models.Medicine.id).all()

            doses = self.db.query(models.DoseInstance).filter(
                models.DoseInstance.tracker_id == tracker_id
            ).order_by(
                models.DoseInstance.scheduled_date,
                models.DoseInstance.scheduled_time,
                models.DoseInstance.id
            ).all()
        except SQLAlchemyError as e:
            raise PersistenceFailure(tracker_id, e) from e

        return TrackerSnapshot(
            tracker_id=tracker.id,
            user_id=tracker.user_id,
            version=tracker.version,
            medicines=[medicine_to_record(m) for m in medicines],
            doses=[dose_to_record(d) for d in doses]
        )

    def apply(
        self,
        tracker_id: int,
        expected_version: int,
        commands: Sequence[TrackerCommand]
    ) -> ApplyResult:
        now = datetime.now()
        try:
            bumped = self.db.execute(
                update(models.MedicineTracker)
                .where(models.MedicineTracker.id == tracker_id)
                .where(models.MedicineTracker.version == expected_version)
                .values(version=expected_version + 1, updated_at=now)
            )
            if bumped.rowcount != 1:
                self.db.rollback()
                raise ConcurrentModificationError(tracker_id)

            result = ApplyResult(version=expected_version + 1)
            dose_rows = self._load_dose_rows(tracker_id, commands)
            new_doses = []
            for command in commands:
                self._apply_command(tracker_id, command, result, new_doses, dose_rows)

            if new_doses:
                self.db.add_all(new_doses)
                self.db.flush()
            self.db.commit()
        except IntegrityError as e:
            # A dose with the same (medicine, date, time) appeared meanwhile
            self.db.rollback()
            logger.warning(f"Unique key conflict on tracker {tracker_id}: {e.orig}")
            raise ConcurrentModificationError(tracker_id) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure(tracker_id, e) from e
        except Exception:
            self.db.rollback()
            raise

        result.created_doses = [dose_to_record(row) for row in new_doses]
        return result

    def _load_dose_rows(
        self,
        tracker_id: int,
        commands: Sequence[TrackerCommand]
    ) -> Dict[int, models.DoseInstance]:
        """Fetch every dose row the batch touches in one query"""
        dose_ids = {
            command.dose_id for command in commands
            if isinstance(command, (TransitionToMissed, RecordDoseOutcome, RetireDose))
        }
        if not dose_ids:
            return {}
        rows = self.db.query(models.DoseInstance).filter(
            models.DoseInstance.tracker_id == tracker_id,
            models.DoseInstance.id.in_(dose_ids)
        ).all()
        return {row.id: row for row in rows}

    def _apply_command(
        self,
        tracker_id: int,
        command: TrackerCommand,
        result: ApplyResult,
        new_doses: list,
        dose_rows: Dict[int, models.DoseInstance]
    ) -> None:
        if isinstance(command, CreateDose):
            new_doses.append(models.DoseInstance(
                tracker_id=tracker_id,
                medicine_id=command.medicine_id,
                scheduled_date=command.scheduled_date,
                scheduled_time=command.scheduled_time,
                status=DoseStatus.DUE.value,
                actual_dosage=command.actual_dosage,
                notes=command.notes,
                side_effects_experienced=[]
            ))

        elif isinstance(command, (TransitionToMissed, RecordDoseOutcome)):
            row = self._dose_row(dose_rows, command.dose_id)
            record = command.apply_to(dose_to_record(row))
            row.status = record.status.value
            row.taken_at = record.taken_at
            row.actual_dosage = record.actual_dosage
            row.notes = record.notes
            row.side_effects_experienced = sorted(record.side_effects_experienced)
            result.updated_doses.append(record)

        elif isinstance(command, RetireDose):
            self.db.delete(self._dose_row(dose_rows, command.dose_id))
            del dose_rows[command.dose_id]

        elif isinstance(command, UpsertMedicine):
            row = self._write_medicine(tracker_id, command.medicine)
            self.db.flush()
            result.medicines.append(medicine_to_record(row))

        elif isinstance(command, RemoveMedicine):
            row = self._get_medicine_row(tracker_id, command.medicine_id)
            self.db.query(models.DoseInstance).filter(
                models.DoseInstance.tracker_id == tracker_id,
                models.DoseInstance.medicine_id == command.medicine_id
            ).delete(synchronize_session=False)
            self.db.delete(row)

        else:
            raise TypeError(f"Unsupported tracker command: {command!r}")

    def _write_medicine(self, tracker_id: int, medicine: MedicineRecord) -> models.Medicine:
        if medicine.id is None:
            row = models.Medicine(tracker_id=tracker_id)
            self.db.add(row)
        else:
            row = self._get_medicine_row(tracker_id, medicine.id)

        row.name = medicine.name
        row.medicine_type = medicine.medicine_type.value
        row.purpose = medicine.purpose
        row.start_date = medicine.start_date
        row.end_date = medicine.end_date
        row.total_duration_days = medicine.total_duration_days
        row.schedule = [slot.to_dict() for slot in medicine.schedule]
        row.is_active = medicine.is_active
        row.prescribed_by = medicine.prescribed_by
        row.side_effects_catalog = list(medicine.side_effects_catalog)
        row.notes = medicine.notes
        return row

    def _get_medicine_row(self, tracker_id: int, medicine_id: int) -> models.Medicine:
        row = self.db.query(models.Medicine).filter(
            models.Medicine.id == medicine_id,
            models.Medicine.tracker_id == tracker_id
        ).first()
        if not row:
            raise NotFoundError("Medicine", medicine_id)
        return row

    def _dose_row(self, dose_rows: Dict[int, models.DoseInstance], dose_id: int) -> models.DoseInstance:
        row = dose_rows.get(dose_id)
        if row is None:
            raise NotFoundError("Dose instance", dose_id)
        return row


# ==================== IN-MEMORY ====================

class InMemoryTrackerRepository(TrackerRepository):
    """
    Dict-backed tracker storage with the same version semantics as the
    SQL repository. Used in tests and for local experiments.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._tracker_locks: Dict[int, threading.Lock] = {}
        self._users: Dict[str, int] = {}
        self._snapshots: Dict[int, TrackerSnapshot] = {}
        self._ids = {kind: itertools.count(1) for kind in ("tracker", "medicine", "dose")}

    def _allocate(self, kind: str) -> int:
        return next(self._ids[kind])

    def find_tracker_id(self, user_id: str) -> Optional[int]:
        return self._users.get(user_id)

    def get_or_create_tracker(self, user_id: str) -> int:
        with self._lock:
            if user_id in self._users:
                return self._users[user_id]
            tracker_id = self._allocate("tracker")
            self._users[user_id] = tracker_id
            self._tracker_locks[tracker_id] = threading.Lock()
            self._snapshots[tracker_id] = TrackerSnapshot(
                tracker_id=tracker_id, user_id=user_id, version=0
            )
            return tracker_id

    def list_tracker_ids(self) -> List[int]:
        return sorted(self._snapshots)

    def load(self, tracker_id: int) -> TrackerSnapshot:
        stored = self._snapshots.get(tracker_id)
        if stored is None:
            raise NotFoundError("Tracker", tracker_id)
        with self._tracker_locks[tracker_id]:
            return TrackerSnapshot(
                tracker_id=stored.tracker_id,
                user_id=stored.user_id,
                version=stored.version,
                medicines=[replace(m, schedule=list(m.schedule)) for m in stored.medicines],
                doses=[replace(d) for d in stored.doses]
            )

    def apply(
        self,
        tracker_id: int,
        expected_version: int,
        commands: Sequence[TrackerCommand]
    ) -> ApplyResult:
        stored = self._snapshots.get(tracker_id)
        if stored is None:
            raise NotFoundError("Tracker", tracker_id)

        with self._tracker_locks[tracker_id]:
            if stored.version != expected_version:
                raise ConcurrentModificationError(tracker_id)

            # Work on copies so a failing command leaves nothing behind
            medicines = {m.id: m for m in stored.medicines}
            doses = {d.id: d for d in stored.doses}
            keys = {d.key for d in stored.doses}
            result = ApplyResult(version=expected_version + 1)

            for command in commands:
                if isinstance(command, CreateDose):
                    if command.key in keys:
                        raise ConcurrentModificationError(tracker_id)
                    record = command.to_record(self._allocate("dose"))
                    doses[record.id] = record
                    keys.add(record.key)
                    result.created_doses.append(record)

                elif isinstance(command, (TransitionToMissed, RecordDoseOutcome)):
                    if command.dose_id not in doses:
                        raise NotFoundError("Dose instance", command.dose_id)
                    record = command.apply_to(doses[command.dose_id])
                    doses[record.id] = record
                    result.updated_doses.append(record)

                elif isinstance(command, RetireDose):
                    if command.dose_id not in doses:
                        raise NotFoundError("Dose instance", command.dose_id)
                    keys.discard(doses[command.dose_id].key)
                    del doses[command.dose_id]

                elif isinstance(command, UpsertMedicine):
                    medicine = command.medicine
                    if medicine.id is None:
                        medicine = replace(medicine, id=self._allocate("medicine"))
                    elif medicine.id not in medicines:
                        raise NotFoundError("Medicine", medicine.id)
                    medicines[medicine.id] = medicine
                    result.medicines.append(medicine)

                elif isinstance(command, RemoveMedicine):
                    if command.medicine_id not in medicines:
                        raise NotFoundError("Medicine", command.medicine_id)
                    del medicines[command.medicine_id]
                    for dose_id in [i for i, d in doses.items() if d.medicine_id == command.medicine_id]:
                        keys.discard(doses[dose_id].key)
                        del doses[dose_id]

                else:
                    raise TypeError(f"Unsupported tracker command: {command!r}")

            stored.medicines = list(medicines.values())
            stored.doses = sorted(
                doses.values(),
                key=lambda d: (d.scheduled_date, d.scheduled_time, d.id)
            )
            stored.version = result.version
            return result

"""
Dose Service
Materialization, reconciliation, overdue sweeps and dose outcomes for
medicine trackers. Every mutation is a read-plan-apply cycle retried on
concurrent modification.
"""

import logging
from typing import Callable, Dict, List, Optional, Any, Sequence
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta

from config import TrackerConstants
from database import get_db_context
from models import DoseStatus
from exceptions import (
    ConcurrentModificationError,
    DoseAlreadyResolvedError,
    NotFoundError,
    TrackerError,
)
from services.tracker_repository import TrackerRepository, SqlTrackerRepository
from tools.adherence_analyzer import percentage
from tools.materializer import DoseMaterializer, dose_materializer
from tools.sweeper import OverdueSweeper, overdue_sweeper
from tools.tracker_state import (
    ApplyResult,
    DoseRecord,
    RecordDoseOutcome,
    TrackerCommand,
    TrackerSnapshot,
)


logger = logging.getLogger(__name__)


Planner = Callable[[TrackerSnapshot], Sequence[TrackerCommand]]


@dataclass
class RefreshResult:
    """Outcome of reconciling and sweeping one tracker"""
    tracker_id: int
    backfilled: int = 0
    marked_missed: int = 0


@dataclass
class SweepSummary:
    """Outcome of a sweep over every tracker"""
    trackers: int = 0
    processed: int = 0
    backfilled: int = 0
    marked_missed: int = 0
    failed: List[int] = field(default_factory=list)
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trackers": self.trackers,
            "processed": self.processed,
            "backfilled": self.backfilled,
            "marked_missed": self.marked_missed,
            "failed": list(self.failed),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None
        }


class DoseService:
    """
    Service for dose instance lifecycle
    """

    def __init__(
        self,
        repository: TrackerRepository,
        materializer: DoseMaterializer = dose_materializer,
        sweeper: OverdueSweeper = overdue_sweeper,
        max_attempts: int = TrackerConstants.MAX_WRITE_ATTEMPTS
    ):
        self.repository = repository
        self.materializer = materializer
        self.sweeper = sweeper
        self.max_attempts = max_attempts

    # ==================== WRITE CYCLE ====================

    def mutate(self, tracker_id: int, planner: Planner) -> Optional[ApplyResult]:
        """
        Re-read the tracker, plan commands and apply them as one batch.
        The planner runs again on every attempt, so its predicates are
        always evaluated against fresh state.

        Returns:
            ApplyResult, or None when the planner had nothing to do
        """
        for attempt in range(1, self.max_attempts + 1):
            snapshot = self.repository.load(tracker_id)
            commands = list(planner(snapshot))
            if not commands:
                return None

            try:
                return self.repository.apply(tracker_id, snapshot.version, commands)
            except ConcurrentModificationError:
                logger.warning(
                    f"Tracker {tracker_id} changed during write "
                    f"(attempt {attempt}/{self.max_attempts}), retrying"
                )

        raise ConcurrentModificationError(tracker_id, attempts=self.max_attempts)

    def tracker_id_for(self, user_id: str) -> int:
        tracker_id = self.repository.find_tracker_id(user_id)
        if tracker_id is None:
            raise NotFoundError("Tracker for user", user_id)
        return tracker_id

    # ==================== MATERIALIZER ====================

    def generate_for_range(
        self,
        tracker_id: int,
        medicine_id: int,
        range_start: date,
        range_end: date
    ) -> List[DoseRecord]:
        """
        Make sure every (date, slot) of a medicine within the range has a
        dose instance

        Returns:
            Only the newly created instances
        """
        def _plan(snapshot: TrackerSnapshot):
            medicine = snapshot.medicine(medicine_id)
            if medicine is None:
                raise NotFoundError("Medicine", medicine_id)
            return self.materializer.generate_for_range(
                medicine, snapshot.doses, range_start, range_end
            )

        result = self.mutate(tracker_id, _plan)
        created = result.created_doses if result else []

        if created:
            logger.info(
                f"Generated {len(created)} dose instance(s) for medicine {medicine_id} "
                f"between {range_start} and {range_end}"
            )
        return created

    def reconcile_tracker(self, tracker_id: int, today: Optional[date] = None) -> List[DoseRecord]:
        """Backfill dates with no dose instances for every active medicine"""
        today = today or date.today()

        def _plan(snapshot: TrackerSnapshot):
            commands = []
            for medicine in snapshot.medicines:
                commands.extend(self.materializer.reconcile(medicine, snapshot.doses, today))
            return commands

        result = self.mutate(tracker_id, _plan)
        created = result.created_doses if result else []

        if created:
            logger.info(f"Backfilled {len(created)} dose instance(s) for tracker {tracker_id}")
        return created

    # ==================== SWEEPER ====================

    def sweep_tracker(self, tracker_id: int, now: Optional[datetime] = None) -> int:
        """
        Move every overdue "due" instance of a tracker to "missed" in one batch

        Returns:
            Number of instances transitioned
        """
        now = now or datetime.now()

        result = self.mutate(tracker_id, lambda snapshot: self.sweeper.plan(snapshot.doses, now))
        marked = len(result.updated_doses) if result else 0

        if marked:
            logger.info(f"Marked {marked} dose(s) as missed for tracker {tracker_id}")
        return marked

    def refresh_tracker(self, tracker_id: int, now: Optional[datetime] = None) -> RefreshResult:
        """Reconcile then sweep, so backfilled past doses are swept too"""
        now = now or datetime.now()
        backfilled = self.reconcile_tracker(tracker_id, today=now.date())
        marked = self.sweep_tracker(tracker_id, now)
        return RefreshResult(tracker_id=tracker_id, backfilled=len(backfilled), marked_missed=marked)

    def refresh_quietly(self, tracker_id: int, now: Optional[datetime] = None) -> Optional[RefreshResult]:
        """
        Refresh before a read. A failed refresh never blocks the read;
        callers carry on with whatever data is stored.
        """
        try:
            return self.refresh_tracker(tracker_id, now)
        except TrackerError as e:
            logger.warning(f"Skipping refresh of tracker {tracker_id}: {e}")
            return None

    def sweep_all(self, now: Optional[datetime] = None) -> SweepSummary:
        """
        Refresh every tracker. Failures are isolated per tracker.
        """
        now = now or datetime.now()
        summary = SweepSummary(timestamp=now)
        logger.info(f"Checking for overdue medicines at {now.isoformat()}")

        for tracker_id in self.repository.list_tracker_ids():
            summary.trackers += 1
            try:
                result = self.refresh_tracker(tracker_id, now)
            except TrackerError as e:
                logger.error(f"Failed to refresh tracker {tracker_id}: {e}", exc_info=True)
                summary.failed.append(tracker_id)
                continue
            summary.processed += 1
            summary.backfilled += result.backfilled
            summary.marked_missed += result.marked_missed

        if summary.marked_missed:
            logger.info(
                f"Processed {summary.processed} tracker(s), "
                f"marked {summary.marked_missed} dose(s) as missed"
            )
        return summary

    # ==================== OUTCOMES ====================

    def record_outcome(
        self,
        tracker_id: int,
        dose_id: int,
        status: DoseStatus,
        taken_at: Optional[datetime] = None,
        actual_dosage: Optional[str] = None,
        notes: Optional[str] = None,
        side_effects: Optional[Sequence[str]] = None
    ) -> DoseRecord:
        """
        Mark a due dose as taken or skipped

        Raises:
            ValueError: status is not taken/skipped
            NotFoundError: unknown dose
            DoseAlreadyResolvedError: dose is already taken, missed or skipped
        """
        if status not in (DoseStatus.TAKEN, DoseStatus.SKIPPED):
            raise ValueError(f"Doses can only be marked taken or skipped, not {status.value}")

        if status == DoseStatus.TAKEN and taken_at is None:
            taken_at = datetime.now()

        def _plan(snapshot: TrackerSnapshot):
            dose = snapshot.dose(dose_id)
            if dose is None:
                raise NotFoundError("Dose instance", dose_id)
            if dose.is_terminal:
                raise DoseAlreadyResolvedError(dose_id, dose.status.value)
            return [RecordDoseOutcome(
                dose_id=dose_id,
                status=status,
                taken_at=taken_at if status == DoseStatus.TAKEN else None,
                actual_dosage=actual_dosage,
                notes=notes,
                side_effects=frozenset(side_effects) if side_effects is not None else None
            )]

        result = self.mutate(tracker_id, _plan)
        record = result.updated_doses[0]
        logger.info(f"Dose {dose_id} on tracker {tracker_id} marked {status.value}")
        return record

    # ==================== QUERIES ====================

    def list_doses(
        self,
        tracker_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status: Optional[DoseStatus] = None,
        medicine_id: Optional[int] = None
    ) -> List[DoseRecord]:
        """Dose instances of a tracker, optionally filtered"""
        doses = self.repository.load(tracker_id).doses
        return [
            d for d in doses
            if (start is None or d.scheduled_date >= start)
            and (end is None or d.scheduled_date <= end)
            and (status is None or d.status == status)
            and (medicine_id is None or d.medicine_id == medicine_id)
        ]

    def adherence_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Platform-wide dose statistics over the last 30 days"""
        now = now or datetime.now()
        window_start = (now - timedelta(days=TrackerConstants.ANALYSIS_WINDOW_DAYS)).date()

        stats = {
            "total_users": 0,
            "total_medicines": 0,
            "total_doses": 0,
            "taken_doses": 0,
            "missed_doses": 0,
            "skipped_doses": 0,
        }

        for tracker_id in self.repository.list_tracker_ids():
            snapshot = self.repository.load(tracker_id)
            active = [m for m in snapshot.medicines if m.is_active]
            if not active:
                continue

            stats["total_users"] += 1
            stats["total_medicines"] += len(active)

            recent = [d for d in snapshot.doses if d.scheduled_date >= window_start]
            stats["total_doses"] += len(recent)
            stats["taken_doses"] += sum(1 for d in recent if d.status == DoseStatus.TAKEN)
            stats["missed_doses"] += sum(1 for d in recent if d.status == DoseStatus.MISSED)
            stats["skipped_doses"] += sum(1 for d in recent if d.status == DoseStatus.SKIPPED)

        total = stats["total_doses"]
        stats["adherence_rate"] = percentage(stats["taken_doses"], total) if total else 0
        stats["timestamp"] = now.isoformat()
        return stats


def run_scheduled_refresh() -> SweepSummary:
    """Background tick: refresh every tracker in its own DB session"""
    with get_db_context() as session:
        return DoseService(SqlTrackerRepository(session)).sweep_all()

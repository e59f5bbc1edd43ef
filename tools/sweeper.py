"""
Overdue Sweeper
Finds "due" dose instances past their grace period and plans the move to "missed"
"""

from typing import Iterable, List
from datetime import datetime, timedelta

from config import TrackerConstants
from models import DoseStatus
from tools.tracker_state import DoseRecord, TransitionToMissed


class OverdueSweeper:
    """
    Converts stale "due" instances to "missed". The eligibility predicate
    only matches "due" rows, so running it twice never moves a dose twice.
    """

    def __init__(self, grace_period: timedelta = TrackerConstants.GRACE_PERIOD):
        self.grace_period = grace_period

    def is_overdue(self, dose: DoseRecord, now: datetime) -> bool:
        """Check whether a dose is due and its grace period has elapsed"""
        if dose.status != DoseStatus.DUE:
            return False
        return now > dose.scheduled_at + self.grace_period

    def plan(self, doses: Iterable[DoseRecord], now: datetime) -> List[TransitionToMissed]:
        """Build one transition per overdue dose, all stamped with `now`"""
        note = f"Auto-marked as missed at {now.isoformat()}"
        return [
            TransitionToMissed(dose_id=dose.id, timestamp=now, note=note)
            for dose in doses
            if self.is_overdue(dose, now)
        ]


# Singleton instance
overdue_sweeper = OverdueSweeper()

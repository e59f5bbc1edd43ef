"""
Dose Materializer
Expands a medicine's daily schedule into dose instances over a date range
"""

import logging
from typing import Iterable, Iterator, List, Set
from datetime import date, timedelta

from exceptions import InvalidRangeError
from models import DoseStatus
from tools.tracker_state import CreateDose, DoseKey, DoseRecord, MedicineRecord, RetireDose


logger = logging.getLogger(__name__)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from start to end inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class DoseMaterializer:
    """
    Guarantees a dose instance exists for every (date, schedule slot)
    combination of a medicine. Idempotent under the
    (medicine_id, scheduled_date, scheduled_time) key.
    """

    def generate_for_range(
        self,
        medicine: MedicineRecord,
        existing: Iterable[DoseRecord],
        range_start: date,
        range_end: date
    ) -> List[CreateDose]:
        """
        Plan the dose instances missing for a medicine within a range

        Args:
            medicine: Medicine to expand
            existing: Dose instances already stored for the tracker
            range_start: First requested date
            range_end: Last requested date (inclusive)

        Returns:
            CreateDose commands for instances that do not exist yet
        """
        if range_start > range_end:
            raise InvalidRangeError(range_start, range_end)

        if not medicine.is_active:
            logger.info(f"Medicine {medicine.id} is inactive, nothing to materialize")
            return []

        start = max(medicine.start_date, range_start)
        end = min(medicine.end_date, range_end)
        if start > end:
            return []

        return self._plan(medicine, iter_dates(start, end), existing)

    def reconcile(
        self,
        medicine: MedicineRecord,
        existing: Iterable[DoseRecord],
        today: date
    ) -> List[CreateDose]:
        """
        Backfill calendar dates that have no dose instances at all,
        from the medicine's start up to min(end date, today)
        """
        if not medicine.is_active:
            return []

        end = min(medicine.end_date, today)
        if medicine.start_date > end:
            return []

        existing = list(existing)
        covered_dates = {d.scheduled_date for d in existing if d.medicine_id == medicine.id}
        gaps = [
            day for day in iter_dates(medicine.start_date, end)
            if day not in covered_dates
        ]
        if not gaps:
            return []

        logger.debug(f"Medicine {medicine.id} has {len(gaps)} day(s) without doses")
        return self._plan(medicine, gaps, existing)

    def retire(
        self,
        medicine: MedicineRecord,
        existing: Iterable[DoseRecord]
    ) -> List[RetireDose]:
        """
        Plan the removal of "due" instances the medicine no longer prescribes:
        dates outside its span or times no longer in its schedule. An inactive
        medicine retires all of its due instances. Resolved instances are kept.
        """
        if medicine.is_active:
            times = {slot.time for slot in medicine.schedule}
        else:
            times = set()

        commands = []
        for dose in existing:
            if dose.medicine_id != medicine.id or dose.status != DoseStatus.DUE:
                continue
            in_span = medicine.start_date <= dose.scheduled_date <= medicine.end_date
            if in_span and dose.scheduled_time in times:
                continue
            commands.append(RetireDose(dose.id))

        if commands:
            logger.info(f"Medicine {medicine.id}: retiring {len(commands)} unscheduled due dose(s)")
        return commands

    def _plan(
        self,
        medicine: MedicineRecord,
        days: Iterable[date],
        existing: Iterable[DoseRecord]
    ) -> List[CreateDose]:
        seen: Set[DoseKey] = {d.key for d in existing}
        commands = []

        for day in days:
            for slot in medicine.schedule:
                command = CreateDose(
                    medicine_id=medicine.id,
                    scheduled_date=day,
                    scheduled_time=slot.time,
                    actual_dosage=slot.dosage,
                    notes=slot.instructions
                )
                if command.key in seen:
                    continue
                seen.add(command.key)
                commands.append(command)

        return commands


# Singleton instance
dose_materializer = DoseMaterializer()

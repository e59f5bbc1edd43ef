"""
Adherence Analyzer
Summarizes dose history into a risk-scored adherence report
"""

import math
from typing import Dict, List, Any, Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from collections import Counter
from enum import Enum

from config import TrackerConstants
from models import DoseStatus
from tools.tracker_state import DoseRecord, MedicineRecord


class RiskLevel(str, Enum):
    """Adherence risk tiers"""
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


# Fixed message sets per risk tier
HIGH_RISK_WARNINGS = [
    "Very low medication adherence - consult your doctor immediately",
    "Missing medications can lead to treatment failure",
]
HIGH_RISK_RECOMMENDATIONS = [
    "Set multiple daily reminders for medication times",
    "Use a pill organizer to track daily medications",
    "Discuss medication concerns with your healthcare provider",
]
MODERATE_RISK_WARNINGS = [
    "Medication adherence below recommended levels",
]
MODERATE_RISK_RECOMMENDATIONS = [
    "Improve consistency with medication timing",
    "Set phone alarms for medication reminders",
    "Keep medications in visible locations",
]
LOW_RISK_RECOMMENDATIONS = [
    "Excellent medication adherence - keep it up!",
    "Continue following your prescribed schedule",
    "Monitor for any side effects and report to doctor",
]


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 100 when nothing is due"""
    if whole == 0:
        return 100
    return int(math.floor(100 * part / whole + 0.5))


@dataclass
class AdherenceReport:
    """Derived adherence summary, never persisted"""
    risk_level: RiskLevel = RiskLevel.LOW
    adherence_rate: int = 100
    on_time_rate: int = 100
    total_scheduled: int = 0
    taken: int = 0
    missed: int = 0
    skipped: int = 0
    active_medicine_count: int = 0
    expiring_soon_count: int = 0
    recommendations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    side_effect_counts: Dict[str, int] = field(default_factory=dict)
    days_analyzed: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "adherence_rate": self.adherence_rate,
            "on_time_rate": self.on_time_rate,
            "total_scheduled": self.total_scheduled,
            "taken": self.taken,
            "missed": self.missed,
            "skipped": self.skipped,
            "active_medicine_count": self.active_medicine_count,
            "expiring_soon_count": self.expiring_soon_count,
            "recommendations": list(self.recommendations),
            "warnings": list(self.warnings),
            "side_effect_counts": dict(self.side_effect_counts),
            "days_analyzed": self.days_analyzed
        }


class AdherenceAnalyzer:
    """
    Computes adherence rate, on-time rate, risk tier and recommendations
    over a window of at most 30 days.
    """

    def __init__(
        self,
        window_days: int = TrackerConstants.ANALYSIS_WINDOW_DAYS,
        on_time_tolerance_minutes: int = TrackerConstants.ON_TIME_TOLERANCE_MINUTES,
        expiry_warning_days: int = TrackerConstants.EXPIRY_WARNING_DAYS
    ):
        self.window = timedelta(days=window_days)
        self.on_time_tolerance = timedelta(minutes=on_time_tolerance_minutes)
        self.expiry_warning_days = expiry_warning_days

    def analyze(
        self,
        medicines: Iterable[MedicineRecord],
        doses: Iterable[DoseRecord],
        now: datetime
    ) -> AdherenceReport:
        """
        Analyze a tracker's dose history

        Args:
            medicines: All medicines of the tracker
            doses: All dose instances of the tracker
            now: Current local time

        Returns:
            AdherenceReport for the analysis window
        """
        medicines = list(medicines)
        active = [m for m in medicines if m.is_active]

        # Nothing tracked yet: don't divide by zero, don't penalize
        if not active:
            return AdherenceReport(
                recommendations=["Add your medications to start tracking adherence"]
            )

        earliest_start = min(
            datetime.combine(m.start_date, time.min) for m in active
        )
        earliest_start = min(earliest_start, now)
        analysis_start = max(earliest_start, now - self.window)

        window_doses = [
            d for d in doses
            if datetime.combine(d.scheduled_date, time.min) >= analysis_start
        ]
        due_doses = [d for d in window_doses if self.is_due_or_resolved(d, now)]

        total = len(due_doses)
        taken = sum(1 for d in due_doses if d.status == DoseStatus.TAKEN)
        missed = sum(1 for d in due_doses if d.status == DoseStatus.MISSED)
        skipped = sum(1 for d in due_doses if d.status == DoseStatus.SKIPPED)
        on_time = sum(1 for d in due_doses if self.is_on_time(d))

        report = AdherenceReport(
            adherence_rate=percentage(taken, total),
            on_time_rate=percentage(on_time, total),
            total_scheduled=total,
            taken=taken,
            missed=missed,
            skipped=skipped,
            active_medicine_count=len(active),
            days_analyzed=max(1, math.ceil((now - analysis_start) / timedelta(days=1)))
        )

        self._assess_risk(report)
        self._assess_side_effects(report, window_doses)
        self._assess_expiry(report, active, now)

        return report

    def is_due_or_resolved(self, dose: DoseRecord, now: datetime) -> bool:
        """Future doses must not count against the patient"""
        return (
            dose.scheduled_at <= now
            or dose.scheduled_date < now.date()
            or dose.is_terminal
        )

    def is_on_time(self, dose: DoseRecord) -> bool:
        if dose.status != DoseStatus.TAKEN or dose.taken_at is None:
            return False
        return abs(dose.taken_at - dose.scheduled_at) <= self.on_time_tolerance

    def risk_level_for(self, adherence_rate: int, total_scheduled: int) -> RiskLevel:
        """Too few due doses to judge is treated as low risk"""
        if total_scheduled < TrackerConstants.MIN_DOSES_FOR_RISK:
            return RiskLevel.LOW
        if adherence_rate < TrackerConstants.HIGH_RISK_BELOW:
            return RiskLevel.HIGH
        if adherence_rate < TrackerConstants.LOW_RISK_FROM:
            return RiskLevel.MODERATE
        return RiskLevel.LOW

    def _assess_risk(self, report: AdherenceReport) -> None:
        report.risk_level = self.risk_level_for(report.adherence_rate, report.total_scheduled)

        if report.total_scheduled < TrackerConstants.MIN_DOSES_FOR_RISK:
            if report.total_scheduled == 0:
                report.recommendations.append(
                    "No doses due yet - check back after taking some medications"
                )
            elif report.taken == report.total_scheduled:
                report.recommendations.append(
                    "Great start! Keep up the good medication adherence"
                )
        elif report.risk_level == RiskLevel.HIGH:
            report.warnings.extend(HIGH_RISK_WARNINGS)
            report.recommendations.extend(HIGH_RISK_RECOMMENDATIONS)
        elif report.risk_level == RiskLevel.MODERATE:
            report.warnings.extend(MODERATE_RISK_WARNINGS)
            report.recommendations.extend(MODERATE_RISK_RECOMMENDATIONS)
        else:
            report.recommendations.extend(LOW_RISK_RECOMMENDATIONS)

    def _assess_side_effects(self, report: AdherenceReport, window_doses: List[DoseRecord]) -> None:
        counts = Counter(
            effect
            for dose in window_doses
            for effect in dose.side_effects_experienced
        )
        report.side_effect_counts = dict(sorted(counts.items()))

        if counts:
            report.warnings.append("Side effects reported - monitor and discuss with doctor")
            report.recommendations.append("Keep a detailed log of side effects and their timing")
            report.recommendations.append("Report persistent or severe side effects to your doctor")

    def _assess_expiry(self, report: AdherenceReport, active: List[MedicineRecord], now: datetime) -> None:
        today = now.date()
        expiring = [
            m for m in active
            if m.end_date >= today
            and (m.end_date - today).days <= self.expiry_warning_days
        ]
        report.expiring_soon_count = len(expiring)

        if expiring:
            report.warnings.append(f"{len(expiring)} medication(s) ending soon - plan refills")
            report.recommendations.append("Contact your pharmacy or doctor for prescription refills")


# Singleton instance
adherence_analyzer = AdherenceAnalyzer()

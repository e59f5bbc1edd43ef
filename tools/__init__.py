"""
Tools Package
Dose scheduling and adherence tools for the MedTrack system
"""

from .tracker_state import (
    ScheduleSlot,
    MedicineRecord,
    DoseRecord,
    TrackerSnapshot,
    CreateDose,
    TransitionToMissed,
    RecordDoseOutcome,
    RetireDose,
    UpsertMedicine,
    RemoveMedicine,
    ApplyResult,
    parse_slot_time,
    scheduled_moment
)

from .materializer import (
    DoseMaterializer,
    dose_materializer,
    iter_dates
)

from .sweeper import (
    OverdueSweeper,
    overdue_sweeper
)

from .adherence_analyzer import (
    AdherenceAnalyzer,
    AdherenceReport,
    RiskLevel,
    adherence_analyzer,
    percentage
)

from .ticker import (
    Ticker,
    TickerMode,
    PeriodicTicker,
    OnDemandTicker,
    create_ticker
)

__all__ = [
    # Tracker state
    "ScheduleSlot",
    "MedicineRecord",
    "DoseRecord",
    "TrackerSnapshot",
    "CreateDose",
    "TransitionToMissed",
    "RecordDoseOutcome",
    "RetireDose",
    "UpsertMedicine",
    "RemoveMedicine",
    "ApplyResult",
    "parse_slot_time",
    "scheduled_moment",

    # Materializer
    "DoseMaterializer",
    "dose_materializer",
    "iter_dates",

    # Sweeper
    "OverdueSweeper",
    "overdue_sweeper",

    # Adherence Analyzer
    "AdherenceAnalyzer",
    "AdherenceReport",
    "RiskLevel",
    "adherence_analyzer",
    "percentage",

    # Scheduler driver
    "Ticker",
    "TickerMode",
    "PeriodicTicker",
    "OnDemandTicker",
    "create_ticker"
]

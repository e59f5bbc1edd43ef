"""
Adherence Service
Adherence reports for a user's tracker
"""

import logging
from typing import Optional
from datetime import datetime

from services.dose_service import DoseService
from tools.adherence_analyzer import AdherenceAnalyzer, AdherenceReport, adherence_analyzer


logger = logging.getLogger(__name__)


class AdherenceService:
    """
    Service for adherence analysis
    """

    def __init__(self, dose_service: DoseService, analyzer: AdherenceAnalyzer = adherence_analyzer):
        self.dose_service = dose_service
        self.analyzer = analyzer

    async def get_report(self, user_id: str, now: Optional[datetime] = None) -> AdherenceReport:
        """
        Build the adherence report for a user

        The tracker is refreshed first so that overdue doses count as
        missed. A failed refresh is logged and the report is computed
        from the data already stored.

        Args:
            user_id: Owning user
            now: Current local time

        Returns:
            AdherenceReport (the default report for users with no tracker)
        """
        now = now or datetime.now()
        repository = self.dose_service.repository

        tracker_id = repository.find_tracker_id(user_id)
        if tracker_id is None:
            return self.analyzer.analyze([], [], now)

        self.dose_service.refresh_quietly(tracker_id, now)
        snapshot = repository.load(tracker_id)

        report = self.analyzer.analyze(snapshot.medicines, snapshot.doses, now)
        logger.debug(
            f"Adherence for user {user_id}: {report.adherence_rate}% "
            f"({report.risk_level.value} risk)"
        )
        return report

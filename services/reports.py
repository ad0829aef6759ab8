from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional
from uuid import uuid4

from app.schemas import Report
from datastore.document_store import DocumentCollection, build_default_store
from services.clock import MonotonicClock

logger = logging.getLogger(__name__)


class ReportStore:
    """Append-only list of user-filed incident reports."""

    def __init__(
        self,
        reports: DocumentCollection[Report],
        clock: Optional[MonotonicClock] = None,
    ) -> None:
        self.reports = reports
        self.clock = clock or MonotonicClock()

    def create(
        self,
        type: Optional[str] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        description: Optional[str] = None,
    ) -> Report:
        report = Report(
            id=uuid4().hex,
            type=type,
            lat=lat,
            lng=lng,
            description=description,
            timestamp=self.clock.now(),
        )
        self.reports.insert(report)
        logger.info("Report filed", extra={"report_id": report.id})
        return report

    def list_all(self) -> List[Report]:
        """Every report, most recent first."""
        return sorted(self.reports.scan(), key=lambda report: report.timestamp, reverse=True)


@lru_cache
def build_default_reports() -> ReportStore:
    return ReportStore(reports=build_default_store().collection("reports", Report))

# backend/clubdesk/services/expiry_sweep_service.py
"""
Expiry Sweep.

Finds approved absence requests whose makeup deadline has passed and expires
them one at a time. Each request gets its own transaction and the same
version guard as the member-facing operations, so a sweep racing a makeup
selection leaves exactly one winner. Requests that moved on in the meantime
are skipped, which makes the sweep safe to re-run.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.absence_repository import AbsenceRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.absence import ExpirySweepResult
from .absence_service import AbsenceService
from .base import BaseService
from .notification_service import AbsenceNotificationService

logger = logging.getLogger(__name__)


class ExpirySweepService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        absence_service: Optional[AbsenceService] = None,
        absence_repository: Optional[AbsenceRepository] = None,
        notification_service: Optional[AbsenceNotificationService] = None,
    ):
        super().__init__(db, clock)
        self.absence_repository = (
            absence_repository or RepositoryFactory.create_absence_repository(db)
        )
        self.absence_service = absence_service or AbsenceService(
            db,
            clock=self.clock,
            notification_service=notification_service,
            absence_repository=self.absence_repository,
        )

    @BaseService.measure_operation("run_expiry_sweep")
    def sweep(self) -> ExpirySweepResult:
        """Expire every overdue approved request and report what happened."""
        today = self.clock.today()
        candidate_ids = self.absence_repository.list_expired_candidate_ids(today)
        # Release the read transaction before per-request writes
        self.db.rollback()

        result = ExpirySweepResult(run_date=today)
        for absence_id in candidate_ids:
            try:
                if self.absence_service.expire_if_overdue(absence_id):
                    result.expired_ids.append(absence_id)
            except Exception as exc:
                result.failed_ids.append(absence_id)
                self.logger.error(
                    "Failed to expire absence %s: %s",
                    absence_id,
                    str(exc),
                    extra={"absence_id": absence_id, "error_type": type(exc).__name__},
                )

        prometheus_metrics.record_expiry_sweep(result.expired_count, len(result.failed_ids))
        self.logger.info(
            "Expiry sweep finished: %s expired, %s failed, %s candidates",
            result.expired_count,
            len(result.failed_ids),
            len(candidate_ids),
            extra={"run_date": today.isoformat()},
        )
        return result

    def run_expiry_sweep(self) -> List[str]:
        """Ids of the requests expired by this run."""
        return self.sweep().expired_ids
